"""
Transactions for the turn store
===============================

Every service function in `tutorbot.database.core.funcs` is wrapped with
``@transactional``. The outermost call opens a session, stores it in
`db_session_context`, and commits when the function returns; any exception
rolls the whole unit back before it propagates. Calls made while a session is
active join it, so one store operation (e.g. "reuse the empty document seed
or insert a new assistant turn") is a single transaction.

Service functions are synchronous; the async ``TurnStore`` runs them in the
threadpool. Each threadpool call executes in a copy of the caller's context,
so a session set here never leaks into another exchange.
"""


from functools import wraps
from sqlalchemy.orm import sessionmaker
import contextvars
import logging
from tutorbot.database.config.connection_engine import connection_engine

logger = logging.getLogger(__name__)

db_session_context = contextvars.ContextVar("db_session_context", default=None)
"""Context variable storing the active SQLAlchemy session."""

SessionFactory = sessionmaker(bind=connection_engine, expire_on_commit=False)
"""Session factory bound to the shared engine."""


def transactional(func):
    """
    Run `func` inside the active session, or inside a new committed one.

    Ensures that:
    - If a session already exists in context, it is reused.
    - Otherwise, a new session is created, committed, and closed.
    - On errors, the session is rolled back and closed.

    Parameters
    ----------
    func : callable
        The function to wrap. It must accept a `session` keyword argument.

    Returns
    -------
    callable
        The wrapped function, executed within a database transaction.

    Example
    -------
    >>> @transactional
    ... def rename(session, conversation_id: int, name: str):
    ...     ConversationDao().updateConversationByName(session, conversation_id, name)
    ...
    >>> rename(conversation_id=7, name="Essay planning")
    """
    @wraps(func)
    def wrap_func(*args, **kwargs):
        session = db_session_context.get()
        if session:
            return func(*args, session=session, **kwargs)

        session = SessionFactory()
        token = db_session_context.set(session)

        try:
            result = func(*args, session=session, **kwargs)
            session.flush()
            session.commit()
        except Exception as e:
            logger.warning("Rolling back transaction in %s: %s", func.__name__, e)
            session.rollback()
            raise e
        finally:
            session.close()
            db_session_context.reset(token)

        return result

    return wrap_func
