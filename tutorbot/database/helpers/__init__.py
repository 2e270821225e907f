"""
Session plumbing shared by the service layer.

- transactionManagement
    ``@transactional`` opens one SQLAlchemy session per outermost call to a
    service function in `tutorbot.database.core.funcs`, exposes it through the
    `db_session_context` context variable so nested service calls join the same
    transaction, then commits (or rolls back) and closes it.
"""
