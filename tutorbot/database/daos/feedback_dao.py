"""
Feedback DAO — Create & Fetch
=============================

Purpose
-------
Thin data-access layer for the Feedback entity:
- Persist a new feedback record attached to a turn.
- Fetch all feedback records of a conversation.

Transaction Model
-----------------
- This DAO **adds** objects to the SQLAlchemy session but does **not** call `commit()`.
  The caller controls transactions (commit/rollback) and session lifecycle.

Error Handling
--------------
- Operational errors are logged and re-raised for the caller to handle.
"""

from sqlalchemy.orm import Session
from sqlalchemy import asc
import logging
from tutorbot.database.entities.feedback import Feedback

logger = logging.getLogger(__name__)


class FeedbackDao:
    """
    Data Access Object for `Feedback`.

    Notes:
        - Session management (commit/rollback/close) is delegated to the caller.
    """

    def createFeedback(self, session: Session, feedback: Feedback) -> Feedback:
        """
        Add a new `Feedback` record to the session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session (transaction boundary controlled by the caller).
        feedback : Feedback
            The `Feedback` entity to persist.

        Returns
        -------
        Feedback
            The staged entity.
        """
        try:
            session.add(feedback)
            return feedback
        except Exception as e:
            logger.error("Error in FeedbackDao.createFeedback. Error Message: %s", e)
            raise e

    def fetchFeedbackByConversationId(self, session: Session, conversation_id: int) -> list[Feedback]:
        """
        Retrieve all feedback of a conversation in creation order.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation_id : int
            Identifier of the conversation.

        Returns
        -------
        list[Feedback]
        """
        try:
            return (
                session.query(Feedback)
                .filter(Feedback.conversation_id == conversation_id)
                .order_by(asc(Feedback.id))
                .all()
            )
        except Exception as e:
            logger.error("Error in FeedbackDao.fetchFeedbackByConversationId. Error Message: %s", e)
            raise e
