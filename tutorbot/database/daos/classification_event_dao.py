"""
ClassificationEvent DAO
=======================

Append and aggregate reliance-level observations. Events are never updated;
they disappear only through ``ConversationDao.deleteConversation``.
"""

from sqlalchemy.orm import Session
from sqlalchemy import asc
import logging
from tutorbot.database.entities.classification_events import ClassificationEvent

logger = logging.getLogger(__name__)


class ClassificationEventDao:
    """
    Data Access Object for `ClassificationEvent`.
    """

    def createEvent(self, session: Session, event: ClassificationEvent) -> ClassificationEvent:
        try:
            session.add(event)
            return event
        except Exception as e:
            logger.error("Error in ClassificationEventDao.createEvent. Error Message: %s", e)
            raise e

    def fetchDistinctLevels(self, session: Session, conversation_id: int) -> list[int]:
        """
        Return the distinct levels observed for a conversation, ascending.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation_id : int
            Identifier of the conversation.

        Returns
        -------
        list[int]
            The conversation's scale profile.
        """
        try:
            rows = (
                session.query(ClassificationEvent.scale_level)
                .filter(ClassificationEvent.conversation_id == conversation_id)
                .distinct()
                .order_by(asc(ClassificationEvent.scale_level))
                .all()
            )
            return [row[0] for row in rows]
        except Exception as e:
            logger.error("Error in ClassificationEventDao.fetchDistinctLevels. Error Message: %s", e)
            raise e
