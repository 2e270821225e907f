"""
Conversation DAO

Purpose
-------
Provides a thin data-access layer for the `Conversation` ORM entity:
- Create conversations
- Query by owner, or by id scoped to an owner
- Update `last_updated` and `conversation_name`
- Delete a conversation together with everything it owns

Design
------
- Requires an active SQLAlchemy `Session` supplied by the caller (no session
  creation inside the DAO). Transaction boundaries stay in the service layer.
- Update operations fetch the target row and mutate attributes; the enclosing
  `@transactional` call commits.

Usage
-----
.. code-block:: python

    from tutorbot.database.helpers.transactionManagement import transactional
    from tutorbot.database.entities.conversations import Conversation
    from tutorbot.database.daos.conversation_dao import ConversationDao

    @transactional
    def start(session, owner: str):
        dao = ConversationDao()
        conversation = dao.createConversation(session, Conversation("Essay plan", owner))
        session.flush()
        return conversation.id

Error Handling
--------------
- Methods log the error message and re-raise.
- `update*` methods use `.one()`, which raises `NoResultFound` when the target
  row does not exist.
"""

from sqlalchemy.orm import Session
from sqlalchemy import delete, desc
from datetime import datetime
import logging
from tutorbot.database.entities.conversations import Conversation
from tutorbot.database.entities.messages import Turn
from tutorbot.database.entities.classification_events import ClassificationEvent
from tutorbot.database.entities.feedback import Feedback

logger = logging.getLogger(__name__)


class ConversationDao:
    """
    Data Access Object (DAO) for managing Conversation entities.
    Provides CRUD operations on the `conversation` table.
    """

    def createConversation(self, session: Session, conversation: Conversation) -> Conversation:
        """
        Create a new conversation record.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation : Conversation
            Conversation entity instance to be added.

        Returns
        -------
        Conversation
            The staged entity (its id is assigned on flush).
        """
        try:
            session.add(conversation)
            return conversation
        except Exception as e:
            logger.error("Error in ConversationDao.createConversation. Error: %s", e)
            raise e

    def fetchConversationsByOwner(self, session: Session, owner: str) -> list[Conversation]:
        """
        Fetch all conversations belonging to an owner, most recently updated first.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        owner : str
            Owning identity.

        Returns
        -------
        list[Conversation]
        """
        try:
            return (
                session.query(Conversation)
                .filter(Conversation.owner == owner)
                .order_by(desc(Conversation.last_updated), desc(Conversation.id))
                .all()
            )
        except Exception as e:
            logger.error("Error in ConversationDao.fetchConversationsByOwner. Error: %s", e)
            raise e

    def fetchConversationByIdAndOwner(self, session: Session, conversation_id: int, owner: str) -> Conversation | None:
        """
        Fetch a conversation only if it belongs to `owner`.

        Returns ``None`` both for unknown ids and for conversations owned by
        someone else, so callers cannot tell the two apart.
        """
        try:
            return (
                session.query(Conversation)
                .filter(Conversation.id == conversation_id)
                .filter(Conversation.owner == owner)
                .one_or_none()
            )
        except Exception as e:
            logger.error("Error in ConversationDao.fetchConversationByIdAndOwner. Error: %s", e)
            raise e

    def updateConversationByDate(self, session: Session, conversation_id: int, timestamp: datetime):
        """
        Update the last updated timestamp of a conversation.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation_id : int
            Identifier of the conversation.
        timestamp : datetime
            New timestamp (UTC).
        """
        try:
            conversation = (
                session.query(Conversation).filter(Conversation.id == conversation_id).one()
            )
            conversation.last_updated = timestamp
        except Exception as e:
            logger.error("Error in ConversationDao.updateConversationByDate. Error: %s", e)
            raise e

    def updateConversationByName(self, session: Session, conversation_id: int, conversation_name: str):
        """
        Update the name of a conversation.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation_id : int
            Identifier of the conversation.
        conversation_name : str
            New conversation name to assign.
        """
        try:
            conversation = (
                session.query(Conversation).filter(Conversation.id == conversation_id).one()
            )
            conversation.conversation_name = conversation_name
        except Exception as e:
            logger.error("Error in ConversationDao.updateConversationByName. Error: %s", e)
            raise e

    def deleteConversation(self, session: Session, conversation_id: int):
        """
        Delete a conversation and everything it owns.

        Classification events and feedback go first, then turns (feedback
        references them), then the conversation row.
        """
        try:
            session.execute(
                delete(ClassificationEvent).where(ClassificationEvent.conversation_id == conversation_id)
            )
            session.execute(delete(Feedback).where(Feedback.conversation_id == conversation_id))
            session.execute(delete(Turn).where(Turn.conversation_id == conversation_id))
            session.execute(delete(Conversation).where(Conversation.id == conversation_id))
        except Exception as e:
            logger.error("Error in ConversationDao.deleteConversation. Error: %s", e)
            raise e
