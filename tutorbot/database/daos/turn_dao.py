"""
Turn DAO

Purpose
-------
Data-access layer for the `Turn` ORM entity (table ``message``). Provides:
- Turn creation
- Retrieval by conversation (creation order)
- The idempotent lookups used to avoid duplicate assistant rows: the empty
  placeholder assistant turn, and a turn with identical content
- Targeted updates (content, citations, collapsed flag)

Design
------
- Requires an active SQLAlchemy `Session` provided by the caller.
- Ordering uses the autoincrement id, which follows insertion order even when
  two rows share a timestamp.
- Every query is scoped by ``conversation_id``; callers resolve ownership
  before reaching this layer.

Error Handling
--------------
- Methods log the error and re-raise.
"""

from sqlalchemy.orm import Session
from sqlalchemy import asc, desc, or_
from typing import List, Optional
import logging
from tutorbot.database.entities.messages import Turn

logger = logging.getLogger(__name__)


class TurnDao:
    """
    Data Access Object (DAO) for managing conversation turns.
    """

    def createTurn(self, session: Session, turn: Turn) -> Turn:
        """
        Stage a new turn.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        turn : Turn
            Entity to add. Its id is assigned on flush.

        Returns
        -------
        Turn
            The staged entity.
        """
        try:
            session.add(turn)
            return turn
        except Exception as e:
            logger.error("Error in TurnDao.createTurn. Error Message: %s", e)
            raise e

    def fetchTurnById(self, session: Session, conversation_id: int, turn_id: int) -> Optional[Turn]:
        try:
            return (
                session.query(Turn)
                .filter(Turn.id == turn_id, Turn.conversation_id == conversation_id)
                .one_or_none()
            )
        except Exception as e:
            logger.error("Error in TurnDao.fetchTurnById (id=%s). Error Message: %s", turn_id, e)
            raise e

    def fetchTurnsByConversationId(self, session: Session, conversation_id: int) -> List[Turn]:
        """
        Fetch all turns in a conversation in creation order.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation_id : int
            Identifier of the conversation.

        Returns
        -------
        list[Turn]
        """
        try:
            return (
                session.query(Turn)
                .filter(Turn.conversation_id == conversation_id)
                .order_by(asc(Turn.id))
                .all()
            )
        except Exception as e:
            logger.error("Error in TurnDao.fetchTurnsByConversationId. Error Message: %s", e)
            raise e

    def fetchEmptyAssistantTurn(self, session: Session, conversation_id: int) -> Optional[Turn]:
        """
        Return the oldest assistant turn whose text is empty, if any.

        This is the document-mode seed placeholder.
        """
        try:
            return (
                session.query(Turn)
                .filter(Turn.conversation_id == conversation_id)
                .filter(Turn.role == "assistant")
                .filter(or_(Turn.message_text.is_(None), Turn.message_text == ""))
                .order_by(asc(Turn.id))
                .first()
            )
        except Exception as e:
            logger.error("Error in TurnDao.fetchEmptyAssistantTurn. Error Message: %s", e)
            raise e

    def fetchTurnByContent(self, session: Session, conversation_id: int, role: str, text: str) -> Optional[Turn]:
        try:
            return (
                session.query(Turn)
                .filter(Turn.conversation_id == conversation_id)
                .filter(Turn.role == role)
                .filter(Turn.message_text == text)
                .order_by(asc(Turn.id))
                .first()
            )
        except Exception as e:
            logger.error("Error in TurnDao.fetchTurnByContent. Error Message: %s", e)
            raise e

    def fetchFirstAssistantTurn(self, session: Session, conversation_id: int) -> Optional[Turn]:
        try:
            return (
                session.query(Turn)
                .filter(Turn.conversation_id == conversation_id)
                .filter(Turn.role == "assistant")
                .order_by(asc(Turn.id))
                .first()
            )
        except Exception as e:
            logger.error("Error in TurnDao.fetchFirstAssistantTurn. Error Message: %s", e)
            raise e

    def fetchLatestTurn(self, session: Session, conversation_id: int) -> Optional[Turn]:
        try:
            return (
                session.query(Turn)
                .filter(Turn.conversation_id == conversation_id)
                .order_by(desc(Turn.id))
                .first()
            )
        except Exception as e:
            logger.error("Error in TurnDao.fetchLatestTurn. Error Message: %s", e)
            raise e

    def countAssistantTurns(self, session: Session, conversation_id: int) -> int:
        try:
            return (
                session.query(Turn)
                .filter(Turn.conversation_id == conversation_id)
                .filter(Turn.role == "assistant")
                .count()
            )
        except Exception as e:
            logger.error("Error in TurnDao.countAssistantTurns. Error Message: %s", e)
            raise e

    def updateTurnContent(
        self,
        session: Session,
        turn: Turn,
        text: str,
        collapsed: bool | None = None,
        scale_level: int | None = None,
        references: list | None = None,
        prompts: list | None = None,
        footer_removed: bool | None = None,
    ) -> Turn:
        """
        Mutate an already-fetched turn in place.

        Only arguments that are not ``None`` are applied, so an edit that only
        changes the text leaves the citation metadata untouched.
        """
        try:
            turn.message_text = text
            if collapsed is not None:
                turn.collapsed = collapsed
            if scale_level is not None:
                turn.scale_level = scale_level
            if references is not None:
                turn.references_json = list(references)
            if prompts is not None:
                turn.prompts_json = list(prompts)
            if footer_removed is not None:
                turn.footer_removed = footer_removed
            return turn
        except Exception as e:
            logger.error("Error in TurnDao.updateTurnContent. Error Message: %s", e)
            raise e

    def updateTurnCollapsed(self, session: Session, conversation_id: int, turn_id: int, collapsed: bool):
        """
        Update the collapsed flag of a specific turn within a conversation.

        Raises
        ------
        NoResultFound
            If the turn does not exist in this conversation.
        """
        try:
            turn = (
                session.query(Turn)
                .filter(Turn.id == turn_id, Turn.conversation_id == conversation_id)
                .one()
            )
            turn.collapsed = collapsed
        except Exception as e:
            logger.error("Error in TurnDao.updateTurnCollapsed. Error Message: %s", e)
            raise e
