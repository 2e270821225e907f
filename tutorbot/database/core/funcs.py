"""
Service-layer operations for conversations, turns, classification events and feedback.

All functions are wrapped with the `@transactional` decorator, which manages
SQLAlchemy sessions and transactions automatically. Each function accepts (and
uses) an injected `session: Session` provided by the decorator.

Results are plain dicts so nothing bound to a session leaks to callers.
Ownership is resolved before any of these run; every function is scoped by
a conversation id the caller already holds.
"""

from tutorbot.database.helpers.transactionManagement import transactional
from sqlalchemy.orm import Session
from datetime import datetime, timezone
import logging
from tutorbot.database.daos.conversation_dao import ConversationDao
from tutorbot.database.daos.turn_dao import TurnDao
from tutorbot.database.daos.classification_event_dao import ClassificationEventDao
from tutorbot.database.daos.feedback_dao import FeedbackDao
from tutorbot.database.entities.conversations import Conversation
from tutorbot.database.entities.messages import Turn
from tutorbot.database.entities.classification_events import ClassificationEvent
from tutorbot.database.entities.feedback import Feedback

logger = logging.getLogger(__name__)

MIN_LEVEL = 1
MAX_LEVEL = 5


def _conversation_to_dict(conversation: Conversation) -> dict:
    return {
        "conversation_id": conversation.id,
        "conversation_name": conversation.conversation_name,
        "owner": conversation.owner,
        "is_document": bool(conversation.is_document),
        "group_id": conversation.group_id,
        "last_updated": str(conversation.last_updated),
    }


def _turn_to_dict(turn: Turn) -> dict:
    return {
        "id": turn.id,
        "conversation_id": turn.conversation_id,
        "role": turn.role,
        "message": turn.message_text or "",
        "collapsed": bool(turn.collapsed),
        "scale_level": turn.scale_level,
        "references": list(turn.references_json or []),
        "prompts": list(turn.prompts_json or []),
        "footer_removed": turn.footer_removed,
        "timestamp": str(turn.date_created_on),
    }


def _feedback_to_dict(feedback: Feedback) -> dict:
    return {
        "id": feedback.id,
        "turn_id": feedback.message_id,
        "content": feedback.content,
        "position": feedback.position,
        "timestamp": str(feedback.date_created_on),
    }


def _touch(session: Session, conversation_id: int) -> None:
    ConversationDao().updateConversationByDate(
        session, conversation_id=conversation_id, timestamp=datetime.now(timezone.utc)
    )


@transactional
def create_conversation(
    session: Session,
    owner: str,
    conversation_name: str,
    is_document: bool = False,
    group_id: int | None = None,
) -> dict:
    """
    Create a new conversation for a given owner.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    owner : str
        Owning identity.
    conversation_name : str
        Human-readable name/title for the conversation.
    is_document : bool
        Create a document-mode conversation.
    group_id : int | None
        Optional advisory group.

    Returns
    -------
    dict
        Conversation summary (see `_conversation_to_dict`).

    Notes
    -----
    - An initial level-1 classification event is recorded so a fresh
      conversation already has a scale profile.
    - Document-mode conversations are seeded with one empty assistant turn
      that the user edits in place.
    """
    conversation_dao = ConversationDao()
    conversation = conversation_dao.createConversation(
        session,
        Conversation(
            conversation_name=conversation_name,
            owner=owner,
            is_document=is_document,
            group_id=group_id,
        ),
    )
    session.flush()
    ClassificationEventDao().createEvent(session, ClassificationEvent(conversation.id, MIN_LEVEL))
    if is_document:
        TurnDao().createTurn(session, Turn(conversation_id=conversation.id, role="assistant", message=""))
    session.flush()
    return _conversation_to_dict(conversation)


@transactional
def get_owned_conversation(session: Session, conversation_id: int, owner: str) -> dict | None:
    """
    Resolve a conversation id for an owner.

    Returns
    -------
    dict | None
        The conversation summary, or None when the id is unknown or owned by
        someone else.
    """
    conversation = ConversationDao().fetchConversationByIdAndOwner(session, conversation_id, owner)
    return _conversation_to_dict(conversation) if conversation else None


@transactional
def get_conversations(session: Session, owner: str) -> list[dict]:
    """
    List all conversations for an owner.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    owner : str
        Owning identity.

    Returns
    -------
    list[dict]
        Most recently updated first.
    """
    conversations = ConversationDao().fetchConversationsByOwner(session, owner)
    return [_conversation_to_dict(conversation) for conversation in conversations]


@transactional
def update_conv(session: Session, conversation_id: int, conversation_name: str) -> None:
    """
    Update the name/title of an existing conversation.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    conversation_id : int
        ID of the conversation to update.
    conversation_name : str
        New name for the conversation.
    """
    ConversationDao().updateConversationByName(session, conversation_id, conversation_name)


@transactional
def delete_conversation(session: Session, conversation_id: int) -> None:
    """Delete a conversation with its events, feedback and turns."""
    ConversationDao().deleteConversation(session, conversation_id)


@transactional
def create_turn(
    session: Session,
    conversation_id: int,
    role: str,
    text: str,
    collapsed: bool = False,
    scale_level: int = 1,
    references: list | None = None,
    prompts: list | None = None,
) -> dict:
    """
    Create a new turn within a conversation and update the conversation's last_updated timestamp.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    conversation_id : int
        ID of the parent conversation.
    role : str
        Author role ('user' or 'assistant').
    text : str
        Turn body.
    collapsed : bool
        Collapsed flag.
    scale_level : int
        Reliance level snapshot.
    references, prompts : list | None
        Optional citation metadata.

    Returns
    -------
    dict
        The stored turn (see `_turn_to_dict`).
    """
    turn = TurnDao().createTurn(
        session,
        Turn(
            conversation_id=conversation_id,
            role=role,
            message=text,
            collapsed=collapsed,
            scale_level=scale_level,
            references=references,
            prompts=prompts,
        ),
    )
    _touch(session, conversation_id)
    session.flush()
    return _turn_to_dict(turn)


@transactional
def get_empty_assistant_turn(session: Session, conversation_id: int) -> dict | None:
    turn = TurnDao().fetchEmptyAssistantTurn(session, conversation_id)
    return _turn_to_dict(turn) if turn else None


@transactional
def save_assistant_turn(
    session: Session,
    conversation_id: int,
    text: str,
    collapsed: bool,
    scale_level: int,
) -> dict:
    """
    Persist the assistant side of an exchange without duplicating the seed.

    If the conversation holds an assistant turn with empty text, that row is
    filled in place. Otherwise a new assistant turn is inserted.

    Returns
    -------
    dict
        The stored turn, plus ``reused`` telling whether the placeholder was updated.
    """
    turn_dao = TurnDao()
    placeholder = turn_dao.fetchEmptyAssistantTurn(session, conversation_id)
    if placeholder is not None:
        turn = turn_dao.updateTurnContent(
            session, placeholder, text, collapsed=collapsed, scale_level=scale_level
        )
        reused = True
    else:
        turn = turn_dao.createTurn(
            session,
            Turn(
                conversation_id=conversation_id,
                role="assistant",
                message=text,
                collapsed=collapsed,
                scale_level=scale_level,
            ),
        )
        reused = False
    _touch(session, conversation_id)
    session.flush()
    return {**_turn_to_dict(turn), "reused": reused}


@transactional
def get_turn_by_content(session: Session, conversation_id: int, role: str, text: str) -> dict | None:
    turn = TurnDao().fetchTurnByContent(session, conversation_id, role, text)
    return _turn_to_dict(turn) if turn else None


@transactional
def save_turns_if_absent(session: Session, conversation_id: int, turns: list[dict]) -> list[dict]:
    """
    Bulk-save turns, skipping any whose role and content already exist.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    conversation_id : int
        Target conversation.
    turns : list[dict]
        Items with ``role``, ``message`` and optional ``collapsed``/``scale_level``.

    Returns
    -------
    list[dict]
        One entry per input item, in order: the existing turn or the new one.
    """
    turn_dao = TurnDao()
    saved = []
    for item in turns:
        role = item["role"]
        text = item.get("message") or ""
        existing = turn_dao.fetchTurnByContent(session, conversation_id, role, text)
        if existing is not None:
            saved.append(existing)
            continue
        turn = turn_dao.createTurn(
            session,
            Turn(
                conversation_id=conversation_id,
                role=role,
                message=text,
                collapsed=bool(item.get("collapsed", False)),
                scale_level=int(item.get("scale_level") or 1),
            ),
        )
        # flush so a repeated item later in the same batch is found by content
        session.flush()
        saved.append(turn)
    if turns:
        _touch(session, conversation_id)
    return [_turn_to_dict(turn) for turn in saved]


@transactional
def update_turn_content(
    session: Session,
    conversation_id: int,
    turn_id: int,
    text: str,
    references: list | None = None,
    prompts: list | None = None,
    footer_removed: bool | None = None,
) -> dict | None:
    """
    Apply an explicit user edit to a turn.

    Returns
    -------
    dict | None
        The updated turn, or None if it does not exist in this conversation.
    """
    turn_dao = TurnDao()
    turn = turn_dao.fetchTurnById(session, conversation_id, turn_id)
    if turn is None:
        return None
    turn_dao.updateTurnContent(
        session,
        turn,
        text,
        references=references,
        prompts=prompts,
        footer_removed=footer_removed,
    )
    _touch(session, conversation_id)
    session.flush()
    return _turn_to_dict(turn)


@transactional
def update_turn_collapsed(session: Session, conversation_id: int, turn_id: int, collapsed: bool) -> None:
    TurnDao().updateTurnCollapsed(session, conversation_id, turn_id, collapsed)


@transactional
def get_turn(session: Session, conversation_id: int, turn_id: int) -> dict | None:
    turn = TurnDao().fetchTurnById(session, conversation_id, turn_id)
    return _turn_to_dict(turn) if turn else None


@transactional
def get_first_assistant_turn(session: Session, conversation_id: int) -> dict | None:
    turn = TurnDao().fetchFirstAssistantTurn(session, conversation_id)
    return _turn_to_dict(turn) if turn else None


@transactional
def record_scale_level(session: Session, conversation_id: int, level: int) -> None:
    """
    Append a classification event.

    Raises
    ------
    ValueError
        If `level` is outside 1-5.
    """
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise ValueError(f"Reliance level must be between {MIN_LEVEL} and {MAX_LEVEL}, got {level}")
    ClassificationEventDao().createEvent(session, ClassificationEvent(conversation_id, level))


@transactional
def get_scale_levels(session: Session, conversation_id: int) -> list[int]:
    return ClassificationEventDao().fetchDistinctLevels(session, conversation_id)


@transactional
def create_feedback(
    session: Session,
    conversation_id: int,
    content: str,
    turn_id: int | None = None,
    position: str | None = None,
) -> dict:
    """
    Persist feedback for a turn.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    conversation_id : int
        Owning conversation.
    content : str
        Feedback text.
    turn_id : int | None
        Target turn. When omitted the most recent turn of the conversation is used.
    position : str | None
        Optional placement hint.

    Returns
    -------
    dict
        The stored feedback (see `_feedback_to_dict`).

    Raises
    ------
    LookupError
        If `turn_id` is given but does not belong to the conversation.
    """
    turn_dao = TurnDao()
    if turn_id is None:
        latest = turn_dao.fetchLatestTurn(session, conversation_id)
        turn_id = latest.id if latest else None
    elif turn_dao.fetchTurnById(session, conversation_id, turn_id) is None:
        raise LookupError(f"Turn {turn_id} not found in conversation {conversation_id}")
    feedback = FeedbackDao().createFeedback(
        session,
        Feedback(conversation_id=conversation_id, message_id=turn_id, content=content, position=position),
    )
    session.flush()
    return _feedback_to_dict(feedback)


@transactional
def get_feedback(session: Session, conversation_id: int) -> list[dict]:
    feedback = FeedbackDao().fetchFeedbackByConversationId(session, conversation_id)
    return [_feedback_to_dict(item) for item in feedback]


@transactional
def get_turns(session: Session, conversation_id: int, is_document: bool = False) -> list[dict]:
    """
    List all turns for a conversation, formatted for API responses.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    conversation_id : int
        ID of the conversation.
    is_document : bool
        Whether the conversation runs in document mode.

    Returns
    -------
    list[dict]
        Turns in creation order. A document-mode conversation without any
        assistant turn gets exactly one empty one, persisted here so later
        reads return the same row.
    """
    turn_dao = TurnDao()
    if is_document and turn_dao.countAssistantTurns(session, conversation_id) == 0:
        logger.info("Seeding empty assistant turn for document conversation %s", conversation_id)
        turn_dao.createTurn(session, Turn(conversation_id=conversation_id, role="assistant", message=""))
        session.flush()
    turns = turn_dao.fetchTurnsByConversationId(session, conversation_id)
    return [_turn_to_dict(turn) for turn in turns]
