"""
FastAPI Router — Conversations • Turns • Feedback (Reliance Tutor)
==================================================================

Purpose
-------
Defines the HTTP API around the tutor's chat channel:
- Conversations: start (chat or document mode), list, rename, delete
- Turns: list, bulk save, explicit edits (document drafting), collapse toggle
- Feedback: manual feedback on a turn

Key Notes
---------
- Input validation via Pydantic models in `tutorbot.api.models`.
- Auth cookie: `token` (JWT). Every endpoint requires it; its subject is the owner.
- Every conversation id is resolved against the owner first. Unknown and
  foreign ids get the same ``{"success": False, "message": ...}`` response.
- In document mode, edits and feedback target the first assistant turn unless
  a turn id is given; in ordinary conversations feedback goes to the latest turn.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request
from sqlalchemy.exc import NoResultFound

from tutorbot.api.lifecycle import default_conversation_name
from tutorbot.api.models import (
    FeedbackDetails,
    HistoryFeedback,
    HistoryTurn,
    RenameConversationDetails,
    SaveSessionDetails,
    StartSessionDetails,
    UpdateCollapsedDetails,
    UpdateMessageDetails,
    normalize_prompts,
)
from tutorbot.api.prompt_utilities import build_reference_text
from tutorbot.api.rendering import sanitize_html
from tutorbot.api.utils import verify_token
from tutorbot.database.core.turn_store import OwnedConversation, TurnStore

logger = logging.getLogger(__name__)

router = APIRouter()
"""Creates the FastAPI router in which we define its routes"""

NOT_OWNED = {"success": False, "message": "Conversation not found"}


def current_owner(token: str = Cookie(None)) -> str:
    """Resolve the `token` cookie to the owning identity, or reject with 401."""
    if not token:
        raise HTTPException(status_code=401, detail='Missing Token')
    owner = verify_token(token)
    if not owner:
        raise HTTPException(status_code=401, detail='Invalid or expired token')
    return owner


def get_store(request: Request) -> TurnStore:
    return request.app.state.store


async def _resolve(store: TurnStore, conversation_id, owner: str) -> Optional[OwnedConversation]:
    conversation = await store.resolve(conversation_id, owner)
    if conversation is None:
        logger.info("Conversation %s not resolvable for %s", conversation_id, owner)
    return conversation


async def _document_target(store: TurnStore, conversation: OwnedConversation, turn_id: Optional[int]) -> Optional[int]:
    if turn_id is not None or not conversation.is_document:
        return turn_id
    first = await store.first_assistant_turn(conversation)
    return first["id"] if first else None


async def _start(store: TurnStore, owner: str, data: Optional[StartSessionDetails], document_mode: bool) -> dict:
    data = data or StartSessionDetails()
    name = data.conversation_name or default_conversation_name()
    conversation = await store.create_conversation(owner, name, document_mode=document_mode, group_id=data.group_id)
    logger.info("Started %s conversation %s for %s", "document" if document_mode else "chat", conversation.id, owner)
    return {
        "success": True,
        "conversation_id": conversation.id,
        "conversation_name": conversation.name,
        "is_document": conversation.is_document,
    }


@router.post('/start-session')
async def start_session(
    data: Optional[StartSessionDetails] = None,
    owner: str = Depends(current_owner),
    store: TurnStore = Depends(get_store),
):
    """Create an ordinary chat conversation.

    Returns:
        {"success": True, "conversation_id", "conversation_name", "is_document": False}
    """
    return await _start(store, owner, data, document_mode=False)


@router.post('/start-document')
async def start_document(
    data: Optional[StartSessionDetails] = None,
    owner: str = Depends(current_owner),
    store: TurnStore = Depends(get_store),
):
    """Create a document-mode conversation seeded with one empty assistant turn."""
    return await _start(store, owner, data, document_mode=True)


@router.get('/conversations')
async def get_user_conversations(owner: str = Depends(current_owner), store: TurnStore = Depends(get_store)):
    """List the caller's conversations, most recently updated first."""
    return await store.list_conversations(owner)


@router.get('/messages')
async def get_messages(
    conversation_id: str = '',
    owner: str = Depends(current_owner),
    store: TurnStore = Depends(get_store),
):
    """Turns, feedback and scale profile of one conversation.

    Returns:
        {"success": True, "turns": [...], "feedback": [...], "levels": [...]}, or
        {"success": False, "message"} for ids the caller does not own.
    """
    conversation = await _resolve(store, conversation_id, owner)
    if conversation is None:
        return NOT_OWNED
    turns = await store.list_turns(conversation)
    feedback = await store.list_feedback(conversation)
    levels = await store.list_classification_levels(conversation)
    return {
        "success": True,
        "conversation_id": conversation.id,
        "is_document": conversation.is_document,
        "turns": [HistoryTurn.from_record(turn).model_dump(by_alias=True) for turn in turns],
        "feedback": [HistoryFeedback.from_record(item).model_dump(by_alias=True) for item in feedback],
        "levels": levels,
    }


@router.post('/rename-conversation')
async def rename_conversation(
    data: RenameConversationDetails,
    owner: str = Depends(current_owner),
    store: TurnStore = Depends(get_store),
):
    """Rename a conversation by ID."""
    conversation = await _resolve(store, data.conversation_id, owner)
    if conversation is None:
        return NOT_OWNED
    await store.rename_conversation(conversation, data.conversation_name)
    return {"success": True}


@router.delete('/delete-conversation')
async def delete_conversation(
    conversation_id: int,
    owner: str = Depends(current_owner),
    store: TurnStore = Depends(get_store),
):
    """Delete a conversation together with its turns, feedback and scale levels."""
    conversation = await _resolve(store, conversation_id, owner)
    if conversation is None:
        return NOT_OWNED
    await store.delete_conversation(conversation)
    logger.info("Deleted conversation %s of %s", conversation.id, owner)
    return {"success": True}


@router.post('/save-feedback')
async def save_feedback(
    data: FeedbackDetails,
    owner: str = Depends(current_owner),
    store: TurnStore = Depends(get_store),
):
    """Attach manual feedback to a turn.

    The target is `turn_id` when given; otherwise the first assistant turn in
    document mode, or the most recent turn of an ordinary conversation.
    """
    conversation = await _resolve(store, data.conversation_id, owner)
    if conversation is None:
        return NOT_OWNED
    turn_id = await _document_target(store, conversation, data.turn_id)
    try:
        feedback = await store.insert_feedback(conversation, data.content, turn_id=turn_id, position=data.position)
    except LookupError as e:
        return {"success": False, "message": str(e)}
    return {"success": True, "feedback": HistoryFeedback.from_record(feedback).model_dump(by_alias=True)}


@router.post('/save-session')
async def save_session(
    data: SaveSessionDetails,
    owner: str = Depends(current_owner),
    store: TurnStore = Depends(get_store),
):
    """Bulk-save a client transcript.

    Turns whose role and content are already stored are skipped, so saving the
    same transcript twice is harmless. Feedback items pointing at transient
    client ids are attached to the latest turn.
    """
    conversation = await _resolve(store, data.conversation_id, owner)
    if conversation is None:
        return NOT_OWNED

    turns = [
        {
            "role": turn.role,
            "message": sanitize_html(turn.content) if turn.role == "assistant" else turn.content,
            "collapsed": turn.collapsed,
            "scale_level": turn.scale_level,
        }
        for turn in data.turns
        if turn.content
    ]
    saved = await store.save_turns_if_absent(conversation, turns)

    feedback_saved = 0
    for item in data.feedback:
        turn_id = item.turn_id if isinstance(item.turn_id, int) else None
        try:
            await store.insert_feedback(conversation, item.content, turn_id=turn_id, position=item.position)
            feedback_saved += 1
        except LookupError as e:
            logger.warning("Skipping feedback for conversation %s: %s", conversation.id, e)
    return {"success": True, "turn_ids": [turn["id"] for turn in saved], "feedback_saved": feedback_saved}


@router.post('/update-message')
async def update_message(
    data: UpdateMessageDetails,
    owner: str = Depends(current_owner),
    store: TurnStore = Depends(get_store),
):
    """Apply an explicit edit to a turn (document drafting).

    Content is sanitized and prompt evidence normalized before storage. With
    `cite_prompt`, a citation for that prompt is added to the references once.
    """
    conversation = await _resolve(store, data.conversation_id, owner)
    if conversation is None:
        return NOT_OWNED
    turn_id = await _document_target(store, conversation, data.turn_id)
    if turn_id is None:
        return {"success": False, "message": "No turn to update"}

    references = data.references
    if data.cite_prompt is not None:
        if references is None:
            current = await store.find_turn(conversation, turn_id)
            if current is None:
                return {"success": False, "message": "Turn not found"}
            references = current["references"]
        citation = build_reference_text(data.cite_prompt)
        references = list(references) + ([citation] if citation not in references else [])

    updated = await store.update_turn_content(
        conversation,
        turn_id,
        sanitize_html(data.content),
        references=references,
        prompts=normalize_prompts(data.prompts) if data.prompts is not None else None,
        footer_removed=data.footer_removed,
    )
    if updated is None:
        return {"success": False, "message": "Turn not found"}
    return {
        "success": True,
        "turn": HistoryTurn.from_record(updated).model_dump(by_alias=True),
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }


@router.post('/update-message-collapsed')
async def update_message_collapsed(
    data: UpdateCollapsedDetails,
    owner: str = Depends(current_owner),
    store: TurnStore = Depends(get_store),
):
    """Set the collapsed flag of one turn."""
    conversation = await _resolve(store, data.conversation_id, owner)
    if conversation is None:
        return NOT_OWNED
    try:
        await store.update_turn_collapsed(conversation, data.turn_id, data.collapsed)
    except NoResultFound:
        return {"success": False, "message": "Turn not found"}
    return {"success": True}
