"""
Turn Store — async facade over the service layer.

The controller and the routers only ever talk to the database through
`TurnStore`. Every method except `create_conversation`, `resolve` and
`list_conversations` requires an `OwnedConversation`, which can only be
obtained from those two entry points, so no read or write is reachable
without an owned conversation id.

The underlying service functions are synchronous SQLAlchemy code; they are
run with `starlette.concurrency.run_in_threadpool` so callers stay on a
single async/await idiom.
"""

from dataclasses import dataclass
from typing import Optional
from starlette.concurrency import run_in_threadpool
from tutorbot.database.core import funcs


@dataclass(frozen=True)
class OwnedConversation:
    """A conversation id already checked against its owner."""

    id: int
    owner: str
    is_document: bool = False
    name: str = ""

    @classmethod
    def from_record(cls, record: dict) -> "OwnedConversation":
        return cls(
            id=record["conversation_id"],
            owner=record["owner"],
            is_document=record["is_document"],
            name=record["conversation_name"],
        )


class TurnStore:
    """
    Async persistence surface for conversations, turns, classification events
    and feedback.
    """

    async def create_conversation(
        self, owner: str, name: str, document_mode: bool = False, group_id: Optional[int] = None
    ) -> OwnedConversation:
        record = await run_in_threadpool(
            funcs.create_conversation,
            owner=owner,
            conversation_name=name,
            is_document=document_mode,
            group_id=group_id,
        )
        return OwnedConversation.from_record(record)

    async def resolve(self, conversation_id, owner: str) -> Optional[OwnedConversation]:
        """
        Resolve `conversation_id` for `owner`.

        Returns None for malformed ids, unknown ids and foreign conversations alike.
        """
        try:
            conversation_id = int(conversation_id)
        except (TypeError, ValueError):
            return None
        record = await run_in_threadpool(
            funcs.get_owned_conversation, conversation_id=conversation_id, owner=owner
        )
        return OwnedConversation.from_record(record) if record else None

    async def list_conversations(self, owner: str) -> list[dict]:
        return await run_in_threadpool(funcs.get_conversations, owner=owner)

    async def rename_conversation(self, conversation: OwnedConversation, name: str) -> None:
        await run_in_threadpool(funcs.update_conv, conversation_id=conversation.id, conversation_name=name)

    async def delete_conversation(self, conversation: OwnedConversation) -> None:
        await run_in_threadpool(funcs.delete_conversation, conversation_id=conversation.id)

    async def insert_user_turn(self, conversation: OwnedConversation, text: str) -> dict:
        return await run_in_threadpool(
            funcs.create_turn,
            conversation_id=conversation.id,
            role="user",
            text=text,
            collapsed=False,
            scale_level=1,
        )

    async def find_empty_assistant_turn(self, conversation: OwnedConversation) -> Optional[dict]:
        return await run_in_threadpool(funcs.get_empty_assistant_turn, conversation_id=conversation.id)

    async def insert_or_update_placeholder_assistant_turn(
        self, conversation: OwnedConversation, text: str, collapsed: bool, scale_level: int
    ) -> dict:
        return await run_in_threadpool(
            funcs.save_assistant_turn,
            conversation_id=conversation.id,
            text=text,
            collapsed=collapsed,
            scale_level=scale_level,
        )

    async def find_turn_by_content(self, conversation: OwnedConversation, role: str, text: str) -> Optional[dict]:
        return await run_in_threadpool(
            funcs.get_turn_by_content, conversation_id=conversation.id, role=role, text=text
        )

    async def save_turns_if_absent(self, conversation: OwnedConversation, turns: list[dict]) -> list[dict]:
        return await run_in_threadpool(funcs.save_turns_if_absent, conversation_id=conversation.id, turns=turns)

    async def update_turn_content(
        self,
        conversation: OwnedConversation,
        turn_id: int,
        text: str,
        references: Optional[list] = None,
        prompts: Optional[list] = None,
        footer_removed: Optional[bool] = None,
    ) -> Optional[dict]:
        return await run_in_threadpool(
            funcs.update_turn_content,
            conversation_id=conversation.id,
            turn_id=turn_id,
            text=text,
            references=references,
            prompts=prompts,
            footer_removed=footer_removed,
        )

    async def update_turn_collapsed(self, conversation: OwnedConversation, turn_id: int, collapsed: bool) -> None:
        await run_in_threadpool(
            funcs.update_turn_collapsed, conversation_id=conversation.id, turn_id=turn_id, collapsed=collapsed
        )

    async def find_turn(self, conversation: OwnedConversation, turn_id: int) -> Optional[dict]:
        return await run_in_threadpool(funcs.get_turn, conversation_id=conversation.id, turn_id=turn_id)

    async def first_assistant_turn(self, conversation: OwnedConversation) -> Optional[dict]:
        return await run_in_threadpool(funcs.get_first_assistant_turn, conversation_id=conversation.id)

    async def append_classification_event(self, conversation: OwnedConversation, level: int) -> None:
        await run_in_threadpool(funcs.record_scale_level, conversation_id=conversation.id, level=level)

    async def list_classification_levels(self, conversation: OwnedConversation) -> list[int]:
        return await run_in_threadpool(funcs.get_scale_levels, conversation_id=conversation.id)

    async def insert_feedback(
        self,
        conversation: OwnedConversation,
        content: str,
        turn_id: Optional[int] = None,
        position: Optional[str] = None,
    ) -> dict:
        """Attach feedback to `turn_id`, or to the most recent turn when omitted."""
        return await run_in_threadpool(
            funcs.create_feedback,
            conversation_id=conversation.id,
            content=content,
            turn_id=turn_id,
            position=position,
        )

    async def list_feedback(self, conversation: OwnedConversation) -> list[dict]:
        return await run_in_threadpool(funcs.get_feedback, conversation_id=conversation.id)

    async def list_turns(self, conversation: OwnedConversation) -> list[dict]:
        return await run_in_threadpool(
            funcs.get_turns, conversation_id=conversation.id, is_document=conversation.is_document
        )
