"""
Message Lifecycle
=================

Drives one user-initiated exchange from raw input to a persisted, scored and
reconciled pair of turns:

    submit_user_turn → stream_assistant_reply → classify_reliance → finalize_assistant_turn

Frames sent per exchange, in order::

    assistantDelta*  levelObserved  feedback?  turnFinalized

`turnFinalized` is sent exactly once; its ``turnId`` is None when nothing
could be persisted (stream failure, empty reply or store failure).

Failure policy
--------------
Oracle and store failures are logged and degrade the exchange (no level, no
feedback, turn not persisted) but never end it and never close the channel.
Malformed messages and conversations the caller does not own produce an
explicit ``error`` frame, as does a conversation that cannot be created on demand.

Per-connection state lives in `ChannelSession`; the controller itself holds
no mutable state and is shared by every connection.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from pydantic import BaseModel

from tutorbot.api.classification import RelianceClassifier
from tutorbot.api.models import (
    AssistantDeltaFrame,
    ChannelRequest,
    ConversationStartedFrame,
    ErrorFrame,
    FeedbackFrame,
    HistoryFeedback,
    HistoryFrame,
    HistoryTurn,
    LevelObservedFrame,
    TurnFinalizedFrame,
)
from tutorbot.api.prompt_utilities import (
    ASSESSMENT_PROMPT,
    COMPLETION_SYSTEM_PROMPT,
    FEEDBACK_PROMPT,
    build_transcript,
    clean_for_oracle,
    parse_criteria_statuses,
    trim_at_references,
)
from tutorbot.api.rendering import escape_html, format_hint, render
from tutorbot.database.config.config import settings
from tutorbot.database.core.turn_store import OwnedConversation, TurnStore

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Conversation not found"
START_FAILED_MESSAGE = "Conversation could not be started"


class ChannelSession:
    """
    State of one client connection.

    Parameters
    ----------
    owner : str
        Identity resolved by the auth collaborator.
    sink : Callable[[dict], Awaitable[None]]
        Delivers one serialized frame to the client (e.g. ``websocket.send_json``).

    Notes
    -----
    Once delivery fails the session is marked closed and later frames are
    dropped, while the exchange itself keeps running to completion.
    """

    def __init__(self, owner: str, sink: Callable[[dict], Awaitable[None]]):
        self.owner = owner
        self.conversation: Optional[OwnedConversation] = None
        self.transcript: List[dict] = []
        self.closed = False
        self._sink = sink

    @property
    def conversation_id(self) -> Optional[int]:
        return self.conversation.id if self.conversation else None

    @property
    def is_document(self) -> bool:
        return bool(self.conversation and self.conversation.is_document)

    def bind(self, conversation: OwnedConversation, transcript: Optional[List[dict]] = None) -> None:
        self.conversation = conversation
        self.transcript = list(transcript or [])

    async def send(self, frame: BaseModel) -> bool:
        """Serialize and deliver a frame; returns False if the client is gone."""
        if self.closed:
            return False
        try:
            await self._sink(frame.model_dump(by_alias=True))
        except Exception as e:
            logger.warning("Client of %s went away, dropping further frames: %s", self.owner, e)
            self.closed = True
            return False
        return True


@dataclass
class StreamOutcome:
    text: str
    completed: bool
    truncated: bool = False


def default_conversation_name() -> str:
    return f"Session {datetime.now(timezone.utc):%Y-%m-%d %H:%M}"


class MessageLifecycleController:
    """
    Orchestrates exchanges for every connected client.

    Args:
        store (TurnStore): Persistence facade.
        oracle: Object exposing ``classify``, ``complete_streaming`` and ``short_feedback``.
        classifier (RelianceClassifier | None): Defaults to the standard chain over `oracle`.
        turn_char_cap (int | None): Per-turn oracle input cap.
        transcript_char_budget (int | None): Total transcript budget.
        collapse_threshold (int | None): Level from which assistant turns are collapsed.
        feedback_threshold (int | None): Max level from which automatic feedback is requested.
        exchange_timeout (float | None): Seconds before a stream is force-finalized; 0 disables.
    """

    def __init__(
        self,
        store: TurnStore,
        oracle,
        classifier: Optional[RelianceClassifier] = None,
        turn_char_cap: Optional[int] = None,
        transcript_char_budget: Optional[int] = None,
        collapse_threshold: Optional[int] = None,
        feedback_threshold: Optional[int] = None,
        exchange_timeout: Optional[float] = None,
    ):
        self.store = store
        self.oracle = oracle
        self.classifier = classifier or RelianceClassifier(oracle)
        self.turn_char_cap = turn_char_cap if turn_char_cap is not None else settings.TURN_CHAR_CAP
        self.transcript_char_budget = (
            transcript_char_budget if transcript_char_budget is not None else settings.TRANSCRIPT_CHAR_BUDGET
        )
        self.collapse_threshold = collapse_threshold if collapse_threshold is not None else settings.COLLAPSE_THRESHOLD
        self.feedback_threshold = feedback_threshold if feedback_threshold is not None else settings.FEEDBACK_THRESHOLD
        self.exchange_timeout = exchange_timeout if exchange_timeout is not None else settings.EXCHANGE_TIMEOUT_SECONDS

    async def handle(self, session: ChannelSession, request: ChannelRequest) -> None:
        """
        Dispatch one inbound message. Never raises.

        - ``action == "assess"`` → `assess_document`
        - non-blank ``text``     → `run_exchange`
        - blank ``text``         → nothing, even with a ``conversationId``
        - ``conversationId`` only → `send_history`
        """
        try:
            if request.action == "assess":
                await self.assess_document(session, request.conversation_id, request.text or "")
            elif request.text is not None:
                if request.text.strip():
                    await self.run_exchange(session, request.conversation_id, request.text)
                else:
                    logger.info("Received an empty message from %s, skipping processing.", session.owner)
            elif request.conversation_id is not None:
                await self.send_history(session, request.conversation_id)
            else:
                logger.info("Received a message without text or conversation from %s, skipping.", session.owner)
        except Exception:
            logger.exception("Unhandled failure while processing a message from %s", session.owner)

    async def _load_transcript(self, conversation: OwnedConversation) -> List[dict]:
        try:
            turns = await self.store.list_turns(conversation)
        except Exception:
            logger.exception("Error loading history of conversation %s", conversation.id)
            return []
        return [{"role": turn["role"], "content": turn["message"]} for turn in turns if turn["message"]]

    async def _bind_conversation(
        self,
        session: ChannelSession,
        conversation_id: Optional[int],
        create: bool = True,
        load_transcript: bool = True,
    ) -> Optional[OwnedConversation]:
        """
        Make `conversation_id` the session's conversation.

        Without an id the current conversation is kept, or a new one is created
        and announced with ``conversationStarted``. Ids the owner cannot access
        get an error frame and None, as does a failed on-demand creation.
        """
        if conversation_id is None:
            if session.conversation is not None:
                return session.conversation
            if not create:
                return None
            try:
                conversation = await self.store.create_conversation(session.owner, default_conversation_name())
            except Exception:
                logger.exception("Error creating a conversation for %s", session.owner)
                await session.send(ErrorFrame(message=START_FAILED_MESSAGE))
                return None
            session.bind(conversation)
            logger.info("Created conversation %s for %s", conversation.id, session.owner)
            await session.send(
                ConversationStartedFrame(conversation_id=conversation.id, is_document=conversation.is_document)
            )
            return conversation

        if session.conversation is not None and session.conversation.id == conversation_id:
            return session.conversation

        try:
            conversation = await self.store.resolve(conversation_id, session.owner)
        except Exception:
            logger.exception("Error resolving conversation %s", conversation_id)
            conversation = None
        if conversation is None:
            await session.send(ErrorFrame(message=NOT_FOUND_MESSAGE))
            return None
        transcript = await self._load_transcript(conversation) if load_transcript else []
        session.bind(conversation, transcript)
        return conversation

    async def run_exchange(self, session: ChannelSession, conversation_id: Optional[int], raw_text: str) -> Optional[int]:
        """
        Run one full exchange.

        Returns
        -------
        int | None
            Durable id of the assistant turn, if one was persisted.
        """
        conversation = await self._bind_conversation(session, conversation_id)
        if conversation is None:
            return None
        if not raw_text or not raw_text.strip():
            logger.info("Empty user turn for conversation %s ignored", conversation.id)
            return None

        prior = list(session.transcript)
        await self.submit_user_turn(session, raw_text)
        transcript = build_transcript(prior, raw_text, self.turn_char_cap, self.transcript_char_budget)

        outcome = await self.stream_assistant_reply(session, transcript)
        levels = await self.classify_reliance(session, transcript, raw_text)
        await session.send(LevelObservedFrame(levels=levels))

        if not outcome.completed or not outcome.text:
            if outcome.completed:
                logger.warning("Oracle returned an empty reply for conversation %s", conversation.id)
            await session.send(TurnFinalizedFrame(turn_id=None))
            return None
        if outcome.truncated:
            logger.warning("Finalizing timeout-truncated turn for conversation %s", conversation.id)
        return await self.finalize_assistant_turn(session, outcome.text, levels, raw_text)

    async def submit_user_turn(self, session: ChannelSession, raw_text: str) -> Optional[dict]:
        """
        Append the user line to the transcript and persist it.

        A store failure is logged and the exchange carries on from memory.
        """
        if not raw_text or not raw_text.strip():
            logger.info("Received an empty or null message content, skipping processing.")
            return None
        session.transcript.append({"role": "user", "content": raw_text})
        try:
            turn = await self.store.insert_user_turn(session.conversation, raw_text)
        except Exception:
            logger.exception("Error saving user message to conversation %s", session.conversation_id)
            return None
        logger.info("User message saved to conversation %s", session.conversation_id)
        return turn

    async def _deltas(self, stream: AsyncIterator[str]) -> AsyncIterator[str]:
        if not self.exchange_timeout:
            async for delta in stream:
                yield delta
            return
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.exchange_timeout
        iterator = stream.__aiter__()
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise asyncio.TimeoutError()
            try:
                delta = await asyncio.wait_for(iterator.__anext__(), remaining)
            except StopAsyncIteration:
                return
            yield delta

    async def stream_assistant_reply(self, session: ChannelSession, transcript: List[dict]) -> StreamOutcome:
        """
        Forward every oracle delta to the client as it arrives and accumulate it.

        Returns
        -------
        StreamOutcome
            ``completed`` is False when the oracle failed mid-stream; partial
            text already forwarded stays on the client and is not persisted.
            ``truncated`` is set when the exchange timeout cut the stream short.
        """
        chunks: List[str] = []
        try:
            stream = self.oracle.complete_streaming(COMPLETION_SYSTEM_PROMPT, transcript)
            async for delta in self._deltas(stream):
                if not delta:
                    continue
                chunks.append(delta)
                await session.send(AssistantDeltaFrame(text=delta, format=format_hint(delta)))
        except asyncio.TimeoutError:
            logger.warning(
                "Completion for conversation %s exceeded %ss; keeping %d streamed characters",
                session.conversation_id, self.exchange_timeout, sum(len(c) for c in chunks),
            )
            return StreamOutcome("".join(chunks), completed=True, truncated=True)
        except Exception:
            logger.exception("Error during completion streaming for conversation %s", session.conversation_id)
            return StreamOutcome("".join(chunks), completed=False)
        return StreamOutcome("".join(chunks), completed=True)

    async def classify_reliance(
        self, session: ChannelSession, transcript: List[dict], latest_user_text: str
    ) -> List[int]:
        """
        Score the latest user request and record the level.

        Only `latest_user_text` is scored; `transcript` is accepted for
        context and deliberately not sent to the classifier.

        Returns
        -------
        list[int]
            The levels observed in this call: one element, or empty when
            classification failed.
        """
        subject = clean_for_oracle(latest_user_text, self.turn_char_cap)
        try:
            level = await self.classifier.classify(subject)
        except Exception:
            logger.exception("Error during reliance classification")
            level = None
        if level is None:
            return []
        try:
            await self.store.append_classification_event(session.conversation, level)
        except Exception:
            logger.exception("Error saving scale level for conversation %s", session.conversation_id)
        return [level]

    async def finalize_assistant_turn(
        self,
        session: ChannelSession,
        accumulated_text: str,
        observed_levels: List[int],
        user_text: str = "",
    ) -> Optional[int]:
        """
        Persist the rendered reply, send conditional feedback and the final id.

        - ``scale_level = observed_levels[0]`` (1 when nothing was observed)
        - collapsed iff ``scale_level >= collapse_threshold``
        - an empty assistant placeholder is filled in place instead of inserting
        - automatic feedback only outside document mode, when the max level
          reaches ``feedback_threshold``
        """
        scale_level = observed_levels[0] if observed_levels else 1
        collapsed = scale_level >= self.collapse_threshold
        rendered = render(accumulated_text) or escape_html(accumulated_text)
        session.transcript.append({"role": "assistant", "content": accumulated_text})

        turn_id = None
        try:
            turn = await self.store.insert_or_update_placeholder_assistant_turn(
                session.conversation, rendered, collapsed, scale_level
            )
            turn_id = turn["id"]
            logger.info(
                "Assistant message saved to conversation %s (turn %s, collapsed=%s, scale_level=%s, reused=%s)",
                session.conversation_id, turn_id, collapsed, scale_level, turn.get("reused"),
            )
        except Exception:
            logger.exception("Error saving assistant message to conversation %s", session.conversation_id)

        if not session.is_document and observed_levels and max(observed_levels) >= self.feedback_threshold:
            await self._send_automatic_feedback(session, user_text, turn_id)

        await session.send(TurnFinalizedFrame(turn_id=turn_id))
        return turn_id

    async def _send_automatic_feedback(self, session: ChannelSession, user_text: str, turn_id: Optional[int]) -> None:
        try:
            feedback = await self.oracle.short_feedback(
                FEEDBACK_PROMPT, clean_for_oracle(user_text, self.turn_char_cap)
            )
        except Exception:
            logger.exception("Error generating feedback")
            return
        if not feedback:
            return
        if turn_id is not None:
            try:
                await self.store.insert_feedback(session.conversation, feedback, turn_id=turn_id)
            except Exception:
                logger.exception("Error saving feedback for turn %s", turn_id)
        await session.send(FeedbackFrame(text=feedback, turn_id=turn_id, format=format_hint(feedback)))

    async def send_history(self, session: ChannelSession, conversation_id: int) -> None:
        """
        Send turns, feedback and the scale profile of a conversation.

        Each part that cannot be read is logged and sent empty.
        """
        conversation = await self._bind_conversation(session, conversation_id, create=False, load_transcript=False)
        if conversation is None:
            return

        turns, feedback, levels = [], [], []
        try:
            turns = await self.store.list_turns(conversation)
        except Exception:
            logger.exception("Error fetching turns of conversation %s", conversation.id)
        try:
            feedback = await self.store.list_feedback(conversation)
        except Exception:
            logger.exception("Error fetching feedback of conversation %s", conversation.id)
        try:
            levels = await self.store.list_classification_levels(conversation)
        except Exception:
            logger.exception("Error fetching scale levels of conversation %s", conversation.id)

        session.bind(
            conversation,
            [{"role": turn["role"], "content": turn["message"]} for turn in turns if turn["message"]],
        )
        await session.send(
            HistoryFrame(
                conversation_id=conversation.id,
                is_document=conversation.is_document,
                turns=[HistoryTurn.from_record(turn) for turn in turns],
                feedback=[HistoryFeedback.from_record(item) for item in feedback],
                levels=levels,
            )
        )

    async def assess_document(self, session: ChannelSession, conversation_id: Optional[int], draft: str) -> None:
        """
        Score a document-mode draft criterion by criterion.

        The draft is cut at its References section before assessment. The
        result is sent as a ``feedback`` frame carrying per-criterion
        statuses; it is not persisted and never touches the reliance scale.
        """
        turn_id = None
        if conversation_id is not None:
            conversation = await self._bind_conversation(session, conversation_id, create=False)
            if conversation is None:
                return
            if conversation.is_document:
                try:
                    first = await self.store.first_assistant_turn(conversation)
                    turn_id = first["id"] if first else None
                except Exception:
                    logger.exception("Error fetching the document turn of conversation %s", conversation.id)

        content = clean_for_oracle(trim_at_references(draft), self.transcript_char_budget)
        if not content:
            logger.info("Nothing to assess for %s", session.owner)
            return
        try:
            feedback = await self.oracle.short_feedback(ASSESSMENT_PROMPT, content)
        except Exception:
            logger.exception("Error generating assessment feedback")
            return
        if not feedback:
            return
        await session.send(
            FeedbackFrame(
                text=feedback,
                turn_id=turn_id,
                format=format_hint(feedback),
                criteria=parse_criteria_statuses(feedback),
            )
        )
