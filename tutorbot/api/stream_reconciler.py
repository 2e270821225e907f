"""
Stream Reconciler
=================

Client side of the channel contract: consumes server frames and keeps a list
of rendered turns in sync, so a streamed reply is shown progressively before
it has a durable id and adopts that id without being re-rendered.

Per in-flight assistant turn::

    EMPTY → STREAMING → FINALIZING → FINALIZED

- first ``assistantDelta``  : container created under the placeholder id "streaming"
- ``tick()``               : reveals a bounded chunk of the raw buffer and re-renders it
- ``levelObserved``        : end of stream; remaining text is drained in one pass
- ``turnFinalized``        : the placeholder id is replaced with the durable id

Rendering goes through `tutorbot.api.rendering`, the same pipeline used when
turns are persisted. Once any delta of a turn is hinted as HTML the turn stays
HTML until it is finalized.

The reconciler never touches the network; a websocket client feeds it with
`handle` and drives `pump` (or calls `tick` itself with its own clock).
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Union

from tutorbot.api.rendering import FORMAT_HTML, FORMAT_MARKDOWN, render, render_plain, sanitize_html

logger = logging.getLogger(__name__)

PLACEHOLDER_ID = "streaming"
MARKDOWN_CHUNK = 24
HTML_CHUNK = 128
TICK_INTERVAL = 0.06
IDLE_TIMEOUT = 0.3
LOCK_LEVEL = 3


class ReconcilerState(str, Enum):
    EMPTY = "empty"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"


@dataclass
class RenderedTurn:
    """One container in the client's turn list."""
    id: Union[int, str, None]
    role: str
    html: str = ""
    raw: str = ""
    visible: str = ""
    format: str = FORMAT_MARKDOWN
    collapsed: bool = False
    scale_level: int = 1
    locked: bool = False
    is_seed: bool = False
    feedback: List[str] = field(default_factory=list)

    @property
    def has_durable_id(self) -> bool:
        return isinstance(self.id, int) and not isinstance(self.id, bool)


class StreamReconciler:
    """
    Frame consumer for one conversation view.

    Args:
        clock (Callable[[], float]): Monotonic clock in seconds; injectable for tests.
        is_document (bool): Document-mode view (no auto-lock, first assistant turn is the seed).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, is_document: bool = False):
        self._clock = clock
        self.is_document = is_document
        self.conversation_id: Optional[int] = None
        self.state = ReconcilerState.EMPTY
        self.turns: List[RenderedTurn] = []
        self.active: Optional[RenderedTurn] = None
        self.levels: List[int] = []
        self.feedback: List[dict] = []
        self.errors: List[str] = []
        self._last_delta_at: Optional[float] = None
        self._idle_rendered = False
        self._pending_level: Optional[int] = None

    @property
    def scale_profile(self) -> List[int]:
        """Distinct reliance levels observed for the conversation."""
        return sorted(set(self.levels))

    @property
    def locked_turns(self) -> List[RenderedTurn]:
        return [turn for turn in self.turns if turn.locked]

    def handle(self, frame: dict) -> None:
        """Apply one server frame."""
        kind = frame.get("kind")
        if kind == "assistantDelta":
            self._on_delta(frame.get("text") or "", frame.get("format") or FORMAT_MARKDOWN)
        elif kind == "levelObserved":
            self._on_level_observed(frame.get("levels") or [])
        elif kind == "turnFinalized":
            self._on_finalized(frame.get("turnId"))
        elif kind == "feedback":
            self._on_feedback(frame)
        elif kind == "history":
            self._on_history(frame)
        elif kind == "conversationStarted":
            self.conversation_id = frame.get("conversationId")
            self.is_document = bool(frame.get("isDocument"))
        elif kind == "error":
            logger.warning("Server rejected a request: %s", frame.get("message"))
            self.errors.append(frame.get("message") or "")
        else:
            logger.debug("Ignoring frame of kind %r", kind)

    def _on_delta(self, text: str, fmt: str) -> None:
        if self.active is None or self.state in (ReconcilerState.EMPTY, ReconcilerState.FINALIZED):
            self.active = RenderedTurn(id=PLACEHOLDER_ID, role="assistant")
            self.turns.append(self.active)
            self.state = ReconcilerState.STREAMING
        if fmt == FORMAT_HTML:
            self.active.format = FORMAT_HTML
        self.active.raw += text
        self._last_delta_at = self._clock()
        self._idle_rendered = False

    def _render(self, turn: RenderedTurn) -> None:
        if turn.format == FORMAT_HTML:
            turn.html = sanitize_html(turn.visible)
        else:
            turn.html = render(turn.visible)

    def _reveal_all(self, turn: RenderedTurn) -> None:
        if turn.visible != turn.raw or not turn.html:
            turn.visible = turn.raw
            self._render(turn)

    def tick(self, now: Optional[float] = None) -> bool:
        """
        Advance the render timer by one step.

        Returns:
            bool: True while the timer should keep running.
        """
        turn = self.active
        if turn is None:
            return False
        if self.state == ReconcilerState.FINALIZING:
            self._reveal_all(turn)
            return False
        if self.state != ReconcilerState.STREAMING or self._idle_rendered:
            return False

        now = self._clock() if now is None else now
        if self._last_delta_at is not None and now - self._last_delta_at >= IDLE_TIMEOUT:
            # producer went quiet: show everything and stop until the next delta
            self._reveal_all(turn)
            self._idle_rendered = True
            return False

        if len(turn.visible) < len(turn.raw):
            chunk = HTML_CHUNK if turn.format == FORMAT_HTML else MARKDOWN_CHUNK
            turn.visible = turn.raw[: len(turn.visible) + chunk]
            self._render(turn)
        return True

    async def pump(self) -> None:
        """Run the render timer until the stream goes idle or is drained."""
        while self.tick():
            await asyncio.sleep(TICK_INTERVAL)

    def _on_level_observed(self, levels: List[int]) -> None:
        self.levels.extend(levels)
        self._pending_level = levels[0] if levels else 1
        if self.active is None:
            return
        self.state = ReconcilerState.FINALIZING
        self._apply_level(self.active, self._pending_level)
        self._reveal_all(self.active)

    def _apply_level(self, turn: RenderedTurn, level: int) -> None:
        turn.scale_level = level
        turn.collapsed = level >= LOCK_LEVEL
        turn.locked = self._should_lock(turn)

    def _should_lock(self, turn: RenderedTurn) -> bool:
        if self.is_document or turn.is_seed or turn.role != "assistant":
            return False
        return turn.collapsed or turn.scale_level >= LOCK_LEVEL

    def _find_unanchored(self) -> Optional[RenderedTurn]:
        if self.active is not None and self.active.id == PLACEHOLDER_ID:
            return self.active
        for turn in reversed(self.turns):
            if turn.role == "assistant" and not turn.has_durable_id:
                return turn
        return None

    def _on_finalized(self, turn_id: Optional[int]) -> None:
        target = self._find_unanchored()
        self.state = ReconcilerState.FINALIZED
        self.active = None
        self._pending_level = None
        if target is None:
            logger.debug("turnFinalized %s with no container to anchor", turn_id)
            return
        self._reveal_all(target)
        if turn_id is None:
            target.id = None
            return

        existing = next((turn for turn in self.turns if turn is not target and turn.id == turn_id), None)
        if existing is None:
            target.id = turn_id
            return
        # the server filled an existing row (document seed) in place
        existing.raw = target.raw
        existing.visible = target.visible
        existing.html = target.html
        existing.format = target.format
        existing.scale_level = target.scale_level
        existing.collapsed = target.collapsed
        existing.locked = self._should_lock(existing)
        self.turns.remove(target)

    def _on_feedback(self, frame: dict) -> None:
        entry = {
            "turn_id": frame.get("turnId"),
            "text": frame.get("text") or "",
            "criteria": frame.get("criteria"),
        }
        self.feedback.append(entry)
        if entry["turn_id"] is None:
            return
        for turn in self.turns:
            if turn.id == entry["turn_id"]:
                turn.feedback.append(entry["text"])
                break

    def _on_history(self, frame: dict) -> None:
        self.conversation_id = frame.get("conversationId")
        self.is_document = bool(frame.get("isDocument"))
        self.levels = list(frame.get("levels") or [])
        self.state = ReconcilerState.EMPTY
        self.active = None
        self.turns = []
        seed_seen = False
        for item in frame.get("turns") or []:
            role = item.get("role", "assistant")
            content = item.get("content") or ""
            turn = RenderedTurn(
                id=item.get("id"),
                role=role,
                raw=content,
                visible=content,
                collapsed=bool(item.get("collapsed")),
                scale_level=item.get("scaleLevel") or 1,
            )
            if role == "assistant":
                turn.format = FORMAT_HTML
                turn.html = sanitize_html(content)
                if self.is_document and not seed_seen:
                    turn.is_seed = True
                    seed_seen = True
            else:
                turn.html = render_plain(content)
            turn.locked = self._should_lock(turn)
            self.turns.append(turn)

        self.feedback = []
        for item in frame.get("feedback") or []:
            self._on_feedback({"turnId": item.get("turnId"), "text": item.get("content")})
