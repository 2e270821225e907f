"""
Pydantic models used for channel frames, request validation and API data contracts.

Inbound WebSocket messages are validated into `ChannelRequest`; every outbound
frame is one of the `*Frame` models below and is serialized with
``model_dump(by_alias=True)`` so clients receive camelCase keys.

Prompt evidence attached to document-mode turns is a tagged union of
`TextPrompt` and `ImagePrompt`. `normalize_prompt` is the single place where
legacy shapes (bare strings, data URIs, objects with assorted key names) are
converted into that union.
"""

import re
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ChannelRequest(BaseModel):
    """
    One inbound WebSocket message.

    - ``{conversationId, text}`` submits a user turn.
    - ``{conversationId}`` without text requests the full history.
    - ``{action: "assess", text}`` asks for criterion feedback on a document draft.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    conversation_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("conversationId", "conversation_id", "session_id")
    )
    text: Optional[str] = Field(None, validation_alias=AliasChoices("text", "content"))
    action: Optional[Literal["assess"]] = None

    @field_validator("action", mode="before")
    @classmethod
    def legacy_action(cls, value):
        # older clients send the assess request as "generateFeedback"
        if value == "generateFeedback":
            return "assess"
        return value


class _Frame(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AssistantDeltaFrame(_Frame):
    kind: Literal["assistantDelta"] = "assistantDelta"
    text: str
    format: Literal["markdown", "html"] = "markdown"


class LevelObservedFrame(_Frame):
    kind: Literal["levelObserved"] = "levelObserved"
    levels: List[int] = Field(default_factory=list)


class FeedbackFrame(_Frame):
    kind: Literal["feedback"] = "feedback"
    text: str
    turn_id: Optional[int] = Field(None, alias="turnId")
    format: Literal["markdown", "html"] = "markdown"
    criteria: Optional[dict[str, Optional[str]]] = None
    """Traffic-light status per criterion; only present on assessment feedback."""


class TurnFinalizedFrame(_Frame):
    kind: Literal["turnFinalized"] = "turnFinalized"
    turn_id: Optional[int] = Field(None, alias="turnId")
    """Durable id of the assistant turn; None when nothing could be persisted."""


class ConversationStartedFrame(_Frame):
    kind: Literal["conversationStarted"] = "conversationStarted"
    conversation_id: int = Field(..., alias="conversationId")
    is_document: bool = Field(False, alias="isDocument")


class ErrorFrame(_Frame):
    kind: Literal["error"] = "error"
    success: bool = False
    message: str


class TextPrompt(BaseModel):
    """Prompt evidence given as text."""
    type: Literal["text"] = "text"
    text: str


class ImagePrompt(BaseModel):
    """Prompt evidence given as a screenshot (data URI or image URL)."""
    type: Literal["image"] = "image"
    src: str
    alt: str = ""


Prompt = Annotated[Union[TextPrompt, ImagePrompt], Field(discriminator="type")]


class HistoryTurn(_Frame):
    """A stored turn as sent to clients."""
    id: int
    role: str
    content: str
    collapsed: bool = False
    scale_level: int = Field(1, alias="scaleLevel")
    references: List[str] = Field(default_factory=list)
    prompts: List[Prompt] = Field(default_factory=list)
    footer_removed: Optional[bool] = Field(None, alias="footerRemoved")

    @classmethod
    def from_record(cls, record: dict) -> "HistoryTurn":
        return cls(
            id=record["id"],
            role=record["role"],
            content=record["message"],
            collapsed=record["collapsed"],
            scale_level=record["scale_level"],
            references=record["references"],
            prompts=normalize_prompts(record["prompts"]),
            footer_removed=record["footer_removed"],
        )


class HistoryFeedback(_Frame):
    id: int
    turn_id: Optional[int] = Field(None, alias="turnId")
    content: str
    position: Optional[str] = None

    @classmethod
    def from_record(cls, record: dict) -> "HistoryFeedback":
        return cls(
            id=record["id"],
            turn_id=record["turn_id"],
            content=record["content"],
            position=record["position"],
        )


class HistoryFrame(_Frame):
    kind: Literal["history"] = "history"
    conversation_id: int = Field(..., alias="conversationId")
    is_document: bool = Field(False, alias="isDocument")
    turns: List[HistoryTurn] = Field(default_factory=list)
    feedback: List[HistoryFeedback] = Field(default_factory=list)
    levels: List[int] = Field(default_factory=list)


_DATA_IMAGE_RE = re.compile(r"^data:image/", re.IGNORECASE)
_IMAGE_URL_RE = re.compile(r"^(?:(?:https?:)?//|/)\S*\.(?:png|jpe?g|gif|webp)(?:\?\S*)?$", re.IGNORECASE)
_IMAGE_LOCATION_RE = re.compile(r"^(?:https?://|/(?!/))\S+$", re.IGNORECASE)
_ALT_SOURCE_KEYS = ("dataUrl", "data", "image", "base64")


def _looks_like_image_source(value: str) -> bool:
    return bool(_DATA_IMAGE_RE.match(value) or _IMAGE_URL_RE.match(value))


def normalize_prompt(raw: Any) -> Optional[Union[TextPrompt, ImagePrompt]]:
    """
    Convert any historical prompt shape into `TextPrompt | ImagePrompt`.

    Args:
        raw: A string, a dict in one of the legacy shapes, or an already
            normalized prompt.

    Returns:
        TextPrompt | ImagePrompt | None: None for empty or unusable items.
    """
    if isinstance(raw, (TextPrompt, ImagePrompt)):
        return raw
    if isinstance(raw, str):
        value = raw.strip()
        if not value:
            return None
        if _looks_like_image_source(value):
            return ImagePrompt(src=value)
        return TextPrompt(text=value)
    if isinstance(raw, dict):
        alt = str(raw.get("alt") or "")
        src = raw.get("src")
        if isinstance(src, str) and src.strip() and raw.get("type", "image") == "image":
            src = src.strip()
            # an explicitly typed image may point at any http(s) or site-relative location
            if _looks_like_image_source(src) or (raw.get("type") == "image" and _IMAGE_LOCATION_RE.match(src)):
                return ImagePrompt(src=src, alt=alt)
            return None
        for key in _ALT_SOURCE_KEYS:
            candidate = raw.get(key)
            if isinstance(candidate, dict):
                candidate = candidate.get("src")
            if isinstance(candidate, str) and _looks_like_image_source(candidate.strip()):
                return ImagePrompt(src=candidate.strip(), alt=alt)
        text = raw.get("text")
        if isinstance(text, str) and text.strip():
            return TextPrompt(text=text.strip())
    return None


def normalize_prompts(items: Optional[List[Any]]) -> List[dict]:
    """Normalize a list of raw prompt items into storable dicts, dropping unusable ones."""
    normalized = (normalize_prompt(item) for item in items or [])
    return [prompt.model_dump() for prompt in normalized if prompt is not None]


class StartSessionDetails(BaseModel):
    """
    Details for creating a conversation over REST.
    """
    conversation_name: Optional[str] = None
    """Optional title; a default one is generated when omitted."""
    group_id: Optional[int] = None
    """Advisory group membership."""


class RenameConversationDetails(BaseModel):
    """
    Represents details required to rename an existing conversation.
    """
    conversation_id: int
    """Identifier of the conversation to update."""
    conversation_name: str
    """New name/title for the conversation."""


class FeedbackDetails(BaseModel):
    """
    Manually submitted feedback.
    """
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: int
    content: str = Field(..., validation_alias=AliasChoices("content", "feedbackContent"))
    turn_id: Optional[int] = Field(None, validation_alias=AliasChoices("turn_id", "message_id"))
    """Target turn; defaults depend on the conversation mode."""
    position: Optional[str] = None


class SaveTurnDetails(BaseModel):
    """A client-side turn offered for bulk saving."""
    id: Optional[Union[int, str]] = None
    """Client id; may still be the transient "streaming" placeholder."""
    role: Literal["user", "assistant"]
    content: str
    collapsed: bool = False
    scale_level: int = 1


class SaveFeedbackDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    turn_id: Optional[Union[int, str]] = Field(None, validation_alias=AliasChoices("turn_id", "messageId"))
    content: str = Field(..., validation_alias=AliasChoices("content", "feedbackContent"))
    position: Optional[str] = Field(None, validation_alias=AliasChoices("position", "feedbackPosition"))


class SaveSessionDetails(BaseModel):
    """
    Bulk save of a client transcript; turns already stored are skipped.
    """
    conversation_id: int
    turns: List[SaveTurnDetails] = Field(default_factory=list)
    feedback: List[SaveFeedbackDetails] = Field(default_factory=list)


class UpdateMessageDetails(BaseModel):
    """
    Explicit user edit of a turn (document mode drafting).
    """
    conversation_id: int
    turn_id: Optional[int] = None
    """Target turn; document-mode conversations default to their first assistant turn."""
    content: str
    references: Optional[List[str]] = None
    prompts: Optional[List[Any]] = None
    """Raw prompt evidence in any supported shape; normalized before storage."""
    footer_removed: Optional[bool] = None
    cite_prompt: Optional[str] = None
    """Prompt of an AI-generated passage pasted into the draft; a citation for it is appended to the references."""


class UpdateCollapsedDetails(BaseModel):
    conversation_id: int
    turn_id: int
    collapsed: bool
