"""
Turn ORM Model
==============

The ``Turn`` ORM model represents one authored message inside a conversation,
stored in the ``message`` table.

Key features
~~~~~~~~~~~~
- Integer primary key (``id``); durable once persisted. Clients only ever see a
  transient ``"streaming"`` placeholder before that.
- Foreign key reference to ``conversation.id`` (``conversation_id``)
- Sender role (``role``): ``"user"`` or ``"assistant"``
- Text content (``message_text``): plain text for user turns, rendered safe
  HTML for assistant turns
- ``collapsed`` flag and ``scale_level`` snapshot (defaults to 1)
- Citation metadata for document mode: ``references_json`` (list of strings)
  and ``prompts_json`` (list of normalized prompt items)

"""

from tutorbot.database.config.connection_engine import declarativeBase
from tutorbot.database.entities.conversations import utc_now
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, TEXT
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

class Turn(declarativeBase):
    """
    ORM model for the `message` table.

    Attributes
    ----------
    id : int
        Primary key. Durable identifier of the turn.
    conversation_id : int
        Foreign key reference to the `conversation` table.
    role : str
        "user" or "assistant".
    message_text : str
        Content of the turn (may be empty for a document-mode seed).
    collapsed : bool
        Whether the assistant turn is collapsed/locked.
    scale_level : int
        Reliance level snapshot for the exchange.
    references_json : list
        Text citations attached in document mode.
    prompts_json : list
        Prompt evidence items ({"type": "text"|"image", ...}).
    footer_removed : bool | None
        Set when the user explicitly removed the citation footer.
    date_created_on : datetime
        Timestamp when the turn was created.
    """

    __tablename__ = 'message'

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    """Primary key of the turn."""

    conversation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey('conversation.id'), nullable=False, index=True
    )
    """Foreign key to the conversation this turn belongs to."""

    role: Mapped[str] = mapped_column(
        TEXT, nullable=False
    )
    """Role of the author (user, assistant)."""

    message_text: Mapped[str] = mapped_column(
        TEXT, nullable=False, default=""
    )
    """Text content of the turn."""

    collapsed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    scale_level: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )

    references_json: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list
    )

    prompts_json: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list
    )

    footer_removed: Mapped[bool | None] = mapped_column(
        Boolean, nullable=True
    )

    date_created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    """Timestamp when the turn was created. Defaults to current UTC time."""

    def __init__(
        self,
        conversation_id: int,
        role: str,
        message: str,
        collapsed: bool = False,
        scale_level: int = 1,
        references: list | None = None,
        prompts: list | None = None,
    ):
        """
        Initialize a new Turn object.

        Parameters
        ----------
        conversation_id : int
            ID of the conversation this turn belongs to.
        role : str
            The author role (user/assistant).
        message : str
            The content of the turn.
        collapsed : bool
            Collapsed/locked flag.
        scale_level : int
            Reliance level snapshot.
        references, prompts : list | None
            Optional citation metadata.
        """
        self.conversation_id = conversation_id
        self.role = role
        self.message_text = message
        self.collapsed = collapsed
        self.scale_level = scale_level
        self.references_json = list(references or [])
        self.prompts_json = list(prompts or [])
        self.date_created_on = utc_now()

    def __str__(self) -> str:
        return (
            f"Conversation: id:{self.conversation_id}, "
            f"role: {self.role}, "
            f"message: {self.message_text}, "
            f"time_created: {self.date_created_on}"
        )
