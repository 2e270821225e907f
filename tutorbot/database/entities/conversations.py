"""
Conversation ORM Model
=======================

The ``Conversation`` ORM model represents a user-owned conversation record stored
in the ``conversation`` table. It is implemented with SQLAlchemy 2.0-style typing.

Key features
~~~~~~~~~~~~
- Integer primary key (``id``)
- Human-readable name (``conversation_name``)
- Owning identity (``owner``) as resolved by the auth collaborator
- **Document mode** flag (``is_document``): a "Turing Mode" session in which the
  user drafts an assistant-seeded document instead of conversing turn-by-turn
- Advisory group membership (``group_id``), not used by the message lifecycle
- Timezone-aware ``date_created_on`` / ``last_updated`` timestamps (UTC)

Integration notes
~~~~~~~~~~~~~~~~~
- The lifecycle controller reads ``is_document`` to suppress automatic feedback
  and to target the first assistant turn for edits.
- A conversation exclusively owns its turns, classification events and feedback;
  ``ConversationDao.deleteConversation`` removes them before the row itself.
"""

from tutorbot.database.config.connection_engine import declarativeBase
from sqlalchemy import Boolean, DateTime, Integer, TEXT
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current UTC time, evaluated per row."""
    return datetime.now(timezone.utc)


class Conversation(declarativeBase):
    """
    ORM model for the `conversation` table.
    Represents a conversation belonging to a specific user.

    Attributes
    ----------
    id : int
        Primary key. Unique identifier for the conversation.
    conversation_name : str
        Human-readable name/title of the conversation.
    owner : str
        Identity (username) that owns the conversation.
    is_document : bool
        True for document-mode ("Turing Mode") conversations.
    group_id : int | None
        Optional advisory group membership.
    date_created_on : datetime
        Creation time (UTC).
    last_updated : datetime
        Time of the last turn written to the conversation (UTC).
    """

    __tablename__ = 'conversation'

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    """Primary key of the conversation."""

    conversation_name: Mapped[str] = mapped_column(
        TEXT, nullable=False
    )
    """Name of the conversation (cannot be null)."""

    owner: Mapped[str] = mapped_column(
        TEXT, nullable=False, index=True
    )
    """Owning identity (username)."""

    is_document: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    """Document-mode flag."""

    group_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )
    """Advisory group membership."""

    date_created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    """Timestamp when the conversation was created."""

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    """Timestamp when the conversation was last updated (UTC, timezone-aware)."""

    def __init__(self, conversation_name: str, owner: str, is_document: bool = False, group_id: int | None = None):
        """
        Initialize a new Conversation object.

        Parameters
        ----------
        conversation_name : str
            Name/title of the conversation.
        owner : str
            The identity that owns this conversation.
        is_document : bool
            Whether the conversation runs in document mode.
        group_id : int | None
            Optional advisory group.
        """
        self.conversation_name = conversation_name
        self.owner = owner
        self.is_document = is_document
        self.group_id = group_id
        self.date_created_on = utc_now()
        self.last_updated = self.date_created_on

    def __str__(self) -> str:
        return (
            f"Owner: {self.owner}, conversation: {self.conversation_name}, "
            f"document: {self.is_document}, last_updated: {self.last_updated}"
        )
