"""
Feedback ORM Model
==================

The ``Feedback`` ORM model stores remedial text attached to a turn, in the
``feedback`` table.

Key features
~~~~~~~~~~~~
- Integer primary key (``id``)
- Foreign keys to the owning conversation and the targeted turn (``message.id``)
- Free-text ``content``; either generated automatically after a high-reliance
  exchange or submitted manually by the user
- Optional ``position`` hint used by clients to place the note
- Timezone-aware creation timestamp (UTC)

Integration notes
~~~~~~~~~~~~~~~~~
- A turn has no back-pointer collection to its feedback; lookups go through
  ``FeedbackDao.fetchFeedbackByConversationId``.
- Clients render a locked overlay on every assistant turn that has feedback.
"""

from tutorbot.database.config.connection_engine import declarativeBase
from tutorbot.database.entities.conversations import utc_now
from sqlalchemy import DateTime, ForeignKey, Integer, TEXT
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime


class Feedback(declarativeBase):
    """
    ORM model for the `feedback` table.

    Attributes
    ----------
    id : int
        Primary key for this feedback record.
    conversation_id : int
        Foreign key to the owning conversation.
    message_id : int | None
        Foreign key to the turn the feedback is attached to.
    content : str
        Feedback text.
    position : str | None
        Client placement hint.
    date_created_on : datetime
        Time when the feedback was recorded (UTC, timezone-aware).
    """

    __tablename__ = 'feedback'

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    """Primary key for this feedback record."""

    conversation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey('conversation.id'), nullable=False, index=True
    )
    """Foreign key to the owning conversation."""

    message_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey('message.id'), nullable=True
    )
    """Foreign key to the targeted turn (`message.id`)."""

    content: Mapped[str] = mapped_column(
        TEXT, nullable=False
    )

    position: Mapped[str | None] = mapped_column(
        TEXT, nullable=True
    )

    date_created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    """Creation timestamp (UTC, timezone-aware)."""

    def __init__(self, conversation_id: int, message_id: int | None, content: str, position: str | None = None):
        """
        Initialize a new Feedback object.

        Parameters
        ----------
        conversation_id : int
            Owning conversation.
        message_id : int | None
            Targeted turn.
        content : str
            Feedback text.
        position : str | None
            Optional placement hint.
        """
        self.conversation_id = conversation_id
        self.message_id = message_id
        self.content = content
        self.position = position
        self.date_created_on = utc_now()

    def __str__(self) -> str:
        return (
            f"Feedback: id:{self.id}, "
            f"conversation_id: {self.conversation_id}, "
            f"message_id: {self.message_id}"
        )
