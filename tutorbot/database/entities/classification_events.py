"""
ClassificationEvent ORM Model
=============================

One reliance-level observation for a conversation, stored in the
``scale_level`` table. Events are append-only; the set of distinct levels
across a conversation's events is its *scale profile*.
"""

from tutorbot.database.config.connection_engine import declarativeBase
from tutorbot.database.entities.conversations import utc_now
from sqlalchemy import DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime


class ClassificationEvent(declarativeBase):
    """
    ORM model for the `scale_level` table.

    Attributes
    ----------
    id : int
        Primary key.
    conversation_id : int
        Conversation the observation belongs to.
    scale_level : int
        Observed reliance level (1-5).
    date_created_on : datetime
        When the level was observed (UTC).
    """

    __tablename__ = 'scale_level'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    conversation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey('conversation.id'), nullable=False, index=True
    )

    scale_level: Mapped[int] = mapped_column(Integer, nullable=False)

    date_created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    def __init__(self, conversation_id: int, scale_level: int):
        self.conversation_id = conversation_id
        self.scale_level = scale_level
        self.date_created_on = utc_now()
