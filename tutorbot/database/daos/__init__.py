"""
DAOs Package — Data Access Layer (SQLAlchemy 2.0)
=================================================

The `daos` package provides the Data Access Layer for the application.
It encapsulates all interactions with SQLAlchemy ORM entities, providing
clean CRUD APIs for the service layer while hiding direct query details.

Conventions
-----------
- SQLAlchemy 2.0 typed mappings (Mapped[...] / mapped_column)
- Session lifecycle (open/commit/rollback) is handled by callers
- DAOs surface exceptions so upper layers decide error policy

Contents
--------
- ConversationDao
    * Creates conversations, fetches them by owner or by id and owner
    * Updates name and last-updated timestamp; cascading delete

- TurnDao
    * Creates turns and fetches them in creation order
    * Finds the empty assistant placeholder, turns by content, first assistant turn
    * Applies edits (content, references, prompts, footer flag) and collapse toggles

- ClassificationEventDao
    * Appends reliance levels and returns the distinct set

- FeedbackDao
    * Stores feedback attached to a turn and lists it per conversation
"""
