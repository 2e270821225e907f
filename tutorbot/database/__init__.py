"""
The `database` package is responsible for all interactions with the application's database.

Contents:
    - config:
        Settings and the SQLAlchemy engine.

    - entities:
        SQLAlchemy models for conversations, turns, classification events and feedback.

    - daos:
        Data Access Objects providing CRUD operations for the entities.

    - core:
        `funcs` (transactional service functions returning plain dicts) and
        `turn_store` (the async facade used by the API layer).

    - helpers:
        Transaction and session management.
"""
