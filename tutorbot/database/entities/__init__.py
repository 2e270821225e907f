"""
Entities Package — SQLAlchemy 2.0 ORM Models
============================================

The `entities` package defines the ORM models of the application, mapping
database tables to Python classes using SQLAlchemy 2.0-typed mappings.
These classes are consumed by DAOs (`daos` package).

Conventions
-----------
- Integer autoincrement primary keys
- Timezone-aware timestamps (UTC)
- SQLAlchemy 2.0 style `Mapped[...]` + `mapped_column(...)`

Contents
--------
- Conversation (`conversation`)
    Owned by one identity; `is_document` flags document mode; advisory `group_id`.

- Turn (`message`)
    One user or assistant message: rendered text, `collapsed`, `scale_level`,
    and document-mode metadata (`references`, `prompts`, `footer_removed`).

- ClassificationEvent (`scale_level`)
    One reliance level observed for a conversation.

- Feedback (`feedback`)
    Corrective feedback attached to a turn.
"""
