"""
Connection Engine (SQLAlchemy)

Purpose
-------
Centralizes database initialization for the application:
- Parses the SQLAlchemy connection URL from environment-backed settings.
- Creates the Engine (connection pool + SQL execution entry point).
- Defines shared MetaData for table and schema objects.
- Exposes a Declarative Base class for ORM models.

Notes
-----
- PostgreSQL is the production target; SQLite is accepted for development and
  tests. SQLite connections may be used from the threadpool, so
  `check_same_thread` is disabled, and an in-memory database is pinned to one
  connection so every session sees the same tables.
- All ORM models must inherit from `declarativeBase`.
"""


from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy.schema import MetaData
from tutorbot.database.config.config import settings

connection_url = make_url(settings.DATABASE_URL)
"""Parsed SQLAlchemy connection URL, loaded from environment variables or a `.env` file."""

_engine_kwargs = {}
if connection_url.get_backend_name() == "sqlite":
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
    if connection_url.database in (None, "", ":memory:"):
        _engine_kwargs["poolclass"] = StaticPool

connection_engine = create_engine(connection_url, **_engine_kwargs)
"""Engine object: Core interface to the database.
Responsible for managing connections, executing SQL, and pooling.
"""

metadata = MetaData()
"""
Metadata object: Stores schema-level information about tables, constraints, indexes, etc. Shared across all models.
"""

declarativeBase = declarative_base(metadata=metadata)
"""Declarative Base: Root class for ORM models.
All model classes should inherit from this to gain ORM features and automatic schema generation.
 """
