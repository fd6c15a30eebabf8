from sqlalchemy.orm import DeclarativeBase

from reservation_engine.config import SCHEMA


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All tables live in the configured SCHEMA (or the default namespace when
    SCHEMA is empty, as with SQLite).
    """

    pass


def qualified(table: str) -> str:
    """Return ``table`` prefixed with the configured schema, for ForeignKey targets."""
    return f"{SCHEMA}.{table}" if SCHEMA else table
