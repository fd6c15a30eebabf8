"""
SQLAlchemy engine singleton.

PostgreSQL is the production target and gets a sized connection pool.
SQLite URLs (local runs, tests) get a driver configuration that lets several
threads share the file and wait on each other's write locks.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from reservation_engine.config import DATABASE_URL


def build_engine(url: str) -> Engine:
    """
    Create an engine with pool settings appropriate for the URL's backend.

    Args:
        url: SQLAlchemy database URL

    Returns:
        Engine: configured SQLAlchemy engine (no connection is opened yet)
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            future=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    return create_engine(
        url,
        future=True,
        pool_size=10,  # Number of connections to maintain in the pool
        max_overflow=20,  # Additional connections when pool is exhausted
        pool_pre_ping=True,  # Detect stale connections before use
        pool_recycle=3600,
        echo=False,
    )


engine: Engine = build_engine(DATABASE_URL)  # type: ignore[arg-type]


def check_engine_health(target: Engine | None = None) -> bool:
    """
    Check if the database is reachable.

    Used by the /ready endpoint before the service accepts traffic.

    Args:
        target: Engine to probe (defaults to the module engine)

    Returns:
        bool: True if a trivial query succeeds, False otherwise
    """
    try:
        with (target or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
