"""
Engine, session factory and declarative base for the startups database.

Deployments point DATABASE_URL at Supabase Postgres. SQLite URLs are
accepted too and share a single in-process connection, which keeps
`sqlite:///:memory:` usable across threads.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DATABASE_URL: str | None = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set – the startups database is required.")

POSTGRES_POOL = {
    "pool_size": 10,
    "max_overflow": 20,
    "pool_pre_ping": True,
    "pool_recycle": 1800,
}


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    else:
        options = dict(POSTGRES_POOL)
    return create_engine(
        url,
        echo=os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true",
        future=True,
        **options,
    )


ENGINE = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=ENGINE, expire_on_commit=False, autoflush=False)

Base = declarative_base()


@contextmanager
def db_session() -> Iterator[Session]:
    """One unit of work: committed if the block finishes, rolled back if it raises."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Create `startups` and `startup_anomalies` if they do not exist yet."""
    from venturelens.database import models  # noqa: F401 – registers the tables

    Base.metadata.create_all(bind=ENGINE)
    logger.info("Database tables ready: %s", ", ".join(sorted(Base.metadata.tables)))
