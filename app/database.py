import logging
from typing import Optional

from sqlmodel import SQLModel, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .db import models  # noqa: F401  registers tables on SQLModel.metadata

logger = logging.getLogger(__name__)


def build_engine(db_url: str, echo: bool = False) -> Optional[Engine]:
    """Choose engine options based on database scheme; empty URL means no database."""
    if not db_url or not db_url.strip():
        return None

    engine_kwargs = {}
    if db_url.startswith("sqlite"):
        # SQLite specific connect args
        engine_kwargs.update({
            "connect_args": {"check_same_thread": False}
        })
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            # in-memory databases live on a single connection
            engine_kwargs["poolclass"] = StaticPool
    else:
        # Better resiliency for managed Postgres
        engine_kwargs.update({
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "pool_size": 5,
            "max_overflow": 10,
        })

    return create_engine(db_url, echo=echo, **engine_kwargs)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
    logger.info("Database tables ensured")
