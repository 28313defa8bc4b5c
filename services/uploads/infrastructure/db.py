from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


def _engine_options(dsn: str):
    if dsn.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
    }


class Base(DeclarativeBase):
    pass


def as_utc(value: datetime | None) -> datetime | None:
    # sqlite drops tzinfo on the way back out
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def create_session_factory(dsn: str, *, create_schema: bool = True):
    engine = create_engine(dsn, **_engine_options(dsn))
    if create_schema:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
