"""Minimal views of the club's match and movie tables touched by uploads."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from ..application.interfaces import GameMediaRepository
from .db import Base


class MatchGameRecord(Base):
    __tablename__ = "match_games"

    id = Column(Integer, primary_key=True)
    youtube_video_id = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class GameMovieRecord(Base):
    __tablename__ = "game_movies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    url = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class SqlAlchemyGameMediaRepository(GameMediaRepository):
    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def link_match_game(self, game_id: int, video_id: str) -> bool:
        with self._session_factory() as db:
            record = db.get(MatchGameRecord, game_id)
            if record is None:
                return False
            record.youtube_video_id = video_id
            record.updated_at = datetime.now(timezone.utc)
            db.commit()
            return True

    def create_game_movie(self, *, title: str, url: str) -> int:
        record = GameMovieRecord(
            title=title, url=url, created_at=datetime.now(timezone.utc)
        )
        with self._session_factory() as db:
            db.add(record)
            db.commit()
            return record.id
