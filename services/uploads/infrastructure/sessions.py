from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from sqlalchemy import BigInteger, Column, DateTime, JSON, String, Text
from sqlalchemy.exc import SQLAlchemyError

from ..application.errors import PersistenceError
from ..application.interfaces import UploadSessionRepository
from ..domain.session import UploadSession, UploadStatus
from ..domain.video_id import parse_video_id
from .db import Base, as_utc

logger = logging.getLogger(__name__)


class UploadSessionRecord(Base):
    __tablename__ = "upload_sessions"

    session_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    file_name = Column(String, nullable=False)
    file_size = Column(BigInteger, nullable=False)
    youtube_session_id = Column(String, nullable=False)
    youtube_upload_url = Column(Text, nullable=False)
    uploaded_bytes = Column(BigInteger, nullable=False, default=0)
    status = Column(String, nullable=False, index=True)
    youtube_video_id = Column(String, nullable=False, default="")
    meta = Column(JSON, nullable=False, default=dict)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)


def _to_domain(record: UploadSessionRecord) -> UploadSession:
    return UploadSession(
        session_id=record.session_id,
        user_id=record.user_id,
        file_name=record.file_name,
        file_size=record.file_size,
        youtube_session_id=record.youtube_session_id,
        youtube_upload_url=record.youtube_upload_url,
        uploaded_bytes=record.uploaded_bytes,
        status=UploadStatus(record.status),
        created_at=as_utc(record.created_at),
        updated_at=as_utc(record.updated_at),
        expires_at=as_utc(record.expires_at),
        video_id=parse_video_id(record.youtube_video_id),
        metadata=dict(record.meta or {}),
        error_message=record.error_message,
    )


class SqlAlchemyUploadSessionRepository(UploadSessionRepository):
    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def create(self, session: UploadSession) -> UploadSession:
        record = UploadSessionRecord(
            session_id=session.session_id,
            user_id=session.user_id,
            file_name=session.file_name,
            file_size=session.file_size,
            youtube_session_id=session.youtube_session_id,
            youtube_upload_url=session.youtube_upload_url,
            uploaded_bytes=session.uploaded_bytes,
            status=session.status.value,
            youtube_video_id=session.video_id.stored,
            meta=dict(session.metadata),
            error_message=session.error_message,
            created_at=session.created_at,
            updated_at=session.updated_at,
            expires_at=session.expires_at,
        )
        try:
            with self._session_factory() as db:
                db.add(record)
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to create upload session %s: %s", session.session_id, exc)
            raise PersistenceError(f"Failed to create upload session: {exc}") from exc
        return session

    def get_for_user(self, session_id: str, user_id: str) -> UploadSession | None:
        try:
            with self._session_factory() as db:
                record = (
                    db.query(UploadSessionRecord)
                    .filter(
                        UploadSessionRecord.session_id == session_id,
                        UploadSessionRecord.user_id == user_id,
                    )
                    .one_or_none()
                )
                return _to_domain(record) if record is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load upload session: {exc}") from exc

    def save(self, session: UploadSession) -> UploadSession:
        # youtube_session_id and youtube_upload_url are written once, by create()
        try:
            with self._session_factory() as db:
                record = (
                    db.query(UploadSessionRecord)
                    .filter(
                        UploadSessionRecord.session_id == session.session_id,
                        UploadSessionRecord.user_id == session.user_id,
                    )
                    .one_or_none()
                )
                if record is None:
                    raise PersistenceError("Upload session disappeared during update")
                record.uploaded_bytes = session.uploaded_bytes
                record.status = session.status.value
                record.youtube_video_id = session.video_id.stored
                record.error_message = session.error_message
                record.updated_at = session.updated_at
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to update upload session %s: %s", session.session_id, exc)
            raise PersistenceError("Failed to update upload session") from exc
        return session

    def delete(self, session_id: str, user_id: str) -> None:
        try:
            with self._session_factory() as db:
                db.query(UploadSessionRecord).filter(
                    UploadSessionRecord.session_id == session_id,
                    UploadSessionRecord.user_id == user_id,
                ).delete()
                db.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to delete upload session: {exc}") from exc

    def list_for_user(
        self,
        user_id: str,
        *,
        statuses: Iterable[UploadStatus],
        expires_after: datetime | None = None,
    ) -> list[UploadSession]:
        try:
            with self._session_factory() as db:
                query = db.query(UploadSessionRecord).filter(
                    UploadSessionRecord.user_id == user_id,
                    UploadSessionRecord.status.in_([status.value for status in statuses]),
                )
                if expires_after is not None:
                    query = query.filter(UploadSessionRecord.expires_at > expires_after)
                records = query.order_by(UploadSessionRecord.created_at.desc()).all()
                return [_to_domain(record) for record in records]
        except SQLAlchemyError as exc:
            logger.error("Failed to list upload sessions for %s: %s", user_id, exc)
            raise PersistenceError("Failed to fetch sessions") from exc
