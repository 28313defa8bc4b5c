from __future__ import annotations

import logging

from .application.dto import ReconcileVideoIdCommand
from .application.errors import UploadServiceError
from .application.reconcile_video_id import ReconcileVideoIdUseCase
from .config import UploadsConfig, load_config
from .infrastructure.db import create_session_factory
from .infrastructure.game_media import SqlAlchemyGameMediaRepository
from .infrastructure.queue import create_worker as build_worker
from .infrastructure.sessions import SqlAlchemyUploadSessionRepository
from .infrastructure.youtube import YouTubePlatform

logger = logging.getLogger(__name__)

_CONFIG: UploadsConfig | None = None
_USE_CASE: ReconcileVideoIdUseCase | None = None


def get_config() -> UploadsConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config()
    return _CONFIG


def get_use_case() -> ReconcileVideoIdUseCase:
    global _USE_CASE
    if _USE_CASE is None:
        cfg = get_config()
        orm_session_factory = create_session_factory(cfg.sqlalchemy_dsn)
        _USE_CASE = ReconcileVideoIdUseCase(
            repository=SqlAlchemyUploadSessionRepository(orm_session_factory),
            platform=YouTubePlatform(
                client_id=cfg.yt_client_id,
                client_secret=cfg.yt_client_secret,
                refresh_token=cfg.yt_refresh_token,
                channel_id=cfg.yt_channel_id,
            ),
            game_media=SqlAlchemyGameMediaRepository(orm_session_factory),
        )
    return _USE_CASE


def reconcile_session(session_id: str, user_id: str) -> str | None:
    """Resolve a placeholder video id in the background.

    Returns the real id, or ``None`` when nothing matched. A miss is not
    retried here; the owner can still trigger ``syncVideoId`` by hand.
    """
    use_case = get_use_case()
    try:
        video_id = use_case.execute(
            ReconcileVideoIdCommand(user_id=user_id, session_id=session_id)
        )
    except UploadServiceError as exc:
        logger.warning("Reconciliation of session %s failed: %s", session_id, exc.message)
        return None
    logger.info("Reconciled session %s to video %s", session_id, video_id)
    return video_id


def run_worker_service() -> None:
    cfg = get_config()
    worker = build_worker(cfg)
    logger.info("Starting worker for queue: %s", cfg.reconcile_queue_name)
    try:
        worker.work(with_scheduler=True)
    except KeyboardInterrupt:
        logger.info("Shutting down worker...")
