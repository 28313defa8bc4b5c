from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api.dependencies import create_current_user_dependency
from .api.routes import UploadUseCases, create_router
from .application.check_platform_auth import CheckPlatformAuthUseCase
from .application.errors import UploadServiceError
from .application.finalize_upload import FinalizeUploadUseCase
from .application.get_session_status import GetSessionStatusUseCase
from .application.initiate_upload import InitiateUploadUseCase
from .application.interfaces import PendingSessionsCache
from .application.list_pending_sessions import ListPendingSessionsUseCase
from .application.reconcile_video_id import ReconcileVideoIdUseCase
from .application.relay_chunk import RelayChunkUseCase
from .application.report_progress import ReportProgressUseCase
from .application.resume_upload import ResumeUploadUseCase
from .config import UploadsConfig, load_config
from .infrastructure.db import create_session_factory
from .infrastructure.game_media import SqlAlchemyGameMediaRepository
from .infrastructure.identity import IdentityProvider, SupabaseIdentityProvider
from .infrastructure.pending_cache import (
    InMemoryPendingSessionsCache,
    RedisPendingSessionsCache,
)
from .infrastructure.queue import (
    RqReconciliationQueue,
    create_queue,
    create_redis_connection,
)
from .infrastructure.relay import HttpxChunkRelay
from .infrastructure.sessions import SqlAlchemyUploadSessionRepository
from .infrastructure.youtube import YouTubePlatform

logger = logging.getLogger(__name__)


def create_app(use_cases: UploadUseCases, identity_provider: IdentityProvider) -> FastAPI:
    app = FastAPI()

    @app.exception_handler(UploadServiceError)
    async def upload_service_error_handler(request: Request, exc: UploadServiceError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(exc.to_payload(), status_code=exc.status_code)

    @app.get("/ping")
    async def ping():
        return {"message": "pong"}

    app.include_router(
        create_router(use_cases, create_current_user_dependency(identity_provider))
    )
    return app


def _create_pending_cache(cfg: UploadsConfig) -> PendingSessionsCache:
    if cfg.pending_cache_backend == "redis":
        return RedisPendingSessionsCache(
            create_redis_connection(cfg), ttl_seconds=cfg.pending_cache_seconds
        )
    if cfg.pending_cache_backend != "memory":
        raise ValueError(
            f"Unsupported pending cache backend: {cfg.pending_cache_backend}"
        )
    return InMemoryPendingSessionsCache(ttl_seconds=cfg.pending_cache_seconds)


def create_platform(cfg: UploadsConfig) -> YouTubePlatform:
    return YouTubePlatform(
        client_id=cfg.yt_client_id,
        client_secret=cfg.yt_client_secret,
        refresh_token=cfg.yt_refresh_token,
        channel_id=cfg.yt_channel_id,
    )


def build_use_cases(cfg: UploadsConfig) -> UploadUseCases:
    orm_session_factory = create_session_factory(cfg.sqlalchemy_dsn)
    session_repository = SqlAlchemyUploadSessionRepository(orm_session_factory)
    game_media_repository = SqlAlchemyGameMediaRepository(orm_session_factory)
    platform = create_platform(cfg)
    reconciliation_queue = RqReconciliationQueue(
        create_queue(cfg), delay_seconds=cfg.reconcile_delay_seconds
    )

    return UploadUseCases(
        initiate=InitiateUploadUseCase(
            repository=session_repository,
            platform=platform,
            session_ttl=timedelta(hours=cfg.session_ttl_hours),
        ),
        relay=RelayChunkUseCase(repository=session_repository, relay=HttpxChunkRelay()),
        finalize=FinalizeUploadUseCase(
            repository=session_repository,
            game_media=game_media_repository,
            reconciliation_queue=reconciliation_queue,
        ),
        resume=ResumeUploadUseCase(repository=session_repository),
        pending=ListPendingSessionsUseCase(
            repository=session_repository, cache=_create_pending_cache(cfg)
        ),
        progress=ReportProgressUseCase(repository=session_repository),
        status=GetSessionStatusUseCase(repository=session_repository),
        reconcile=ReconcileVideoIdUseCase(
            repository=session_repository,
            platform=platform,
            game_media=game_media_repository,
        ),
        auth_status=CheckPlatformAuthUseCase(platform=platform),
    )


def build_app(config: UploadsConfig | None = None) -> FastAPI:
    cfg = config or load_config()
    identity_provider = SupabaseIdentityProvider(
        auth_url=cfg.auth_url, api_key=cfg.auth_api_key
    )
    return create_app(build_use_cases(cfg), identity_provider)
