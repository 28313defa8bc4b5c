from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..application.check_platform_auth import CheckPlatformAuthUseCase
from ..application.dto import (
    FinalizeUploadCommand,
    InitiateUploadCommand,
    ListPendingSessionsQuery,
    ReconcileVideoIdCommand,
    RelayChunkCommand,
    ReportProgressCommand,
    ResumeUploadCommand,
    SessionStatusQuery,
)
from ..application.finalize_upload import FinalizeUploadUseCase
from ..application.get_session_status import GetSessionStatusUseCase
from ..application.initiate_upload import InitiateUploadUseCase
from ..application.list_pending_sessions import ListPendingSessionsUseCase, isoformat
from ..application.reconcile_video_id import ReconcileVideoIdUseCase
from ..application.relay_chunk import RelayChunkUseCase
from ..application.report_progress import ReportProgressUseCase
from ..application.resume_upload import ResumeUploadUseCase
from ..domain.user import AuthenticatedUser

PENDING_CACHE_CONTROL = "private, max-age=300"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InitiateUploadRequest(CamelModel):
    file_name: str | None = None
    file_size: int | None = None
    metadata: Dict[str, Any] | None = None


class InitiateUploadResponse(CamelModel):
    session_id: str
    upload_url: str
    expires_at: str


class FinalizeUploadRequest(CamelModel):
    session_id: str | None = None
    youtube_video_id: str | None = None


class FinalizeUploadResponse(CamelModel):
    success: bool
    session_id: str
    youtube_video_id: str
    status: str
    message: str


class ProgressRequest(CamelModel):
    session_id: str | None = None
    uploaded_bytes: Any = None


class ProgressResponse(CamelModel):
    success: bool
    progress: int
    uploaded_bytes: int
    total_bytes: int
    status: str


class SyncVideoIdRequest(CamelModel):
    session_id: str | None = None


class SyncVideoIdResponse(CamelModel):
    success: bool
    video_id: str


class AuthStatusResponse(CamelModel):
    success: bool
    authenticated: bool
    message: str


@dataclass(frozen=True)
class UploadUseCases:
    initiate: InitiateUploadUseCase
    relay: RelayChunkUseCase
    finalize: FinalizeUploadUseCase
    resume: ResumeUploadUseCase
    pending: ListPendingSessionsUseCase
    progress: ReportProgressUseCase
    status: GetSessionStatusUseCase
    reconcile: ReconcileVideoIdUseCase
    auth_status: CheckPlatformAuthUseCase


def create_router(use_cases: UploadUseCases, current_user) -> APIRouter:
    router = APIRouter()
    youtube_router = APIRouter(prefix="/api/youtube", tags=["youtube"])

    @youtube_router.post("/upload/initiate", response_model=InitiateUploadResponse)
    def initiate_upload_endpoint(
        payload: InitiateUploadRequest,
        user: AuthenticatedUser = Depends(current_user),
    ):
        initiated = use_cases.initiate.execute(
            InitiateUploadCommand(
                user_id=user.user_id,
                file_name=payload.file_name,
                file_size=payload.file_size,
                metadata=payload.metadata,
            )
        )
        return InitiateUploadResponse(
            session_id=initiated.session_id,
            upload_url=initiated.upload_url,
            expires_at=isoformat(initiated.expires_at),
        )

    @youtube_router.put("/upload/proxy")
    async def proxy_chunk_endpoint(
        request: Request,
        user: AuthenticatedUser = Depends(current_user),
    ):
        # headers first: resumable upload URLs can exceed query-string limits
        upload_url = request.headers.get("x-upload-url") or request.query_params.get("uploadUrl")
        session_id = request.headers.get("x-session-id") or request.query_params.get("sessionId")
        body = await request.body()
        relayed = await use_cases.relay.execute(
            RelayChunkCommand(
                user_id=user.user_id,
                upload_url=upload_url,
                session_id=session_id,
                content_range=request.headers.get("content-range"),
                content_type=request.headers.get("content-type") or "application/octet-stream",
                body=body,
            )
        )
        headers = {
            key: value
            for key, value in relayed.headers.items()
            if key.lower() != "content-type"
        }
        if relayed.body is None:
            return Response(status_code=relayed.status_code, headers=headers)
        return Response(
            content=json.dumps(relayed.body),
            status_code=relayed.status_code,
            headers=headers,
            media_type="application/json",
        )

    @youtube_router.post("/upload/finalize", response_model=FinalizeUploadResponse)
    def finalize_upload_endpoint(
        payload: FinalizeUploadRequest,
        user: AuthenticatedUser = Depends(current_user),
    ):
        finalized = use_cases.finalize.execute(
            FinalizeUploadCommand(
                user_id=user.user_id,
                session_id=payload.session_id,
                youtube_video_id=payload.youtube_video_id,
            )
        )
        return FinalizeUploadResponse(
            success=True,
            session_id=finalized.session_id,
            youtube_video_id=finalized.video_id,
            status=finalized.status.value,
            message="Upload completed successfully",
        )

    @youtube_router.post("/upload/resume/{session_id}")
    def resume_upload_endpoint(
        session_id: str,
        user: AuthenticatedUser = Depends(current_user),
    ):
        outcome = use_cases.resume.execute(
            ResumeUploadCommand(user_id=user.user_id, session_id=session_id)
        )
        session = outcome.session
        if outcome.already_completed:
            return {
                "success": True,
                "sessionId": session.session_id,
                "youtubeVideoId": session.video_id.stored,
                "status": "completed",
                "message": "Upload already completed",
            }
        return {
            "success": True,
            "sessionId": session.session_id,
            "fileName": session.file_name,
            "fileSize": session.file_size,
            "uploadedBytes": session.uploaded_bytes,
            "progress": session.progress_percentage,
            "uploadUrl": session.youtube_upload_url,
            "metadata": dict(session.metadata),
            "expiresAt": isoformat(session.expires_at),
            "status": session.status.value,
            "message": "Session resumed successfully",
        }

    @youtube_router.get("/upload/pending")
    def pending_sessions_endpoint(
        include_expired: str | None = Query(default=None, alias="includeExpired"),
        user: AuthenticatedUser = Depends(current_user),
    ):
        payload = use_cases.pending.execute(
            ListPendingSessionsQuery(
                user_id=user.user_id,
                include_expired=include_expired == "true",
            )
        )
        return JSONResponse(
            content=payload, headers={"Cache-Control": PENDING_CACHE_CONTROL}
        )

    @youtube_router.post("/upload/progress", response_model=ProgressResponse)
    def report_progress_endpoint(
        payload: ProgressRequest,
        user: AuthenticatedUser = Depends(current_user),
    ):
        report = use_cases.progress.execute(
            ReportProgressCommand(
                user_id=user.user_id,
                session_id=payload.session_id,
                uploaded_bytes=payload.uploaded_bytes,
            )
        )
        return ProgressResponse(
            success=True,
            progress=report.progress,
            uploaded_bytes=report.uploaded_bytes,
            total_bytes=report.total_bytes,
            status=report.status.value,
        )

    @youtube_router.get("/upload/status/{session_id}")
    def session_status_endpoint(
        session_id: str,
        user: AuthenticatedUser = Depends(current_user),
    ):
        return use_cases.status.execute(
            SessionStatusQuery(user_id=user.user_id, session_id=session_id)
        )

    @youtube_router.post("/syncVideoId", response_model=SyncVideoIdResponse)
    def sync_video_id_endpoint(
        payload: SyncVideoIdRequest,
        user: AuthenticatedUser = Depends(current_user),
    ):
        video_id = use_cases.reconcile.execute(
            ReconcileVideoIdCommand(user_id=user.user_id, session_id=payload.session_id)
        )
        return SyncVideoIdResponse(success=True, video_id=video_id)

    @youtube_router.get("/auth-status", response_model=AuthStatusResponse)
    def auth_status_endpoint(user: AuthenticatedUser = Depends(current_user)):
        authenticated = use_cases.auth_status.execute()
        return AuthStatusResponse(
            success=True,
            authenticated=authenticated,
            message=(
                "YouTube API authentication is valid"
                if authenticated
                else "YouTube API authentication failed"
            ),
        )

    router.include_router(youtube_router)
    return router
