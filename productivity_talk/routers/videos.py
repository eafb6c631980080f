"""Video upload, feed and engagement endpoints."""

from __future__ import annotations

import logging
import os
import tempfile

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.config import settings
from productivity_talk.core.deps import get_upload_pipeline, require_user
from productivity_talk.core.errors import UploadError, UploadTooLargeError
from productivity_talk.db.models import AppUser, ProcessingStatus
from productivity_talk.db.session import get_session
from productivity_talk.schema.video import (
    CommentCreate,
    CommentOut,
    CounterValue,
    UploadAccepted,
    UploadProgress,
    VideoDetail,
    VideoSummary,
)
from productivity_talk.services import comments as comment_service
from productivity_talk.services import videos as video_service
from productivity_talk.services.upload_pipeline import UploadPipeline, UploadTicket, upload_progress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/videos", tags=["videos"])

_CHUNK_SIZE = 1024 * 1024


async def _spool_upload(file: UploadFile) -> str:
    """Copy the multipart body to a temporary file, enforcing the upload ceiling."""

    suffix = os.path.splitext(file.filename or "")[1] or ".mp4"
    handle = tempfile.NamedTemporaryFile(prefix="upload_", suffix=suffix, delete=False)
    written = 0
    try:
        with handle:
            while chunk := await file.read(_CHUNK_SIZE):
                written += len(chunk)
                if written > settings.upload_max_bytes:
                    raise UploadTooLargeError("Video file is too large")
                handle.write(chunk)
    except BaseException:
        os.unlink(handle.name)
        raise
    if written == 0:
        os.unlink(handle.name)
        raise UploadError("Uploaded file is empty")
    return handle.name


async def _transfer_in_background(pipeline: UploadPipeline, ticket: UploadTicket) -> None:
    try:
        await pipeline.transfer(ticket)
    except Exception as exc:
        logger.warning("Background upload did not complete", extra={"video_id": ticket.video_id, "error": str(exc)})
    finally:
        try:
            os.unlink(ticket.file_path)
        except FileNotFoundError:
            pass


@router.post("", response_model=UploadAccepted, status_code=status.HTTP_202_ACCEPTED)
async def upload_video(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
) -> UploadAccepted:
    """Accept a video; the transfer to storage continues after the response."""

    path = await _spool_upload(file)
    try:
        ticket = await pipeline.begin(session, owner=user, file_path=path, filename=file.filename)
    except Exception:
        os.unlink(path)
        raise

    background_tasks.add_task(_transfer_in_background, pipeline, ticket)
    return UploadAccepted(
        id=ticket.video_id,
        processing_status=ProcessingStatus.UPLOADING.value,
        size_bytes=ticket.size_bytes,
    )


@router.get("", response_model=list[VideoSummary])
async def list_videos(
    owner_id: str | None = Query(None, alias="ownerId"),
    processing_status: ProcessingStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
) -> list[VideoSummary]:
    videos = await video_service.list_videos(
        session,
        owner_id=owner_id,
        status=processing_status.value if processing_status else None,
        limit=limit,
    )
    return [VideoSummary.model_validate(video) for video in videos]


@router.get("/{video_id}", response_model=VideoDetail)
async def get_video(video_id: str, session: AsyncSession = Depends(get_session)) -> VideoDetail:
    video = await video_service.get_video(session, video_id)
    return VideoDetail.model_validate(video)


@router.get("/{video_id}/progress", response_model=UploadProgress)
async def get_upload_progress(video_id: str, session: AsyncSession = Depends(get_session)) -> UploadProgress:
    video = await video_service.get_video(session, video_id)
    progress = upload_progress.get(video_id)
    if video.processing_status != ProcessingStatus.UPLOADING.value:
        progress = 1.0 if video.video_url else progress
    return UploadProgress(id=video.id, processing_status=video.processing_status, progress=progress)


@router.post("/{video_id}/views", response_model=CounterValue)
async def record_view(video_id: str, session: AsyncSession = Depends(get_session)) -> CounterValue:
    value = await video_service.record_view(session, video_id)
    await session.commit()
    return CounterValue(id=video_id, value=value)


@router.post("/{video_id}/likes", response_model=CounterValue)
async def record_like(
    video_id: str,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> CounterValue:
    value = await video_service.record_like(session, video_id)
    await session.commit()
    return CounterValue(id=video_id, value=value)


@router.get("/{video_id}/comments", response_model=list[CommentOut])
async def list_comments(
    video_id: str,
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> list[CommentOut]:
    comments = await comment_service.list_comments(session, video_id, limit=limit)
    return [CommentOut.model_validate(comment) for comment in comments]


@router.post("/{video_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def add_comment(
    video_id: str,
    payload: CommentCreate,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> CommentOut:
    comment = await comment_service.add_comment(session, video_id=video_id, author=user, text=payload.text)
    await session.commit()
    return CommentOut.model_validate(comment)
