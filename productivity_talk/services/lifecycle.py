"""Processing status transitions for video records."""

from __future__ import annotations

import logging

from productivity_talk.core.errors import InvalidStatusTransition
from productivity_talk.db.models import ProcessingStatus, Video

logger = logging.getLogger(__name__)

_ORDER = {
    ProcessingStatus.UPLOADING: 0,
    ProcessingStatus.TRANSCRIBING: 1,
    ProcessingStatus.ANALYZING: 2,
    ProcessingStatus.READY: 3,
}
TERMINAL_STATUSES = frozenset({ProcessingStatus.READY, ProcessingStatus.ERROR})


def can_transition(current: ProcessingStatus, target: ProcessingStatus) -> bool:
    """Statuses only move forward; ``error`` is reachable from anywhere."""

    if target is ProcessingStatus.ERROR:
        return True
    if current in TERMINAL_STATUSES:
        return current is target
    return _ORDER[target] >= _ORDER[current]


def advance_status(video: Video, target: ProcessingStatus, *, error: str | None = None) -> None:
    """Move ``video`` to ``target`` or raise :class:`InvalidStatusTransition`."""

    current = ProcessingStatus(video.processing_status)
    if not can_transition(current, target):
        raise InvalidStatusTransition(f"Cannot move video {video.id} from {current.value} to {target.value}")

    if current is not target:
        logger.info(
            "Video status changed",
            extra={"video_id": video.id, "from_status": current.value, "to_status": target.value},
        )
    video.processing_status = target.value
    if target is ProcessingStatus.ERROR:
        video.processing_error = error
        video.next_retry_at = None
