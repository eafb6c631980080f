"""ffmpeg helpers for audio extraction and thumbnails."""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from pathlib import Path
from typing import Protocol

from productivity_talk.core.config import settings
from productivity_talk.core.errors import ServiceError

logger = logging.getLogger(__name__)


class MediaTools(Protocol):
    async def extract_audio(self, video_path: Path, audio_path: Path) -> None: ...

    async def extract_thumbnail(self, video_path: Path, image_path: Path) -> None: ...


class FfmpegMediaTools:
    """Runs ffmpeg as a subprocess. Every failure surfaces as ``ServiceError``."""

    def __init__(self, binary: str = "ffmpeg", timeout: float = 600.0) -> None:
        self.binary = binary
        self.timeout = timeout

    async def _run(self, *args: str, output: Path) -> None:
        cmd = [self.binary, "-y", "-loglevel", "error", *args, str(output)]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise ServiceError(f"ffmpeg executable not found: {self.binary}") from exc

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise ServiceError(f"ffmpeg timed out after {self.timeout:.0f}s") from exc

        if process.returncode != 0:
            detail = (stderr or b"").decode("utf-8", errors="replace").strip()
            logger.warning("ffmpeg failed", extra={"returncode": process.returncode, "stderr": detail[:500]})
            raise ServiceError(f"ffmpeg exited with {process.returncode}: {detail[:200]}")
        if not output.is_file():
            raise ServiceError(f"ffmpeg produced no output: {output.name}")

    async def extract_audio(self, video_path: Path, audio_path: Path) -> None:
        await self._run("-i", str(video_path), "-vn", "-f", "mp3", output=audio_path)
        logger.debug("Extracted audio", extra={"video": str(video_path), "size": audio_path.stat().st_size})

    async def extract_thumbnail(self, video_path: Path, image_path: Path) -> None:
        # first decodable frame
        await self._run("-i", str(video_path), "-frames:v", "1", "-q:v", "2", "-f", "image2", output=image_path)


@lru_cache
def get_media_tools() -> FfmpegMediaTools:
    return FfmpegMediaTools(settings.ffmpeg_binary, settings.ffmpeg_timeout_seconds)
