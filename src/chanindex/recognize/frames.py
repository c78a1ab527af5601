"""Representative frame extraction from video documents via ffprobe/ffmpeg."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from chanindex.cancel import NEVER, CancellationToken, OperationCancelled
from chanindex.db.models import Media, MediaType
from chanindex.recognize.tools import run_tool

logger = logging.getLogger(__name__)

DEFAULT_FRAME_COUNT = 10


class FrameExtractor:
    """Pulls evenly spaced still frames out of a document that is a video.

    Frames are written to temporary PNG files; the caller owns them and must
    delete them after use. Every failure yields fewer (or zero) frames, never
    an exception, except cancellation.

    Args:
        ffmpeg: ffmpeg executable.
        ffprobe: ffprobe executable.
        frame_count: Frames to extract per video (first at 0 s, last at the end).
        token: Cancellation token; kills the running tool when set.
    """

    def __init__(
        self,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
        frame_count: int = DEFAULT_FRAME_COUNT,
        token: CancellationToken = NEVER,
    ) -> None:
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.frame_count = frame_count
        self.token = token

    def extract_frames(self, media: Media) -> list[Path]:
        """Return temporary frame images for *media*, or [] if it is not a usable video."""
        if media.type is not MediaType.DOCUMENT:
            logger.error("Can't extract frames from media of type %s", media.type.value)
            return []

        path = Path(media.file_path)
        if not path.is_file():
            logger.error("File %s does not exist", path)
            return []

        if not self.is_video(path):
            return []

        return self._extract(path)

    def is_video(self, path: Path) -> bool:
        result = run_tool(
            [self.ffprobe, "-v", "error", "-show_entries", "stream=codec_type",
             "-of", "default=nw=1", str(path)],
            self.token,
        )
        if not result.ok:
            logger.error("Can't check if %s is a video: ffprobe returned %d", path, result.returncode)
            return False
        return any(
            line.strip().lower() == "codec_type=video" for line in result.stdout.splitlines()
        )

    def duration(self, path: Path) -> float | None:
        result = run_tool(
            [self.ffprobe, "-v", "error", "-show_entries", "format=duration",
             "-of", "default=nw=1:nk=1", str(path)],
            self.token,
        )
        if not result.ok:
            logger.error("Can't get duration of %s: ffprobe returned %d", path, result.returncode)
            return None

        raw = result.stdout.strip()
        try:
            value = float(raw)
        except ValueError:
            logger.error('Can\'t parse duration as a number: "%s"', raw)
            return None
        if value <= 0:
            logger.error("Non-positive duration %s for %s", value, path)
            return None
        return value

    def timestamps(self, duration: float) -> list[float]:
        """Seek positions for ``frame_count`` frames spread over [0, duration]."""
        if self.frame_count == 1:
            return [0.0]
        step = duration / (self.frame_count - 1)
        return [step * i for i in range(self.frame_count)]

    def _extract(self, path: Path) -> list[Path]:
        if self.frame_count < 1:
            logger.error("Can't extract %d frames", self.frame_count)
            return []

        duration = 0.0
        if self.frame_count > 1:
            probed = self.duration(path)
            if probed is None:
                return []
            duration = probed

        frames: list[Path] = []
        try:
            for timestamp in self.timestamps(duration):
                frame = self._extract_one(path, timestamp)
                if frame is not None:
                    frames.append(frame)
        except OperationCancelled:
            remove_files(frames)
            raise
        return frames

    def _extract_one(self, path: Path, timestamp: float) -> Path | None:
        fd, name = tempfile.mkstemp(prefix="chanindex-frame-", suffix=".png")
        os.close(fd)
        frame = Path(name)
        try:
            result = run_tool(
                [self.ffmpeg, "-hide_banner", "-loglevel", "error", "-y",
                 "-ss", f"{timestamp:.3f}", "-i", str(path), "-frames:v", "1", str(frame)],
                self.token,
            )
        except OperationCancelled:
            frame.unlink(missing_ok=True)
            raise

        if not result.ok or frame.stat().st_size == 0:
            logger.error(
                "Couldn't extract frame at %.3fs of %s, ffmpeg returned %d",
                timestamp,
                path,
                result.returncode,
            )
            frame.unlink(missing_ok=True)
            return None
        return frame


def remove_files(paths: list[Path]) -> None:
    """Delete temporary files, ignoring ones already gone."""
    for p in paths:
        try:
            p.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete temporary file %s: %s", p, exc)
