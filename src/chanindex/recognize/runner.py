"""Recognition pass: OCR every media item that has no recognitions yet.

Media are processed in fixed-size chunks. Each chunk's recognitions are
committed together, so a crash loses at most one chunk and re-running the
pass picks up exactly the media still lacking recognitions.

Per-image recognition runs on a bounded thread pool; each task borrows one
engine set from the EnginePool for its whole duration. All database access
stays on the calling thread.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image

from chanindex.cancel import NEVER, CancellationToken, OperationCancelled
from chanindex.db.models import Media, MediaType, Recognition
from chanindex.db.repository import Repository
from chanindex.recognize.consensus import ConsensusRecognizer
from chanindex.recognize.engines import EnginePool, OcrToken
from chanindex.recognize.frames import FrameExtractor, remove_files
from chanindex.recognize.tools import ToolError

logger = logging.getLogger(__name__)

BULK_CHUNK_SIZE = 50
LIVE_CHUNK_SIZE = 1


@dataclass
class RecognitionStats:
    """Counters for one recognition pass."""

    media_processed: int = 0
    recognitions_written: int = 0
    media_skipped: int = 0
    chunks_committed: int = 0
    cancelled: bool = False


@dataclass
class _Job:
    media: Media
    futures: list[Future] = field(default_factory=list)
    temp_files: list[Path] = field(default_factory=list)


class RecognitionPass:
    """Drives the OCR consensus engine over all unrecognized media.

    Args:
        repo: Open repository; the pass commits once per chunk.
        pool: OCR engine sets, one per worker thread.
        extractor: Frame source for document (video) media.
        recognizer: Consensus strategy; defaults to the 0.75 threshold.
        chunk_size: Media per committed chunk.
        token: Cancellation token checked between media and chunks.
    """

    def __init__(
        self,
        repo: Repository,
        pool: EnginePool,
        extractor: FrameExtractor,
        *,
        recognizer: ConsensusRecognizer | None = None,
        chunk_size: int = BULK_CHUNK_SIZE,
        token: CancellationToken = NEVER,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.repo = repo
        self.pool = pool
        self.extractor = extractor
        self.recognizer = recognizer or ConsensusRecognizer()
        self.chunk_size = chunk_size
        self.token = token
        self.stats = RecognitionStats()

    def run(self) -> RecognitionStats:
        self.stats = RecognitionStats()
        logger.info(
            "Starting to recognize media, %d pending",
            self.repo.count_media(unrecognized_only=True),
        )

        last_id = 0
        with ThreadPoolExecutor(max_workers=self.pool.size, thread_name_prefix="ocr") as executor:
            try:
                while True:
                    self.token.raise_if_cancelled()
                    chunk = self.repo.list_unrecognized_media(after_id=last_id, limit=self.chunk_size)
                    if not chunk:
                        break
                    self._process_chunk(chunk, executor)
                    self.repo.commit()
                    self.stats.chunks_committed += 1
                    last_id = chunk[-1].id
            except OperationCancelled:
                self.repo.rollback()
                self.stats.cancelled = True
                logger.warning(
                    "Recognition cancelled after %d chunks; committed chunks are kept",
                    self.stats.chunks_committed,
                )
                return self.stats

        logger.info(
            "Media recognized: %d processed, %d recognitions, %d left for a later run",
            self.stats.media_processed,
            self.stats.recognitions_written,
            self.stats.media_skipped,
        )
        return self.stats

    # ------------------------------------------------------------------
    # Chunk
    # ------------------------------------------------------------------

    def _process_chunk(self, chunk: list[Media], executor: ThreadPoolExecutor) -> None:
        jobs: list[_Job] = []
        try:
            for media in chunk:
                self.token.raise_if_cancelled()
                job = self._submit(media, executor)
                if job is not None:
                    jobs.append(job)

            # Aggregation waits for every image of the chunk to settle.
            for job in jobs:
                self._store(job)
        finally:
            for job in jobs:
                for future in job.futures:
                    future.cancel()
            wait([f for job in jobs for f in job.futures])
            for job in jobs:
                remove_files(job.temp_files)

    def _submit(self, media: Media, executor: ThreadPoolExecutor) -> _Job | None:
        job = _Job(media=media)
        if media.type is MediaType.PHOTO:
            images = [Path(media.file_path)]
        elif media.type is MediaType.DOCUMENT:
            images = self.extractor.extract_frames(media)
            job.temp_files = images
            if not images:
                logger.info("No frames extracted from media %s, will retry on a later run", media.id)
                self.stats.media_skipped += 1
                return None
        else:
            logger.warning("Media %s has unsupported type %s", media.id, media.type)
            self.stats.media_skipped += 1
            return None

        job.futures = [executor.submit(self._recognize_image, image) for image in images]
        return job

    def _recognize_image(self, image: Path) -> OcrToken:
        with self.pool.acquire() as engines:
            return self.recognizer.recognize_file(engines, image)

    def _store(self, job: _Job) -> None:
        # Recognitions are append-only, so a media is stored whole or not at all.
        tokens: list[OcrToken] = []
        failed = False
        for future in job.futures:
            try:
                tokens.append(future.result())
            except (ToolError, OSError, Image.DecompressionBombError) as exc:
                logger.error("OCR failed for media %s (%s): %s", job.media.id, job.media.file_path, exc)
                failed = True

        if failed or not tokens:
            self.stats.media_skipped += 1
            return

        for token in tokens:
            self.repo.add_recognition(
                Recognition(media_id=job.media.id, text=token.text, confidence=token.confidence)
            )
        self.stats.recognitions_written += len(tokens)
        self.stats.media_processed += 1
