"""OCR engine contract, the Tesseract implementation, and the per-worker engine pool.

Confidences are normalised to the 0–1 scale at this boundary; Tesseract
reports 0–100 per word.
"""

from __future__ import annotations

import queue
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import pytesseract
from PIL import Image
from pytesseract import Output

from chanindex.recognize.tools import ToolError

# Tesseract page segmentation modes.
_PSM_AUTO = 3
_PSM_SINGLE_WORD = 8
_WORD_LEVEL = 5


@dataclass(frozen=True)
class BoundingBox:
    left: int
    top: int
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def as_crop(self) -> tuple[int, int, int, int]:
        """PIL crop box (left, upper, right, lower)."""
        return (self.left, self.top, self.left + self.width, self.top + self.height)


@dataclass(frozen=True)
class OcrWord:
    text: str
    confidence: float
    box: BoundingBox


@dataclass(frozen=True)
class OcrToken:
    text: str
    confidence: float


class OcrEngine(ABC):
    """One recognizer for one language set. Instances are not reentrant."""

    language: str

    @abstractmethod
    def recognize_words(self, image: Image.Image) -> list[OcrWord]:
        """Recognize a whole page; return its words with confidence and box.

        Raises:
            ToolError: If the engine fails on this image.
        """

    @abstractmethod
    def recognize_single_word(self, image: Image.Image) -> OcrToken | None:
        """Recognize a crop holding a single word; None if nothing was read.

        Raises:
            ToolError: If the engine fails on this image.
        """


class TesseractEngine(OcrEngine):
    """Tesseract via pytesseract.

    Args:
        language: Tesseract language string (e.g. ``eng`` or ``eng+rus``).
        tessdata_dir: Optional tessdata directory.
        timeout: Seconds before a tesseract call is killed.
    """

    def __init__(self, language: str, tessdata_dir: str | None = None, timeout: int = 60) -> None:
        self.language = language
        self.tessdata_dir = tessdata_dir
        self.timeout = timeout

    def recognize_words(self, image: Image.Image) -> list[OcrWord]:
        data = self._image_to_data(image, _PSM_AUTO)
        words: list[OcrWord] = []
        for i, raw_text in enumerate(data.get("text", [])):
            text = (raw_text or "").strip()
            if not text or int(data["level"][i]) != _WORD_LEVEL:
                continue
            confidence = _confidence(data["conf"][i])
            if confidence is None:
                continue
            box = BoundingBox(
                left=int(data["left"][i]),
                top=int(data["top"][i]),
                width=int(data["width"][i]),
                height=int(data["height"][i]),
            )
            words.append(OcrWord(text=text, confidence=confidence, box=box))
        return words

    def recognize_single_word(self, image: Image.Image) -> OcrToken | None:
        data = self._image_to_data(image, _PSM_SINGLE_WORD)
        texts: list[str] = []
        confidences: list[float] = []
        for i, raw_text in enumerate(data.get("text", [])):
            text = (raw_text or "").strip()
            confidence = _confidence(data["conf"][i])
            if text and confidence is not None:
                texts.append(text)
                confidences.append(confidence)
        if not texts:
            return None
        return OcrToken(text=" ".join(texts), confidence=sum(confidences) / len(confidences))

    def _config(self, psm: int) -> str:
        parts = [f"--psm {psm}"]
        if self.tessdata_dir:
            parts.append(f'--tessdata-dir "{self.tessdata_dir}"')
        return " ".join(parts)

    def _image_to_data(self, image: Image.Image, psm: int) -> dict[str, list[Any]]:
        try:
            return pytesseract.image_to_data(
                image,
                lang=self.language,
                config=self._config(psm),
                timeout=self.timeout,
                output_type=Output.DICT,
            )
        except (RuntimeError, OSError) as exc:
            # TesseractError and timeouts are RuntimeErrors; a missing binary is an OSError.
            raise ToolError(f"tesseract ({self.language}) failed: {exc}") from exc


def _confidence(raw: Any) -> float | None:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if value < 0:
        return None
    return min(value, 100.0) / 100.0


class EnginePool:
    """Fixed set of engine lists, one per worker.

    Each list holds one engine per configured language, primary first. A
    list is handed to exactly one thread at a time via ``acquire()``.
    """

    def __init__(self, engine_sets: Sequence[Sequence[OcrEngine]]) -> None:
        if not engine_sets or not all(engine_sets):
            raise ValueError("EnginePool needs at least one non-empty engine set")
        self._queue: queue.Queue[list[OcrEngine]] = queue.Queue()
        for engines in engine_sets:
            self._queue.put(list(engines))
        self.size = len(engine_sets)

    @classmethod
    def tesseract(
        cls,
        languages: Sequence[str],
        workers: int = 1,
        tessdata_dir: str | None = None,
        timeout: int = 60,
    ) -> EnginePool:
        return cls(
            [
                [TesseractEngine(lang, tessdata_dir=tessdata_dir, timeout=timeout) for lang in languages]
                for _ in range(workers)
            ]
        )

    @contextmanager
    def acquire(self) -> Iterator[list[OcrEngine]]:
        engines = self._queue.get()
        try:
            yield engines
        finally:
            self._queue.put(engines)
