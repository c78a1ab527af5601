"""Consensus recognition of a single image.

The primary engine reads the whole page word by word. Words it is unsure
about (confidence below the threshold) are cropped out and re-read by every
secondary engine in single-word mode; the most confident crop result wins
if it strictly beats the primary word.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from PIL import Image

from chanindex.recognize.engines import OcrEngine, OcrToken, OcrWord
from chanindex.recognize.tools import ToolError

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.75


class ConsensusRecognizer:
    """Runs the primary/secondary engine consensus over one image at a time."""

    def __init__(self, threshold: float = DEFAULT_THRESHOLD) -> None:
        self.threshold = threshold

    def recognize_file(self, engines: Sequence[OcrEngine], path: Path | str) -> OcrToken:
        """Open *path* and recognize it.

        Raises:
            OSError: If the image cannot be opened.
            ToolError: If the primary engine fails.
        """
        with Image.open(path) as img:
            img.load()
            return self.recognize(engines, img)

    def recognize(self, engines: Sequence[OcrEngine], image: Image.Image) -> OcrToken:
        """Return the lower-cased page text and the mean confidence of its words.

        A page with no words yields ``OcrToken("", 1.0)`` so the media is
        still marked as processed.
        """
        if not engines:
            raise ValueError("At least one OCR engine is required")

        primary, secondary = engines[0], list(engines[1:])
        accepted: list[OcrToken] = []

        for word in primary.recognize_words(image):
            seed = OcrToken(word.text, word.confidence)
            if word.confidence >= self.threshold or not secondary:
                accepted.append(seed)
                continue

            candidate = self._recognize_crop(secondary, image, word)
            if candidate is not None and candidate.confidence > seed.confidence:
                accepted.append(candidate)
            else:
                accepted.append(seed)

        if not accepted:
            return OcrToken("", 1.0)

        text = " ".join(t.text for t in accepted).lower()
        confidence = sum(t.confidence for t in accepted) / len(accepted)
        return OcrToken(text, confidence)

    def _recognize_crop(
        self, engines: Sequence[OcrEngine], image: Image.Image, word: OcrWord
    ) -> OcrToken | None:
        if word.box.is_empty:
            return None

        crop = image.crop(word.box.as_crop())
        best: OcrToken | None = None
        for engine in engines:
            try:
                token = engine.recognize_single_word(crop)
            except ToolError as exc:
                logger.warning("Crop re-recognition of %r failed: %s", word.text, exc)
                continue
            if token is None or not token.text:
                continue
            if best is None or token.confidence > best.confidence:
                best = token
        return best
