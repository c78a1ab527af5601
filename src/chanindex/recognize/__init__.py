"""OCR enrichment — engines, consensus recognition, frame extraction, recognition pass."""

from chanindex.recognize.consensus import ConsensusRecognizer
from chanindex.recognize.engines import (
    BoundingBox,
    EnginePool,
    OcrEngine,
    OcrToken,
    OcrWord,
    TesseractEngine,
)
from chanindex.recognize.frames import FrameExtractor
from chanindex.recognize.runner import RecognitionPass, RecognitionStats
from chanindex.recognize.tools import ToolError

__all__ = [
    "BoundingBox",
    "ConsensusRecognizer",
    "EnginePool",
    "FrameExtractor",
    "OcrEngine",
    "OcrToken",
    "OcrWord",
    "RecognitionPass",
    "RecognitionStats",
    "TesseractEngine",
    "ToolError",
]
