"""Tests for the primary/secondary OCR consensus."""

from __future__ import annotations

import pytest
from PIL import Image

from chanindex.recognize.consensus import ConsensusRecognizer
from chanindex.recognize.engines import BoundingBox, OcrEngine, OcrToken, OcrWord
from chanindex.recognize.tools import ToolError

BOX = BoundingBox(left=5, top=5, width=20, height=10)


class FakeEngine(OcrEngine):
    def __init__(self, words=None, single=None, language="eng"):
        self.language = language
        self.words = words or []
        self.single = single
        self.single_calls = 0

    def recognize_words(self, image):
        return list(self.words)

    def recognize_single_word(self, image):
        self.single_calls += 1
        if isinstance(self.single, Exception):
            raise self.single
        return self.single


@pytest.fixture
def image():
    return Image.new("RGB", (100, 40), "white")


def test_confident_word_is_kept_without_crop(image):
    secondary = FakeEngine(single=OcrToken("other", 0.99))
    primary = FakeEngine([OcrWord("Hello", 0.9, BOX)])

    result = ConsensusRecognizer().recognize([primary, secondary], image)

    assert result == OcrToken("hello", 0.9)
    assert secondary.single_calls == 0


def test_low_confidence_word_replaced_by_better_crop(image):
    primary = FakeEngine([OcrWord("Helo", 0.5, BOX)])
    secondary = FakeEngine(single=OcrToken("Hello", 0.9))

    result = ConsensusRecognizer().recognize([primary, secondary], image)

    assert result.text == "hello"
    assert result.confidence == pytest.approx(0.9)


@pytest.mark.parametrize("crop_confidence", [0.5, 0.4])
def test_crop_must_be_strictly_better(image, crop_confidence):
    primary = FakeEngine([OcrWord("Helo", 0.5, BOX)])
    secondary = FakeEngine(single=OcrToken("Hello", crop_confidence))

    result = ConsensusRecognizer().recognize([primary, secondary], image)

    assert result == OcrToken("helo", 0.5)


def test_best_secondary_wins(image):
    primary = FakeEngine([OcrWord("x", 0.2, BOX)])
    second = FakeEngine(single=OcrToken("ab", 0.6))
    third = FakeEngine(single=OcrToken("abc", 0.8))

    result = ConsensusRecognizer().recognize([primary, second, third], image)

    assert result == OcrToken("abc", 0.8)


def test_failing_secondary_falls_back(image, caplog):
    primary = FakeEngine([OcrWord("word", 0.3, BOX)])
    secondary = FakeEngine(single=ToolError("boom"))

    result = ConsensusRecognizer().recognize([primary, secondary], image)

    assert result == OcrToken("word", 0.3)
    assert "Crop re-recognition" in caplog.text


def test_empty_box_is_not_cropped(image):
    primary = FakeEngine([OcrWord("word", 0.3, BoundingBox(0, 0, 0, 0))])
    secondary = FakeEngine(single=OcrToken("better", 0.99))

    ConsensusRecognizer().recognize([primary, secondary], image)

    assert secondary.single_calls == 0


def test_single_engine_accepts_every_word(image):
    primary = FakeEngine([OcrWord("One", 0.2, BOX), OcrWord("TWO", 0.6, BOX)])

    result = ConsensusRecognizer().recognize([primary], image)

    assert result.text == "one two"
    assert result.confidence == pytest.approx(0.4)


def test_no_words_is_empty_with_full_confidence(image):
    result = ConsensusRecognizer().recognize([FakeEngine([])], image)
    assert result == OcrToken("", 1.0)


def test_threshold_is_configurable(image):
    primary = FakeEngine([OcrWord("word", 0.8, BOX)])
    secondary = FakeEngine(single=OcrToken("better", 0.95))

    result = ConsensusRecognizer(threshold=0.9).recognize([primary, secondary], image)

    assert result.text == "better"


def test_no_engines_raises(image):
    with pytest.raises(ValueError):
        ConsensusRecognizer().recognize([], image)


def test_recognize_file(tmp_path):
    path = tmp_path / "page.png"
    Image.new("RGB", (50, 20), "white").save(path)
    primary = FakeEngine([OcrWord("Saved", 0.8, BOX)])

    assert ConsensusRecognizer().recognize_file([primary], path) == OcrToken("saved", 0.8)


def test_recognize_file_missing_raises(tmp_path):
    with pytest.raises(OSError):
        ConsensusRecognizer().recognize_file([FakeEngine()], tmp_path / "missing.png")
