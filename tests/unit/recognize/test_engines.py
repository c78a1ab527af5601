"""Tests for the Tesseract engine adapter and the engine pool."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from PIL import Image

from chanindex.recognize.engines import BoundingBox, EnginePool, OcrToken, TesseractEngine
from chanindex.recognize.tools import ToolError


def _data(rows):
    keys = ("level", "text", "conf", "left", "top", "width", "height")
    return {k: [row[i] for row in rows] for i, k in enumerate(keys)}


@pytest.fixture
def image():
    return Image.new("RGB", (100, 40), "white")


def test_recognize_words_keeps_word_level_and_scales_confidence(image):
    data = _data([
        (1, "", "-1", 0, 0, 100, 40),
        (5, "Hello", "96.5", 1, 2, 30, 10),
        (5, "  ", "95", 40, 2, 5, 10),
        (5, "noconf", "-1", 50, 2, 20, 10),
        (5, "World", 40, 60, 2, 30, 10),
    ])
    with patch("chanindex.recognize.engines.pytesseract.image_to_data", return_value=data) as mock:
        words = TesseractEngine("eng+rus", tessdata_dir="/td", timeout=5).recognize_words(image)

    assert [(w.text, w.confidence) for w in words] == [("Hello", pytest.approx(0.965)), ("World", 0.4)]
    assert words[0].box == BoundingBox(1, 2, 30, 10)
    kwargs = mock.call_args.kwargs
    assert kwargs["lang"] == "eng+rus"
    assert "--psm 3" in kwargs["config"]
    assert "--tessdata-dir" in kwargs["config"]
    assert kwargs["timeout"] == 5


def test_recognize_single_word_joins_and_averages(image):
    data = _data([(5, "ab", "80", 0, 0, 1, 1), (5, "cd", "60", 0, 0, 1, 1)])
    with patch("chanindex.recognize.engines.pytesseract.image_to_data", return_value=data) as mock:
        token = TesseractEngine("eng").recognize_single_word(image)

    assert token.text == "ab cd"
    assert token.confidence == pytest.approx(0.7)
    assert "--psm 8" in mock.call_args.kwargs["config"]


def test_recognize_single_word_nothing_read(image):
    with patch(
        "chanindex.recognize.engines.pytesseract.image_to_data",
        return_value=_data([(5, "", "-1", 0, 0, 1, 1)]),
    ):
        assert TesseractEngine("eng").recognize_single_word(image) is None


@pytest.mark.parametrize("exc", [RuntimeError("Tesseract process timeout"), OSError("not found")])
def test_tesseract_failure_becomes_tool_error(image, exc):
    with patch("chanindex.recognize.engines.pytesseract.image_to_data", side_effect=exc):
        with pytest.raises(ToolError, match="tesseract"):
            TesseractEngine("eng").recognize_words(image)


def test_pool_builds_one_engine_per_language_per_worker():
    pool = EnginePool.tesseract(["eng", "rus"], workers=3, timeout=9)
    assert pool.size == 3
    with pool.acquire() as engines:
        assert [e.language for e in engines] == ["eng", "rus"]
        assert engines[0].timeout == 9


def test_pool_requires_engines():
    with pytest.raises(ValueError):
        EnginePool([])
    with pytest.raises(ValueError):
        EnginePool([[]])


def test_pool_hands_each_set_to_one_holder():
    pool = EnginePool([["a"], ["b"]])
    with pool.acquire() as first:
        with pool.acquire() as second:
            assert first is not second
            assert pool._queue.empty()
    assert pool._queue.qsize() == 2


def test_ocr_token_is_value_type():
    assert OcrToken("a", 0.5) == OcrToken("a", 0.5)
