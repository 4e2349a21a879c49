from types import SimpleNamespace

import pytest

from subwatch import text_extraction
from subwatch.errors import ExtractionFailure
from subwatch.text_extraction import EasyOcrExtractor, clean_subtitle_text, detect_language

def test_clean_flattens_lines_and_strips_noise():
    assert clean_subtitle_text("  I can't\n\nbelieve it!  ") == "I can't believe it!"
    assert clean_subtitle_text("Hello @#$ world|") == "Hello world"
    assert clean_subtitle_text("♪ la la ♪") == "♪ la la ♪"
    assert clean_subtitle_text("你好，世界！") == "你好，世界！"

@pytest.mark.parametrize("text, language", [
    ("你好世界", "zh"),
    ("こんにちは", "ja"),
    ("日本語のテキスト", "ja"),
    ("안녕하세요", "ko"),
    ("مرحبا", "ar"),
    ("नमस्ते", "hi"),
    ("สวัสดี", "th"),
    ("Hello there", "en"),
])
def test_detect_language_by_script(text, language):
    assert detect_language(text) == language

class _FakeReader:
    instances = []

    def __init__(self, langs, gpu=False):
        self.langs = langs
        _FakeReader.instances.append(self)

    def readtext(self, image):
        return [
            ([[0, 40], [50, 40], [50, 60], [0, 60]], "second line.", 0.8),
            ([[0, 0], [50, 0], [50, 20], [0, 20]], "First line", 0.6),
            ([[60, 0], [90, 0], [90, 20], [60, 20]], "noise", 0.1),
        ]

@pytest.fixture
def fake_easyocr(monkeypatch):
    _FakeReader.instances = []
    monkeypatch.setattr(text_extraction, "easyocr", SimpleNamespace(Reader=_FakeReader))

def test_extractor_joins_boxes_in_reading_order(fake_easyocr):
    extractor = EasyOcrExtractor(source_lang="ja")

    result = extractor.extract(b"png-bytes")

    assert result.text == "First line second line."
    assert result.confidence == pytest.approx(0.7)
    assert _FakeReader.instances[0].langs == ["ja", "en"]

def test_reader_is_created_once(fake_easyocr):
    extractor = EasyOcrExtractor()
    extractor.extract(b"a")
    extractor.extract(b"b")
    assert len(_FakeReader.instances) == 1

def test_reader_errors_become_extraction_failures(fake_easyocr):
    def broken_readtext(image):
        raise RuntimeError("bad image")

    extractor = EasyOcrExtractor()
    extractor.warm_up()
    extractor.reader.readtext = broken_readtext

    with pytest.raises(ExtractionFailure):
        extractor.extract(b"broken")

def test_missing_easyocr_is_an_extraction_failure(monkeypatch):
    monkeypatch.setattr(text_extraction, "easyocr", None)
    with pytest.raises(ExtractionFailure):
        EasyOcrExtractor().extract(b"png")
