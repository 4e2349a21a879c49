import logging
import re
import threading
import time
from typing import List

from .errors import ExtractionFailure
from .models import ExtractedText

logger = logging.getLogger(__name__)

try:
    import easyocr
except ImportError:
    easyocr = None

# Languages the local models are tuned for
SUPPORTED_LANGUAGES = ["zh", "en", "ja", "ko", "es", "fr", "de", "it", "pt", "ru", "ar", "hi", "th", "vi"]

_NEWLINES = re.compile(r'\n+')
_WHITESPACE = re.compile(r'\s+')
# Word characters, CJK/kana/hangul and the punctuation subtitle rules rely on
_UNWANTED = re.compile(
    r'[^\w\s一-鿿぀-ゟ゠-ヿ가-힯'
    r'.,!?;:\'"()\[\]{}<>*~♪♫'
    r'，。！？；：“”‘’（）【】《》、-]'
)

_SCRIPT_LANGUAGES = [
    (re.compile(r'[぀-ゟ゠-ヿ]'), "ja"),  # kana before Han, kanji is shared
    (re.compile(r'[一-鿿]'), "zh"),
    (re.compile(r'[가-힯]'), "ko"),
    (re.compile(r'[؀-ۿ]'), "ar"),
    (re.compile(r'[ऀ-ॿ]'), "hi"),
    (re.compile(r'[฀-๿]'), "th"),
]

def clean_subtitle_text(text: str) -> str:
    """Flatten OCR output into a single normalized subtitle line"""
    text = _NEWLINES.sub(' ', text)
    text = _UNWANTED.sub('', text)
    text = _WHITESPACE.sub(' ', text)
    return text.strip()

def detect_language(text: str) -> str:
    """Guess the source language from the script in use, defaulting to English"""
    for pattern, code in _SCRIPT_LANGUAGES:
        if pattern.search(text):
            return code
    return "en"

class EasyOcrExtractor:
    """Text extractor backed by EasyOCR"""

    lang_map = {
        "ja": ["ja", "en"],
        "ko": ["ko", "en"],
        "zh": ["ch_sim", "en"],
        "es": ["es", "en"],
        "fr": ["fr", "en"],
        "en": ["en"],
        "auto": ["en", "ch_sim"],
    }

    def __init__(self, source_lang: str = "auto", min_confidence: float = 0.2, gpu: bool = False):
        self.source_lang = source_lang
        self.min_confidence = min_confidence
        self.gpu = gpu
        self.reader = None
        self._current_langs: List[str] = []
        self._lock = threading.Lock()

    def warm_up(self):
        self._ensure_reader()

    def _ensure_reader(self):
        if easyocr is None:
            raise ExtractionFailure("easyocr is not installed")

        langs = self.lang_map.get(self.source_lang, ["en"])
        with self._lock:
            if self.reader is not None and self._current_langs == langs:
                return self.reader
            try:
                logger.info(f"Initializing EasyOCR with {langs}...")
                start_time = time.time()
                self.reader = easyocr.Reader(langs, gpu=self.gpu)
                self._current_langs = langs
                logger.info(f"EasyOCR initialized in {time.time() - start_time:.2f}s")
            except Exception as e:
                raise ExtractionFailure(f"EasyOCR init error: {e}") from e
            return self.reader

    def extract(self, image: bytes) -> ExtractedText:
        reader = self._ensure_reader()
        try:
            results = reader.readtext(image)
        except Exception as e:
            raise ExtractionFailure(f"OCR error: {e}") from e

        kept = []
        for bbox, text, prob in results:
            if prob < self.min_confidence:
                continue
            top = min(p[1] for p in bbox)
            left = min(p[0] for p in bbox)
            kept.append((top, left, text, prob))

        if not kept:
            return ExtractedText(text="", confidence=0.0)

        # Reading order: line by line, then left to right
        kept.sort(key=lambda item: (item[0], item[1]))
        text = clean_subtitle_text(" ".join(item[2] for item in kept))
        confidence = sum(item[3] for item in kept) / len(kept)
        logger.debug(f"OCR kept {len(kept)} of {len(results)} boxes: {text[:40]}")
        return ExtractedText(text=text, confidence=float(confidence))
