import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterable, Optional

import torch
from transformers import AutoModelForSeq2SeqLM, AutoTokenizer

from .errors import ProviderFailure
from .models import ProviderOutput
from .text_extraction import SUPPORTED_LANGUAGES, detect_language

logger = logging.getLogger(__name__)

MARIAN_MODELS = {
    ("zh", "en"): "Helsinki-NLP/opus-mt-zh-en",
    ("en", "zh"): "Helsinki-NLP/opus-mt-en-zh",
    ("ja", "en"): "Helsinki-NLP/opus-mt-ja-en",
    ("en", "ja"): "Helsinki-NLP/opus-mt-en-jap",
    ("ko", "en"): "Helsinki-NLP/opus-mt-ko-en",
    ("es", "en"): "Helsinki-NLP/opus-mt-es-en",
    ("fr", "en"): "Helsinki-NLP/opus-mt-fr-en",
    ("de", "en"): "Helsinki-NLP/opus-mt-de-en",
}

_LANG_ALIASES = {
    "english": "en", "eng": "en",
    "japanese": "ja", "jp": "ja", "jpn": "ja", "日本語": "ja",
    "korean": "ko", "kr": "ko", "kor": "ko", "한국어": "ko",
    "chinese": "zh", "zho": "zh", "cn": "zh", "zh-cn": "zh", "zh_cn": "zh",
    "zh-hans": "zh", "zh-hant": "zh", "中文": "zh",
    "spanish": "es", "french": "fr", "german": "de",
}

def normalize_language(name: Optional[str]) -> Optional[str]:
    """Map user-visible language names and variants to short codes; None means auto"""
    if not name:
        return None
    n = name.strip().lower()
    if n == "auto":
        return None
    return _LANG_ALIASES.get(n, n)

def resolve_marian_model_for_pair(source_lang: Optional[str], target_lang: Optional[str]) -> Optional[str]:
    """Pick an opus-mt checkpoint for the language pair, if one is known"""
    src = normalize_language(source_lang)
    tgt = normalize_language(target_lang)
    if not src or not tgt:
        return None
    return MARIAN_MODELS.get((src, tgt))

class TransformersProvider:
    """Shared model loading and generation for local seq2seq providers.

    Models are only loaded by warm_up(); translate() fails fast while a model
    is missing or the provider is busy, so a slow load never runs inside a
    dispatch timeout.
    """

    name = "transformers"
    default_confidence = 0.7

    def __init__(self, device: Optional[str] = None, max_length: int = 200, num_beams: int = 2,
                 lock_timeout: float = 2.0):
        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        self.max_length = max_length
        self.num_beams = num_beams
        self.lock_timeout = lock_timeout
        self._lock = threading.Lock()

    @contextmanager
    def _busy(self):
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise ProviderFailure(self.name, "busy")
        try:
            yield
        finally:
            self._lock.release()

    def _load(self, model_name: str):
        logger.info(f"Loading model {model_name} on {self.device}...")
        start_time = time.time()
        try:
            model = AutoModelForSeq2SeqLM.from_pretrained(model_name).to(self.device)
            tokenizer = AutoTokenizer.from_pretrained(model_name)
        except Exception as e:
            raise ProviderFailure(self.name, f"error loading {model_name}: {e}") from e
        logger.info(f"Model loaded successfully in {time.time() - start_time:.2f}s")
        return model, tokenizer

    def _generate(self, model, tokenizer, text: str, **gen_kwargs) -> str:
        inputs = tokenizer(text, return_tensors="pt").to(self.device)
        with torch.no_grad():
            tokens = model.generate(
                **inputs,
                max_length=self.max_length,
                num_beams=self.num_beams,
                early_stopping=True,
                **gen_kwargs,
            )
        return tokenizer.batch_decode(tokens, skip_special_tokens=True)[0]

class M2M100Provider(TransformersProvider):
    """Fast multilingual model covering any pair of supported languages"""

    name = "m2m100"
    default_confidence = 0.7

    def __init__(self, model_name: str = "facebook/m2m100_418M", **kwargs):
        super().__init__(**kwargs)
        self.model_name = model_name
        self.model = None
        self.tokenizer = None

    def warm_up(self):
        if self.model is not None:
            return
        model, tokenizer = self._load(self.model_name)
        with self._lock:
            self.model, self.tokenizer = model, tokenizer

    def _resolve_forced_bos_token_id(self, tgt_lang: str) -> Optional[int]:
        """Resolve the target language token across tokenizer versions"""
        get_lang_id = getattr(self.tokenizer, "get_lang_id", None)
        if callable(get_lang_id):
            try:
                return int(get_lang_id(tgt_lang))
            except (KeyError, ValueError):
                pass
        token_id = self.tokenizer.convert_tokens_to_ids(f"__{tgt_lang}__")
        if token_id is None or token_id == getattr(self.tokenizer, "unk_token_id", None):
            return None
        return int(token_id)

    def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> ProviderOutput:
        src = normalize_language(source_lang) or detect_language(text)
        tgt = normalize_language(target_lang)
        if src not in SUPPORTED_LANGUAGES or tgt not in SUPPORTED_LANGUAGES:
            raise ProviderFailure(self.name, f"unsupported pair {src} -> {tgt}")
        if self.model is None:
            raise ProviderFailure(self.name, "model not loaded")

        with self._busy():
            self.tokenizer.src_lang = src
            forced_bos_token_id = self._resolve_forced_bos_token_id(tgt)
            if forced_bos_token_id is None:
                raise ProviderFailure(self.name, f"unable to resolve target language token for {tgt}")
            translated = self._generate(self.model, self.tokenizer, text,
                                        forced_bos_token_id=forced_bos_token_id)

        return ProviderOutput(translated_text=translated, confidence=self.default_confidence,
                              detected_language=src)

class MarianProvider(TransformersProvider):
    """Specialized opus-mt models, one checkpoint per language pair"""

    name = "marian"
    default_confidence = 0.8

    def __init__(self, pairs: Iterable[str] = ("zh-en", "ja-en", "ko-en"), **kwargs):
        super().__init__(**kwargs)
        self.pairs = [tuple(p.split("-", 1)) for p in pairs]
        self._models: Dict[tuple, tuple] = {}

    def warm_up(self):
        """Preload the configured pairs; a pair that fails to load is skipped"""
        for pair in self.pairs:
            if pair in self._models:
                continue
            model_name = resolve_marian_model_for_pair(*pair)
            if not model_name:
                logger.warning(f"No opus-mt checkpoint known for {pair[0]}-{pair[1]}")
                continue
            try:
                loaded = self._load(model_name)
            except ProviderFailure as e:
                logger.warning(f"Failed to load MarianMT {pair[0]}-{pair[1]}, m2m100 will cover it: {e}")
                continue
            with self._lock:
                self._models[pair] = loaded

    def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> ProviderOutput:
        src = normalize_language(source_lang) or detect_language(text)
        tgt = normalize_language(target_lang)
        pair = (src, tgt)
        if pair not in self.pairs:
            raise ProviderFailure(self.name, f"pair {src}-{tgt} not configured")
        loaded = self._models.get(pair)
        if loaded is None:
            raise ProviderFailure(self.name, f"model for {src}-{tgt} not loaded")

        model, tokenizer = loaded
        with self._busy():
            translated = self._generate(model, tokenizer, text)

        return ProviderOutput(translated_text=translated, confidence=self.default_confidence,
                              detected_language=src)
