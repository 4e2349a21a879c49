import logging

from .cloud_providers import GeminiProvider, GoogleTranslateProvider, OllamaProvider
from .config import Settings
from .region_monitor import RegionMonitor
from .screen_capture import ScreenCapture
from .text_extraction import EasyOcrExtractor
from .translation_cache import TranslationCache
from .translation_dispatcher import TranslationDispatcher
from .translation_service import M2M100Provider, MarianProvider

logger = logging.getLogger(__name__)

def build_dispatcher(settings: Settings) -> TranslationDispatcher:
    """Provider chain: pair models first, then the multilingual model, then remote APIs"""
    dispatcher = TranslationDispatcher(
        cache=TranslationCache(settings.cache_capacity),
        provider_timeout=settings.provider_timeout,
    )
    dispatcher.register_provider(MarianProvider(pairs=settings.marian_pairs), priority=1)
    dispatcher.register_provider(M2M100Provider(model_name=settings.m2m100_model), priority=2)
    dispatcher.register_provider(
        OllamaProvider(base_url=settings.ollama_url, model=settings.ollama_model),
        priority=3, enabled=bool(settings.ollama_url))
    dispatcher.register_provider(
        GoogleTranslateProvider(api_key=settings.google_api_key),
        priority=4, enabled=bool(settings.google_api_key))
    dispatcher.register_provider(
        GeminiProvider(api_key=settings.gemini_api_key, model=settings.gemini_model),
        priority=5, enabled=bool(settings.gemini_api_key))
    return dispatcher

def build_pipeline(settings: Settings, capturer=None, extractor=None, dispatcher=None) -> RegionMonitor:
    """Wire capture, OCR and translation into a region monitor.

    Collaborators can be swapped out; the defaults use the screen, EasyOCR and
    the local/remote provider chain.
    """
    monitor = RegionMonitor(
        capturer=capturer or ScreenCapture(),
        extractor=extractor or EasyOcrExtractor(source_lang=settings.source_lang),
        dispatcher=dispatcher or build_dispatcher(settings),
        interval_ms=settings.interval_ms,
        min_text_length=settings.min_text_length,
        source_lang=settings.source_lang,
        target_lang=settings.target_lang,
        max_workers=settings.max_workers,
        stop_when_idle=settings.stop_when_idle,
        subtitles_only=settings.subtitles_only,
    )
    for saved in settings.regions:
        monitor.add_region(saved.bounds, display_id=saved.display_id)
    logger.info(f"Pipeline ready with {len(settings.regions)} saved region(s)")
    return monitor
