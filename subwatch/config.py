import json
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from PyQt6.QtCore import QSettings

from .models import Bounds, SavedRegion

logger = logging.getLogger(__name__)

ORGANIZATION = "Subwatch"
APPLICATION = "SubtitleTranslator"

@dataclass
class Settings:
    """Runtime configuration for the watcher and the translation chain"""
    interval_ms: int = 1000
    min_text_length: int = 3
    source_lang: str = "auto"
    target_lang: str = "en"
    cache_capacity: int = 2000
    provider_timeout: float = 5.0
    max_workers: int = 4
    stop_when_idle: bool = False
    subtitles_only: bool = False
    debug_mode: bool = False
    m2m100_model: str = "facebook/m2m100_418M"
    marian_pairs: List[str] = field(default_factory=lambda: ["zh-en", "ja-en", "ko-en"])
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    google_api_key: str = ""
    ollama_url: str = ""
    ollama_model: str = "qwen2.5:7b-instruct"
    regions: List[SavedRegion] = field(default_factory=list)

def _as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).lower() == "true"

def _open(qsettings: Optional[QSettings]) -> QSettings:
    return qsettings if qsettings is not None else QSettings(ORGANIZATION, APPLICATION)

def load_settings(qsettings: Optional[QSettings] = None) -> Settings:
    """Load settings, falling back to defaults for missing keys"""
    store = _open(qsettings)
    defaults = Settings()

    settings = Settings(
        interval_ms=int(store.value("interval", defaults.interval_ms)),
        min_text_length=int(store.value("min_text_length", defaults.min_text_length)),
        source_lang=str(store.value("source_lang", defaults.source_lang)),
        target_lang=str(store.value("target_lang", defaults.target_lang)),
        cache_capacity=int(store.value("cache_capacity", defaults.cache_capacity)),
        provider_timeout=float(store.value("provider_timeout", defaults.provider_timeout)),
        max_workers=int(store.value("max_workers", defaults.max_workers)),
        stop_when_idle=_as_bool(store.value("stop_when_idle"), defaults.stop_when_idle),
        subtitles_only=_as_bool(store.value("subtitles_only"), defaults.subtitles_only),
        debug_mode=_as_bool(store.value("debug_mode"), defaults.debug_mode),
        m2m100_model=str(store.value("m2m100_model", defaults.m2m100_model)),
        gemini_model=str(store.value("gemini_model", defaults.gemini_model)),
        ollama_url=str(store.value("ollama_url", defaults.ollama_url)),
        ollama_model=str(store.value("ollama_model", defaults.ollama_model)),
    )

    # INI backends hand comma separated values back as a list
    pairs = store.value("marian_pairs", "")
    if isinstance(pairs, list):
        pairs = ",".join(pairs)
    if pairs:
        settings.marian_pairs = [p.strip() for p in str(pairs).split(",") if p.strip()]

    # API keys may live in the environment instead of the settings file
    settings.gemini_api_key = str(store.value("gemini_api_key", "") or os.environ.get("GEMINI_API_KEY", ""))
    settings.google_api_key = str(store.value("google_api_key", "") or os.environ.get("GOOGLE_API_KEY", ""))

    regions_json = store.value("regions", "")
    if isinstance(regions_json, list):
        regions_json = ",".join(regions_json)
    if regions_json:
        try:
            settings.regions = [
                SavedRegion(
                    bounds=Bounds(x=r["x"], y=r["y"], width=r["width"], height=r["height"]),
                    display_id=int(r.get("display_id", 0)),
                )
                for r in json.loads(regions_json)
            ]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error(f"Error loading regions: {e}")

    return settings

def save_settings(settings: Settings, qsettings: Optional[QSettings] = None):
    """Persist settings; API keys are only written when set"""
    store = _open(qsettings)
    store.setValue("interval", settings.interval_ms)
    store.setValue("min_text_length", settings.min_text_length)
    store.setValue("source_lang", settings.source_lang)
    store.setValue("target_lang", settings.target_lang)
    store.setValue("cache_capacity", settings.cache_capacity)
    store.setValue("provider_timeout", settings.provider_timeout)
    store.setValue("max_workers", settings.max_workers)
    store.setValue("stop_when_idle", "true" if settings.stop_when_idle else "false")
    store.setValue("subtitles_only", "true" if settings.subtitles_only else "false")
    store.setValue("debug_mode", "true" if settings.debug_mode else "false")
    store.setValue("m2m100_model", settings.m2m100_model)
    store.setValue("marian_pairs", ",".join(settings.marian_pairs))
    store.setValue("gemini_model", settings.gemini_model)
    store.setValue("ollama_url", settings.ollama_url)
    store.setValue("ollama_model", settings.ollama_model)
    if settings.gemini_api_key:
        store.setValue("gemini_api_key", settings.gemini_api_key)
    if settings.google_api_key:
        store.setValue("google_api_key", settings.google_api_key)

    regions_data = [
        {"x": r.bounds.x, "y": r.bounds.y, "width": r.bounds.width, "height": r.bounds.height,
         "display_id": r.display_id}
        for r in settings.regions
    ]
    store.setValue("regions", json.dumps(regions_data))
    store.sync()
