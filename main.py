#!/usr/bin/env python3
"""
Subwatch - Real-time subtitle region translator
Watches saved screen regions and logs a translation whenever their text changes
"""

import logging
import signal
import sys

from PyQt6.QtGui import QGuiApplication

from subwatch.config import load_settings
from subwatch.logging_config import setup_logger
from subwatch.pipeline import build_pipeline

def main():
    """Main application entry point"""
    app = QGuiApplication(sys.argv)
    settings = load_settings()
    logger = setup_logger(level=logging.DEBUG if settings.debug_mode else logging.INFO)

    monitor = build_pipeline(settings)
    monitor.region_changed.connect(
        lambda region, result, classification: logger.info(
            f"[{region.id[:8]}] {result.original_text} -> {result.translated_text} "
            f"({result.provider}, {result.latency_ms:.0f}ms, {classification.category.value})"
        )
    )

    try:
        monitor.extractor.warm_up()
    except Exception as e:
        logger.error(f"OCR warmup failed: {e}")
    monitor.dispatcher.initialize()

    if not monitor.list_regions():
        logger.warning("No saved regions; add some to the settings file first")
    for region in monitor.list_regions():
        monitor.set_active(region.id, True)

    # Ctrl+C quits the event loop
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    app.aboutToQuit.connect(monitor.shutdown)

    exit_code = app.exec()
    stats = monitor.dispatcher.get_stats()
    logger.info(f"Translations: {stats.total_translations}, cache hit rate: {stats.cache_hit_rate:.0%}, "
                f"avg latency: {stats.rolling_avg_latency_ms:.0f}ms")
    sys.exit(exit_code)

if __name__ == "__main__":
    main()
