import logging
import threading
import time
import uuid
from typing import Dict, List, Optional

from PyQt6.QtCore import QObject, QRunnable, QThreadPool, QTimer, pyqtSignal

from .errors import CaptureFailure, ExtractionFailure
from .fingerprint import fingerprint
from .models import Bounds, Region, RegionState, TranslationRequest, TranslationResult
from .subtitle_classifier import classify
from .text_extraction import clean_subtitle_text, detect_language
from .translation_dispatcher import NO_PROVIDER, TranslationDispatcher

logger = logging.getLogger(__name__)

class _RegionCheckTask(QRunnable):
    """One change check for one region, run on the monitor's thread pool"""

    def __init__(self, monitor: "RegionMonitor", region: Region):
        super().__init__()
        self.monitor = monitor
        self.region = region

    def run(self):
        try:
            self.monitor._check(self.region)
        except Exception:
            logger.exception(f"Region check failed for {self.region.id}")
        finally:
            self.monitor._release(self.region.id)

class RegionMonitor(QObject):
    """Watches screen regions and drives capture -> OCR -> translation on change.

    A single timer calls tick(); each tick fans out one check per active idle
    region onto a thread pool. A region is marked CHECKING while its check is in
    flight so a slow pipeline never overlaps itself on later ticks.
    """

    region_added = pyqtSignal(object)                    # Region
    region_changed = pyqtSignal(object, object, object)  # Region, TranslationResult, SubtitleClassification
    region_deleted = pyqtSignal(object)                  # Region
    region_toggled = pyqtSignal(object)                  # Region
    status_update = pyqtSignal(str)

    def __init__(self, capturer, extractor, dispatcher: TranslationDispatcher,
                 interval_ms: int = 1000, min_text_length: int = 3,
                 source_lang: str = "auto", target_lang: str = "en",
                 max_workers: int = 4, stop_when_idle: bool = False,
                 subtitles_only: bool = False, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.capturer = capturer
        self.extractor = extractor
        self.dispatcher = dispatcher
        self.min_text_length = min_text_length
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.stop_when_idle = stop_when_idle
        self.subtitles_only = subtitles_only

        self._regions: Dict[str, Region] = {}
        self._states: Dict[str, RegionState] = {}
        self._lock = threading.RLock()
        self._running = False
        # Bumped on every start; a check only reports into the run it was claimed in
        self._generation = 0
        self._claimed_in: Dict[str, int] = {}

        self.timer = QTimer(self)
        self.timer.setInterval(interval_ms)
        self.timer.timeout.connect(self.tick)
        self.thread_pool = QThreadPool()
        self.thread_pool.setMaxThreadCount(max_workers)

    # Region lifecycle

    def add_region(self, bounds: Bounds, display_id: int = 0, active: bool = False) -> str:
        region = Region(id=uuid.uuid4().hex, bounds=bounds, display_id=display_id)
        with self._lock:
            self._regions[region.id] = region
            self._states[region.id] = RegionState.IDLE
        logger.info(f"Region {region.id} added at {bounds.x},{bounds.y} {bounds.width}x{bounds.height}")
        self.region_added.emit(region)
        if active:
            self.set_active(region.id, True)
        return region.id

    def get_region(self, region_id: str) -> Optional[Region]:
        with self._lock:
            return self._regions.get(region_id)

    def list_regions(self) -> List[Region]:
        with self._lock:
            return list(self._regions.values())

    def region_state(self, region_id: str) -> Optional[RegionState]:
        with self._lock:
            return self._states.get(region_id)

    def set_active(self, region_id: str, active: bool) -> bool:
        with self._lock:
            region = self._regions.get(region_id)
            if region is None:
                logger.warning(f"Region {region_id} not found")
                return False
            region.is_active = active
            any_active = any(r.is_active for r in self._regions.values())

        logger.info(f"Region {region_id} monitoring {'ENABLED' if active else 'DISABLED'}")
        if active and not self._running:
            self.start_monitoring()
        elif not any_active and self.stop_when_idle and self._running:
            self.stop_monitoring()
        self.region_toggled.emit(region)
        return True

    def toggle_region(self, region_id: str) -> bool:
        region = self.get_region(region_id)
        if region is None:
            logger.warning(f"Region {region_id} not found")
            return False
        return self.set_active(region_id, not region.is_active)

    def delete_region(self, region_id: str) -> bool:
        with self._lock:
            region = self._regions.get(region_id)
            if region is None:
                return False
            region.is_active = False
            del self._regions[region_id]
            self._states.pop(region_id, None)
            self._claimed_in.pop(region_id, None)
        logger.info(f"Region {region_id} deleted")
        self.region_deleted.emit(region)
        return True

    def clear_fingerprints(self):
        """Forget image hashes so every region is re-read on the next tick"""
        with self._lock:
            for region in self._regions.values():
                region.last_fingerprint = None

    # Loop control

    @property
    def is_monitoring(self) -> bool:
        return self._running

    def set_interval(self, interval_ms: int):
        self.timer.setInterval(interval_ms)

    def start_monitoring(self):
        with self._lock:
            if self._running:
                return
            self._running = True
            self._generation += 1
        self.timer.start()
        logger.info(f"Starting monitoring with {self.timer.interval()}ms interval")
        self.status_update.emit("Monitoring started")

    def stop_monitoring(self):
        """Stop the timer; checks already in flight finish but emit nothing"""
        with self._lock:
            if not self._running:
                return
            self._running = False
        self.timer.stop()
        logger.info("Monitoring stopped")
        self.status_update.emit("Monitoring stopped")

    def wait_for_done(self, msecs: int = -1) -> bool:
        return self.thread_pool.waitForDone(msecs)

    def shutdown(self):
        self.stop_monitoring()
        self.thread_pool.clear()
        self.thread_pool.waitForDone()
        self.dispatcher.shutdown()

    # Checking

    def _claim(self, region_id: str) -> Optional[Region]:
        """IDLE -> CHECKING for an active region, atomically"""
        with self._lock:
            region = self._regions.get(region_id)
            if region is None or not region.is_active:
                return None
            if self._states.get(region_id) != RegionState.IDLE:
                return None
            self._states[region_id] = RegionState.CHECKING
            self._claimed_in[region_id] = self._generation
            return region

    def _release(self, region_id: str):
        with self._lock:
            # A deleted region has no state left to reset
            if region_id in self._states:
                self._states[region_id] = RegionState.IDLE

    def tick(self) -> int:
        """Schedule a check for every active idle region; returns how many were scheduled"""
        with self._lock:
            region_ids = list(self._regions)
        claimed = [r for r in (self._claim(rid) for rid in region_ids) if r is not None]

        for region in claimed:
            self.thread_pool.start(_RegionCheckTask(self, region))
        logger.debug(f"Monitoring tick scheduled {len(claimed)} region check(s)")
        return len(claimed)

    def check_region(self, region_id: str) -> Optional[TranslationResult]:
        """Run one check synchronously on the calling thread.

        Errors are handled as on the timer path: logged, the region goes back
        to IDLE and None is returned.
        """
        region = self._claim(region_id)
        if region is None:
            return None
        try:
            return self._check(region)
        except Exception:
            logger.exception(f"Region check failed for {region_id}")
            return None
        finally:
            self._release(region_id)

    def _check(self, region: Region) -> Optional[TranslationResult]:
        workflow_start = time.time()
        try:
            image = self.capturer.capture(region.bounds, region.display_id)
        except CaptureFailure as e:
            logger.warning(f"Capture failed for region {region.id}: {e}")
            return None
        capture_time = time.time() - workflow_start

        hash_start = time.time()
        image_hash = fingerprint(image)
        hash_time = time.time() - hash_start
        if image_hash == region.last_fingerprint:
            logger.debug(f"Region {region.id} unchanged, skipping OCR")
            return None
        region.last_fingerprint = image_hash

        ocr_start = time.time()
        try:
            extracted = self.extractor.extract(image)
        except ExtractionFailure as e:
            logger.warning(f"Text extraction failed for region {region.id}: {e}")
            return None
        ocr_time = time.time() - ocr_start

        text = clean_subtitle_text(extracted.text)
        if not text or len(text) <= self.min_text_length:
            logger.debug(f"Text too short or empty for region {region.id}, skipping translation")
            return None
        region.last_text = text

        classification = classify(text)
        if self.subtitles_only and not classification.is_subtitle:
            logger.debug(f"Region {region.id} text does not look like a subtitle, skipping")
            return None

        if self.source_lang and self.source_lang != "auto":
            source_lang = self.source_lang
        else:
            source_lang = detect_language(text)

        translate_start = time.time()
        result = self.dispatcher.translate(TranslationRequest(
            text=text, target_language=self.target_lang, source_language=source_lang))
        translate_time = time.time() - translate_start

        if result.provider != NO_PROVIDER:
            region.last_result = result

        logger.info(f"Workflow stats: Capture: {capture_time:.2f}s, Hash: {hash_time:.2f}s, "
                    f"OCR: {ocr_time:.2f}s, Translate: {translate_time:.2f}s, "
                    f"Total: {time.time() - workflow_start:.2f}s")

        self._emit_change(region, result, classification)
        return result

    def _emit_change(self, region: Region, result: TranslationResult, classification):
        with self._lock:
            present = self._regions.get(region.id) is region
            current = self._running and self._claimed_in.get(region.id) == self._generation
        if not present or not current:
            logger.debug(f"Discarding result for region {region.id} (deleted, stopped or restarted)")
            return
        if result.provider == NO_PROVIDER:
            self.status_update.emit("Translation unavailable")
        self.region_changed.emit(region, result, classification)
