"""Multi-tier translation dispatch.

A request is answered from the cache when possible. Otherwise the enabled
providers are tried one by one in ascending priority, each under its own
timeout, and the first answer above the confidence threshold wins and is
cached. When nothing qualifies the caller gets the original text back with
zero confidence, which is never cached.

Every provider call runs on its own daemon thread. A call that outlives its
timeout is abandoned, and the provider is skipped until that call returns.
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from .errors import NoProviderAvailable, ProviderFailure, ProviderTimeout
from .models import (CacheStats, PerformanceStats, ProviderDescriptor, ProviderOutput,
                     TranslationRequest, TranslationResult)
from .telemetry import PerformanceTelemetry
from .translation_cache import TranslationCache

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.5
CACHE_PROVIDER = "cache"
NO_PROVIDER = "none"

class TranslationDispatcher:
    """Owns the provider chain, the translation cache and the telemetry"""

    def __init__(self, cache: Optional[TranslationCache] = None,
                 telemetry: Optional[PerformanceTelemetry] = None,
                 provider_timeout: float = 5.0):
        self.cache = cache if cache is not None else TranslationCache()
        self.telemetry = telemetry if telemetry is not None else PerformanceTelemetry()
        self.provider_timeout = provider_timeout
        self.is_initialized = False
        self._providers: Dict[str, Tuple[ProviderDescriptor, object]] = {}
        self._providers_lock = threading.Lock()
        self._next_order = 0
        # provider name -> calls still running after their timeout
        self._stuck: Dict[str, int] = {}

    # Provider chain

    def register_provider(self, provider, priority: int, enabled: bool = True) -> ProviderDescriptor:
        name = provider.name
        with self._providers_lock:
            if name in self._providers:
                raise ValueError(f"provider '{name}' is already registered")
            descriptor = ProviderDescriptor(name=name, enabled=enabled, priority=priority, order=self._next_order)
            self._next_order += 1
            self._providers[name] = (descriptor, provider)
        logger.info(f"Registered provider {name} (priority={priority}, enabled={enabled})")
        return descriptor

    def set_provider_enabled(self, name: str, enabled: bool) -> bool:
        with self._providers_lock:
            if name not in self._providers:
                return False
            self._providers[name][0].enabled = enabled
        logger.info(f"Provider {name} {'enabled' if enabled else 'disabled'}")
        return True

    def set_provider_priority(self, name: str, priority: int) -> bool:
        with self._providers_lock:
            if name not in self._providers:
                return False
            self._providers[name][0].priority = priority
        return True

    def providers(self) -> List[ProviderDescriptor]:
        with self._providers_lock:
            entries = sorted(self._providers.values(), key=lambda e: (e[0].priority, e[0].order))
            return [replace(descriptor) for descriptor, _ in entries]

    def _active_chain(self) -> List[Tuple[str, object]]:
        """Enabled providers, re-sorted by priority for this dispatch cycle"""
        with self._providers_lock:
            entries = sorted(self._providers.values(), key=lambda e: (e[0].priority, e[0].order))
            chain = [(d.name, p) for d, p in entries if d.enabled]
        if not chain:
            raise NoProviderAvailable("no translation provider is enabled")
        return chain

    # Lifecycle

    def initialize(self):
        """Warm up providers that support it and record how long it took"""
        start_time = time.time()
        with self._providers_lock:
            providers = [p for _, p in self._providers.values()]
        for provider in providers:
            warm_up = getattr(provider, "warm_up", None)
            if not callable(warm_up):
                continue
            try:
                warm_up()
            except Exception as e:
                logger.warning(f"Warmup failed for provider {provider.name}: {e}")
        duration_ms = (time.time() - start_time) * 1000
        self.telemetry.record_init(duration_ms)
        self.is_initialized = True
        logger.info(f"Translation providers initialized in {duration_ms:.0f}ms")

    def shutdown(self):
        """Abandon provider calls that are still running; their threads are daemons"""
        with self._providers_lock:
            stuck = sum(self._stuck.values())
        if stuck:
            logger.warning(f"Shutting down with {stuck} provider call(s) still running")
        self.is_initialized = False

    def stuck_calls(self, name: str) -> int:
        with self._providers_lock:
            return self._stuck.get(name, 0)

    # Translation

    def _call_provider(self, name: str, provider, request: TranslationRequest) -> ProviderOutput:
        with self._providers_lock:
            if self._stuck.get(name):
                raise ProviderFailure(name, "previous call still running")

        done = threading.Event()
        call = {"abandoned": False}

        def run():
            try:
                call["output"] = provider.translate(request.text, request.source_language,
                                                    request.target_language)
            except Exception as e:
                call["error"] = e
            finally:
                with self._providers_lock:
                    done.set()
                    if call["abandoned"]:
                        self._stuck[name] -= 1
                        logger.info(f"Abandoned call to provider {name} finished")

        threading.Thread(target=run, name=f"Provider-{name}", daemon=True).start()

        if not done.wait(self.provider_timeout):
            with self._providers_lock:
                # The call may have finished between the wait and the lock
                if not done.is_set():
                    call["abandoned"] = True
                    self._stuck[name] = self._stuck.get(name, 0) + 1
                    raise ProviderTimeout(name, self.provider_timeout)

        error = call.get("error")
        if isinstance(error, ProviderFailure):
            raise error
        if error is not None:
            raise ProviderFailure(name, str(error)) from error
        return call["output"]

    def translate(self, request: TranslationRequest) -> TranslationResult:
        start_time = time.perf_counter()
        key = request.cache_key()

        entry = self.cache.get(key)
        if entry is not None:
            latency_ms = (time.perf_counter() - start_time) * 1000
            self.telemetry.record_translation(latency_ms, cached=True)
            return replace(entry.result, provider=CACHE_PROVIDER, latency_ms=latency_ms)

        try:
            chain = self._active_chain()
        except NoProviderAvailable as e:
            logger.warning(str(e))
            chain = []

        for name, provider in chain:
            try:
                output = self._call_provider(name, provider, request)
            except ProviderFailure as e:
                logger.warning(f"Provider failed, trying next: {e}")
                continue

            if output is None or not output.translated_text or output.confidence <= CONFIDENCE_THRESHOLD:
                confidence = output.confidence if output is not None else 0.0
                logger.info(f"Provider {name} result rejected (confidence={confidence:.2f})")
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            result = TranslationResult(
                original_text=request.text,
                translated_text=output.translated_text,
                detected_language=output.detected_language or request.source_language or "unknown",
                confidence=min(float(output.confidence), 1.0),
                provider=name,
                latency_ms=latency_ms,
            )
            self.cache.put(key, result)
            self.telemetry.record_translation(latency_ms)
            logger.info(f"Translated via {name} in {latency_ms:.0f}ms: {request.text[:30]}")
            return result

        latency_ms = (time.perf_counter() - start_time) * 1000
        self.telemetry.record_translation(latency_ms)
        logger.warning(f"All providers exhausted for: {request.text[:30]}")
        return TranslationResult(
            original_text=request.text,
            translated_text=request.text,
            detected_language=request.source_language or "unknown",
            confidence=0.0,
            provider=NO_PROVIDER,
            latency_ms=latency_ms,
        )

    # Control surface

    def clear_cache(self):
        self.cache.clear()
        self.telemetry.reset_cache_hits()
        logger.info("Translation cache cleared")

    def get_stats(self) -> PerformanceStats:
        return self.telemetry.snapshot()

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def reset_stats(self):
        self.telemetry.reset()
