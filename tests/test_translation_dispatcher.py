import threading
import time

import pytest

from subwatch.models import TranslationRequest
from subwatch.translation_cache import TranslationCache
from subwatch.translation_dispatcher import TranslationDispatcher

from fakes import FakeProvider, failing_provider

REQUEST = TranslationRequest(text="你好，世界", target_language="en", source_language="zh")

@pytest.fixture
def empty_dispatcher():
    d = TranslationDispatcher(cache=TranslationCache(capacity=10), provider_timeout=0.5)
    yield d
    d.shutdown()

def test_lower_priority_number_is_tried_first(empty_dispatcher):
    log = []
    empty_dispatcher.register_provider(FakeProvider("p2", confidence=0.9, log=log), priority=2)
    empty_dispatcher.register_provider(FakeProvider("p1", confidence=0.3, log=log), priority=1)

    result = empty_dispatcher.translate(REQUEST)

    assert log == ["p1", "p2"]
    assert result.provider == "p2"

def test_equal_priorities_keep_registration_order(empty_dispatcher):
    log = []
    empty_dispatcher.register_provider(FakeProvider("first", confidence=0.2, log=log), priority=1)
    empty_dispatcher.register_provider(FakeProvider("second", confidence=0.2, log=log), priority=1)

    empty_dispatcher.translate(REQUEST)

    assert log == ["first", "second"]
    assert [d.name for d in empty_dispatcher.providers()] == ["first", "second"]

def test_fallback_chain_accepts_first_confident_result(empty_dispatcher):
    gemini = failing_provider("gemini")
    google = FakeProvider("google", translated="Hi world", confidence=0.3)
    offline = FakeProvider("offline", translated="Hello, world", confidence=0.9)
    empty_dispatcher.register_provider(gemini, priority=1)
    empty_dispatcher.register_provider(google, priority=2)
    empty_dispatcher.register_provider(offline, priority=3)

    result = empty_dispatcher.translate(REQUEST)

    assert result.provider == "offline"
    assert result.translated_text == "Hello, world"
    assert result.original_text == REQUEST.text
    assert len(gemini.calls) == len(google.calls) == len(offline.calls) == 1
    assert REQUEST.cache_key() in empty_dispatcher.cache
    assert empty_dispatcher.cache.get(REQUEST.cache_key()).result.provider == "offline"

def test_second_identical_request_is_served_from_cache(empty_dispatcher):
    provider = FakeProvider("offline", translated="Hello, world", confidence=0.9)
    empty_dispatcher.register_provider(provider, priority=1)

    first = empty_dispatcher.translate(REQUEST)
    second = empty_dispatcher.translate(REQUEST)

    assert first.provider == "offline"
    assert second.provider == "cache"
    assert second.translated_text == first.translated_text
    assert len(provider.calls) == 1

def test_exhausted_chain_returns_uncached_original_text(empty_dispatcher):
    provider = FakeProvider("google", confidence=0.5)
    empty_dispatcher.register_provider(provider, priority=1)

    result = empty_dispatcher.translate(REQUEST)

    assert result.provider == "none"
    assert result.confidence == 0
    assert result.translated_text == REQUEST.text
    assert result.detected_language == "zh"
    assert len(empty_dispatcher.cache) == 0

    empty_dispatcher.translate(REQUEST)
    assert len(provider.calls) == 2

def test_no_enabled_provider_behaves_like_exhaustion(empty_dispatcher):
    provider = FakeProvider("offline")
    empty_dispatcher.register_provider(provider, priority=1, enabled=False)

    result = empty_dispatcher.translate(TranslationRequest(text="bonjour", target_language="en"))

    assert result.provider == "none"
    assert result.detected_language == "unknown"
    assert provider.calls == []

def test_slow_provider_times_out_and_next_one_answers(empty_dispatcher):
    slow = FakeProvider("slow", confidence=0.9, delay=2.0)
    fast = FakeProvider("fast", translated="ok", confidence=0.8)
    empty_dispatcher.register_provider(slow, priority=1)
    empty_dispatcher.register_provider(fast, priority=2)

    result = empty_dispatcher.translate(REQUEST)

    assert result.provider == "fast"
    assert result.latency_ms < 2000

def test_unexpected_provider_exception_is_swallowed(empty_dispatcher):
    empty_dispatcher.register_provider(FakeProvider("broken", error=RuntimeError("boom")), priority=1)
    empty_dispatcher.register_provider(FakeProvider("offline", confidence=0.9), priority=2)

    assert empty_dispatcher.translate(REQUEST).provider == "offline"

def test_provider_toggling(empty_dispatcher):
    first = FakeProvider("first", translated="one", confidence=0.9)
    second = FakeProvider("second", translated="two", confidence=0.9)
    empty_dispatcher.register_provider(first, priority=1)
    empty_dispatcher.register_provider(second, priority=2)

    assert empty_dispatcher.set_provider_enabled("first", False) is True
    assert empty_dispatcher.set_provider_enabled("missing", False) is False
    assert empty_dispatcher.translate(REQUEST).provider == "second"

    empty_dispatcher.clear_cache()
    assert empty_dispatcher.set_provider_priority("second", 5) is True
    empty_dispatcher.set_provider_enabled("first", True)
    assert empty_dispatcher.translate(REQUEST).provider == "first"

def test_duplicate_provider_names_are_rejected(empty_dispatcher):
    empty_dispatcher.register_provider(FakeProvider("offline"), priority=1)
    with pytest.raises(ValueError):
        empty_dispatcher.register_provider(FakeProvider("offline"), priority=2)

def test_detected_language_prefers_provider_answer(empty_dispatcher):
    empty_dispatcher.register_provider(
        FakeProvider("google", confidence=0.9, detected_language="zh-CN"), priority=1)
    result = empty_dispatcher.translate(TranslationRequest(text="你好", target_language="en"))
    assert result.detected_language == "zh-CN"

def test_stats_count_cached_and_uncached_translations(empty_dispatcher):
    empty_dispatcher.register_provider(FakeProvider("offline", confidence=0.9), priority=1)

    empty_dispatcher.translate(REQUEST)
    empty_dispatcher.translate(REQUEST)
    empty_dispatcher.translate(REQUEST)

    stats = empty_dispatcher.get_stats()
    assert stats.total_translations == 3
    assert stats.cache_hits == 2
    assert stats.cache_hit_rate == pytest.approx(2 / 3)

    empty_dispatcher.clear_cache()
    assert empty_dispatcher.get_stats().cache_hits == 0
    assert empty_dispatcher.cache_stats().size == 0

def test_initialize_warms_up_providers(empty_dispatcher):
    provider = FakeProvider("offline")
    empty_dispatcher.register_provider(provider, priority=1)

    empty_dispatcher.initialize()

    assert provider.warmed_up is True
    assert empty_dispatcher.is_initialized is True
    assert empty_dispatcher.get_stats().last_init_duration_ms >= 0

class _HungProvider(FakeProvider):
    """Blocks every call until released"""

    def __init__(self, name):
        super().__init__(name, confidence=0.9)
        self.release = threading.Event()

    def translate(self, text, source_lang, target_lang):
        self.calls.append((text, source_lang, target_lang))
        self.release.wait(30)
        return super().translate(text, source_lang, target_lang)

@pytest.fixture
def hung():
    provider = _HungProvider("hung")
    yield provider
    provider.release.set()

def test_hung_provider_does_not_starve_later_providers(hung):
    dispatcher = TranslationDispatcher(cache=TranslationCache(capacity=10), provider_timeout=0.3)
    healthy = FakeProvider("healthy", translated="ok", confidence=0.9)
    dispatcher.register_provider(hung, priority=1)
    dispatcher.register_provider(healthy, priority=2)

    providers = [dispatcher.translate(TranslationRequest(text=f"line {i}", target_language="en")).provider
                 for i in range(6)]

    assert providers == ["healthy"] * 6
    assert len(healthy.calls) == 6
    # Skipped while its first call is still running
    assert len(hung.calls) == 1
    assert dispatcher.stuck_calls("hung") == 1
    dispatcher.shutdown()

def test_provider_is_retried_once_its_stuck_call_returns(hung):
    dispatcher = TranslationDispatcher(cache=TranslationCache(capacity=10), provider_timeout=0.3)
    dispatcher.register_provider(hung, priority=1)

    assert dispatcher.translate(TranslationRequest(text="one", target_language="en")).provider == "none"

    hung.release.set()
    deadline = time.monotonic() + 5
    while dispatcher.stuck_calls("hung") and time.monotonic() < deadline:
        time.sleep(0.01)

    assert dispatcher.stuck_calls("hung") == 0
    assert dispatcher.translate(TranslationRequest(text="two", target_language="en")).provider == "hung"
    assert len(hung.calls) == 2
