import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt6.QtCore import QCoreApplication

from subwatch.region_monitor import RegionMonitor
from subwatch.translation_cache import TranslationCache
from subwatch.translation_dispatcher import TranslationDispatcher

from fakes import FakeCapturer, FakeExtractor, FakeProvider

@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app

@pytest.fixture
def dispatcher():
    d = TranslationDispatcher(cache=TranslationCache(capacity=10), provider_timeout=1.0)
    yield d
    d.shutdown()

@pytest.fixture
def provider(dispatcher):
    p = FakeProvider("offline", translated="Hello there.", confidence=0.9)
    dispatcher.register_provider(p, priority=1)
    return p

@pytest.fixture
def capturer():
    return FakeCapturer()

@pytest.fixture
def extractor():
    return FakeExtractor("Hola, amigo mio.")

@pytest.fixture
def monitor(qapp, capturer, extractor, dispatcher, provider):
    m = RegionMonitor(capturer, extractor, dispatcher, interval_ms=60_000, target_lang="en")
    events = []
    m.region_changed.connect(lambda region, result, classification: events.append((region, result, classification)))
    m.events = events
    yield m
    m.stop_monitoring()
    m.wait_for_done(5000)
