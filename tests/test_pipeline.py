from subwatch.config import Settings
from subwatch.models import Bounds, SavedRegion
from subwatch.pipeline import build_dispatcher, build_pipeline

from fakes import FakeCapturer, FakeExtractor

def test_dispatcher_enables_remote_providers_only_when_configured():
    dispatcher = build_dispatcher(Settings(google_api_key="g-key"))
    try:
        chain = [(d.name, d.enabled) for d in dispatcher.providers()]
    finally:
        dispatcher.shutdown()

    assert chain == [
        ("marian", True),
        ("m2m100", True),
        ("ollama", False),
        ("google", True),
        ("gemini", False),
    ]

def test_saved_regions_are_restored_inactive(qapp, dispatcher):
    settings = Settings(interval_ms=250, regions=[
        SavedRegion(Bounds(0, 900, 1920, 120)),
        SavedRegion(Bounds(1930, 10, 200, 50), display_id=1),
    ])

    monitor = build_pipeline(settings, capturer=FakeCapturer(), extractor=FakeExtractor("text"),
                             dispatcher=dispatcher)

    regions = monitor.list_regions()
    assert [r.bounds for r in regions] == [s.bounds for s in settings.regions]
    assert [r.display_id for r in regions] == [0, 1]
    assert not any(r.is_active for r in regions)
    assert monitor.is_monitoring is False
