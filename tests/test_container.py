"""Tests for container wiring."""

from burst_timeline.adapters.sql_timeline_store import SqlTimelineStore
from burst_timeline.containers import build_container


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert isinstance(container.store, SqlTimelineStore)
    assert container.restructuring_service.repository is container.store
    assert container.restructuring_service.max_id_attempts == 20
    assert container.gallery_service.day_names[0] == "monday"
    assert container.fingerprint_service.fingerprint() == "v0"
    container.close_resources()
