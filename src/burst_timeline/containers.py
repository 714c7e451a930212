"""Dependency container wiring for the application."""

from collections.abc import Callable
from dataclasses import dataclass

from burst_timeline.adapters.exiftool_extractor import ExifToolMetadataExtractor
from burst_timeline.adapters.sql_timeline_store import (
    SqlTimelineStore,
    create_schema,
    create_timeline_engine,
)
from burst_timeline.config import Settings, parse_day_names
from burst_timeline.services.cache import InMemoryCache
from burst_timeline.services.capture_time import CaptureTimeResolver
from burst_timeline.services.curation import CurationService
from burst_timeline.services.fingerprint import FingerprintService
from burst_timeline.services.gallery import DEFAULT_DAY_NAMES, GalleryService
from burst_timeline.services.ingestion import IngestionService
from burst_timeline.services.restructuring import SessionRestructuringService
from burst_timeline.services.sittings import SittingService
from burst_timeline.services.stats import StatsService
from burst_timeline.services.view_cache import AggregateViewCache


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: SqlTimelineStore
    resolver: CaptureTimeResolver
    restructuring_service: SessionRestructuringService
    curation_service: CurationService
    ingestion_service: IngestionService
    sitting_service: SittingService
    fingerprint_service: FingerprintService
    gallery_service: GalleryService
    stats_service: StatsService
    close_resources: Callable[[], None]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    engine = create_timeline_engine(
        resolved_settings.database_url, echo=resolved_settings.database_echo
    )
    create_schema(engine)
    store = SqlTimelineStore(engine)

    resolver = CaptureTimeResolver(
        repository=store,
        extractor=ExifToolMetadataExtractor(resolved_settings.exiftool_executable),
        utc_offset_hours=resolved_settings.event_utc_offset_hours,
        interframe_interval_seconds=resolved_settings.interframe_interval_seconds,
    )
    cache = InMemoryCache()

    def view_cache(namespace: str) -> AggregateViewCache:
        return AggregateViewCache(
            cache=cache,
            namespace=namespace,
            ttl_seconds=resolved_settings.view_cache_ttl_seconds,
            race_condition_ttl_seconds=resolved_settings.race_condition_ttl_seconds,
        )

    restructuring_service = SessionRestructuringService(
        repository=store,
        sittings=store,
        resolver=resolver,
        max_id_attempts=resolved_settings.split_max_attempts,
        retry_delay_seconds=resolved_settings.split_retry_delay_seconds,
    )
    gallery_service = GalleryService(
        repository=store,
        view_cache=view_cache("gallery"),
        day_names=parse_day_names(resolved_settings.event_day_names)
        or DEFAULT_DAY_NAMES,
    )
    stats_service = StatsService(
        repository=store,
        sittings=store,
        resolver=resolver,
        view_cache=view_cache("stats"),
    )

    def close_resources() -> None:
        engine.dispose()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        resolver=resolver,
        restructuring_service=restructuring_service,
        curation_service=CurationService(store),
        ingestion_service=IngestionService(calendar=store, timeline=store),
        sitting_service=SittingService(repository=store, sessions=store),
        fingerprint_service=FingerprintService(store),
        gallery_service=gallery_service,
        stats_service=stats_service,
        close_resources=close_resources,
    )
