"""Tests for the exiftool metadata adapter."""

import exiftool

from burst_timeline.adapters.exiftool_extractor import ExifToolMetadataExtractor


class FakeExifToolHelper:
    """Stands in for the exiftool process."""

    instances: list["FakeExifToolHelper"] = []
    metadata: list[dict[str, object]] = []

    def __init__(self, **kwargs: object) -> None:
        self.kwargs = kwargs
        self.requests: list[tuple[list[str], list[str]]] = []
        FakeExifToolHelper.instances.append(self)

    def __enter__(self) -> "FakeExifToolHelper":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def get_tags(self, files: list[str], tags: list[str]) -> list[dict[str, object]]:
        self.requests.append((files, tags))
        return self.metadata


def test_reads_group_qualified_tag(monkeypatch) -> None:
    monkeypatch.setattr(exiftool, "ExifToolHelper", FakeExifToolHelper)
    FakeExifToolHelper.instances = []
    FakeExifToolHelper.metadata = [
        {"SourceFile": "/raw/a.CR3", "EXIF:DateTimeOriginal": "2025:08:25 10:00:00"}
    ]

    value = ExifToolMetadataExtractor("/opt/exiftool").extract_datetime_original(
        "/raw/a.CR3"
    )

    helper = FakeExifToolHelper.instances[0]
    assert value == "2025:08:25 10:00:00"
    assert helper.kwargs == {"executable": "/opt/exiftool"}
    assert helper.requests == [(["/raw/a.CR3"], ["DateTimeOriginal"])]


def test_missing_tag_returns_none(monkeypatch) -> None:
    monkeypatch.setattr(exiftool, "ExifToolHelper", FakeExifToolHelper)
    FakeExifToolHelper.metadata = [{"SourceFile": "/raw/b.JPG"}]

    assert ExifToolMetadataExtractor().extract_datetime_original("/raw/b.JPG") is None
