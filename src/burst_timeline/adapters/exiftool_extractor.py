"""ExifTool-backed capture metadata extraction."""

import logging
from dataclasses import dataclass

import exiftool

from burst_timeline.services.capture_time import DATETIME_ORIGINAL, MetadataExtractor

_logger = logging.getLogger(__name__)


@dataclass
class ExifToolMetadataExtractor(MetadataExtractor):
    """Reads DateTimeOriginal from original files with the exiftool binary."""

    executable: str | None = None

    def extract_datetime_original(self, path: str) -> str | None:
        """Return the raw DateTimeOriginal tag, or None if the file has none."""
        options = {"executable": self.executable} if self.executable else {}
        with exiftool.ExifToolHelper(**options) as helper:
            metadata = helper.get_tags([path], tags=[DATETIME_ORIGINAL])
        if not metadata:
            return None
        # Keys are group-qualified, e.g. "EXIF:DateTimeOriginal".
        for key, value in metadata[0].items():
            if key.split(":")[-1] == DATETIME_ORIGINAL and value:
                return str(value)
        _logger.debug("No %s tag in %s", DATETIME_ORIGINAL, path)
        return None
