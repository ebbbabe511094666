"""Read/write registry snapshots as skills.json + metadata.json in the cache directory."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from skillhub.skills.models import CacheMetadata, RegistrySnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "skills.json"
METADATA_FILENAME = "metadata.json"
CACHE_FORMAT_VERSION = "1.0.0"


class CacheStore:
    def __init__(self, cache_dir: Path) -> None:
        self._cache_dir = cache_dir

    @property
    def snapshot_path(self) -> Path:
        return self._cache_dir / SNAPSHOT_FILENAME

    @property
    def metadata_path(self) -> Path:
        return self._cache_dir / METADATA_FILENAME

    def save_snapshot(self, snapshot: RegistrySnapshot) -> None:
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        self.snapshot_path.write_text(
            snapshot.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
        )
        metadata = CacheMetadata(
            version=CACHE_FORMAT_VERSION,
            last_updated=datetime.now(UTC),
            skill_count=len(snapshot.skills),
        )
        self.metadata_path.write_text(
            metadata.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
        )
        logger.debug(f"Saved {len(snapshot.skills)} skills to cache")

    def load_snapshot(self) -> RegistrySnapshot | None:
        """Return the cached snapshot, or None when missing or unreadable."""
        try:
            text = self.snapshot_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No cached skills found")
            return None
        except OSError as e:
            logger.error(f"Failed to read skills cache: {e}")
            return None
        try:
            snapshot = RegistrySnapshot.model_validate_json(text)
        except ValidationError as e:
            logger.error(f"Failed to load skills from cache: {e}")
            return None
        logger.debug(f"Loaded {len(snapshot.skills)} skills from cache")
        return snapshot

    def load_metadata(self) -> CacheMetadata | None:
        try:
            return CacheMetadata.model_validate_json(self.metadata_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as e:
            logger.error(f"Failed to load cache metadata: {e}")
            return None

    def is_fresh(self, max_age_minutes: float = 60) -> bool:
        """True when the snapshot was written less than max_age_minutes ago."""
        metadata = self.load_metadata()
        if metadata is None:
            return False
        last_updated = metadata.last_updated
        if last_updated.tzinfo is None:
            last_updated = last_updated.replace(tzinfo=UTC)
        age = datetime.now(UTC) - last_updated
        return age.total_seconds() < max_age_minutes * 60

    def clear(self) -> None:
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        self.snapshot_path.write_text(
            RegistrySnapshot().model_dump_json(by_alias=True), encoding="utf-8"
        )
        metadata = CacheMetadata(version=CACHE_FORMAT_VERSION, last_updated=datetime.now(UTC))
        self.metadata_path.write_text(metadata.model_dump_json(by_alias=True), encoding="utf-8")
        logger.info("Cache cleared")
