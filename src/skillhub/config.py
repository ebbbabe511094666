"""Configuration: defaults, optional JSON config file, and environment overrides."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_REPO_URL = "https://github.com/VoltAgent/awesome-agent-skills.git"
DEFAULT_BRANCH = "main"
DEFAULT_CACHE_DIR = ".cache"
DEFAULT_SYNC_INTERVAL_MINUTES = 60
DEFAULT_OVERRIDES_FILE = ".config/skill-overrides.json"
DEFAULT_PORT = 41888
DEFAULT_LOG_LEVEL = "info"

LOG_LEVELS = ("debug", "info", "warn", "warning", "error")

# Source priorities: local checkouts shadow the shared repository
REPOSITORY_PRIORITY = 1
LOCAL_PRIORITY = 2


@dataclass
class Settings:
    repo_url: str = DEFAULT_REPO_URL
    repo_branch: str = DEFAULT_BRANCH
    cache_dir: str = DEFAULT_CACHE_DIR
    sync_interval_minutes: int = DEFAULT_SYNC_INTERVAL_MINUTES
    local_skills_path: str | None = None
    overrides_file: str = DEFAULT_OVERRIDES_FILE
    log_level: str = DEFAULT_LOG_LEVEL
    port: int = DEFAULT_PORT

    @property
    def cache_path(self) -> Path:
        return Path(self.cache_dir)

    @property
    def repo_dir(self) -> Path:
        """<cache_dir>/repo/<repository name>, derived from the clone URL."""
        name = self.repo_url.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git")
        return self.cache_path / "repo" / (name or "skills")

    @property
    def overrides_path(self) -> Path:
        return Path(self.overrides_file)

    @property
    def local_path(self) -> Path | None:
        return Path(self.local_skills_path) if self.local_skills_path else None


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from the ``skillhub`` section of a JSON file, then env vars."""
    settings = Settings()
    if path and path.exists():
        try:
            data = json.loads(path.read_text())
            section = data.get("skillhub", {})
            if isinstance(section, dict):
                _apply(settings, section)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load settings from {path}: {e}")

    if repo_url := os.environ.get("SKILLS_REPO_URL"):
        settings.repo_url = repo_url
    if branch := os.environ.get("SKILLS_REPO_BRANCH"):
        settings.repo_branch = branch
    if cache_dir := os.environ.get("SKILLS_CACHE_DIR"):
        settings.cache_dir = cache_dir
    if interval := os.environ.get("SKILLS_SYNC_INTERVAL"):
        try:
            settings.sync_interval_minutes = _non_negative(int(interval))
        except ValueError:
            logger.warning(f"Ignoring invalid SKILLS_SYNC_INTERVAL={interval!r}")
    if local_path := os.environ.get("SKILLS_LOCAL_PATH"):
        settings.local_skills_path = local_path
    if overrides := os.environ.get("SKILLS_OVERRIDES_FILE"):
        settings.overrides_file = overrides
    if level := os.environ.get("LOG_LEVEL"):
        if level.lower() in LOG_LEVELS:
            settings.log_level = level.lower()
        else:
            logger.warning(f"Ignoring invalid LOG_LEVEL={level!r}")
    if port := os.environ.get("SKILLS_PORT"):
        try:
            settings.port = int(port)
        except ValueError:
            logger.warning(f"Ignoring invalid SKILLS_PORT={port!r}")
    return settings


def _non_negative(value: int) -> int:
    if value < 0:
        raise ValueError(f"expected a non-negative integer, got {value}")
    return value


def _apply(settings: Settings, data: dict[str, object]) -> None:
    for key in ("repo_url", "repo_branch", "cache_dir", "overrides_file"):
        if key in data and isinstance(data[key], str):
            setattr(settings, key, data[key])
    if "local_skills_path" in data and isinstance(data["local_skills_path"], str | None):
        settings.local_skills_path = data["local_skills_path"]
    interval = data.get("sync_interval_minutes")
    if isinstance(interval, int) and not isinstance(interval, bool) and interval >= 0:
        settings.sync_interval_minutes = interval
    level = data.get("log_level")
    if isinstance(level, str) and level.lower() in LOG_LEVELS:
        settings.log_level = level.lower()
    port = data.get("port")
    if isinstance(port, int) and not isinstance(port, bool):
        settings.port = port
