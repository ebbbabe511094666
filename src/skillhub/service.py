"""SkillService: owns the registry, parser, sync controller and cache for one process.

Lifecycle is explicit: construct -> start() (restore cache, sync, ingest) ->
serve (executor / *_payload helpers) -> close().
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from skillhub.cache.store import CacheStore
from skillhub.config import LOCAL_PRIORITY, REPOSITORY_PRIORITY, Settings
from skillhub.errors import SkillNotFoundError
from skillhub.skills.executor import SkillExecutor
from skillhub.skills.models import (
    ErrorCode,
    InvocationError,
    InvocationResult,
    RefreshResult,
    Skill,
    SkillOrigin,
    SourceDescriptor,
    SourceType,
    SyncResult,
)
from skillhub.skills.parser import SkillParser
from skillhub.skills.registry import SkillRegistry
from skillhub.sync.git_sync import GitSyncService

logger = logging.getLogger(__name__)


def error_payload(
    code: ErrorCode,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "success": False,
        "error": InvocationError(code=code, message=message, details=details).to_wire(),
    }


class SkillService:
    def __init__(
        self,
        settings: Settings,
        *,
        registry: SkillRegistry | None = None,
        parser: SkillParser | None = None,
        git_sync: GitSyncService | None = None,
        cache: CacheStore | None = None,
    ) -> None:
        self._settings = settings
        self._registry = registry or SkillRegistry()
        self._executor = SkillExecutor(self._registry)
        self._parser = parser or SkillParser()
        self._sync = git_sync or GitSyncService(
            settings.repo_dir,
            settings.repo_url,
            settings.repo_branch,
        )
        self._cache = cache or CacheStore(settings.cache_path)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def registry(self) -> SkillRegistry:
        return self._registry

    @property
    def executor(self) -> SkillExecutor:
        return self._executor

    @property
    def git_sync(self) -> GitSyncService:
        return self._sync

    @property
    def cache(self) -> CacheStore:
        return self._cache

    # -- lifecycle ------------------------------------------------------

    def configured_sources(self) -> list[SourceDescriptor]:
        sources = [
            SourceDescriptor(
                type=SourceType.GIT,
                url=self._settings.repo_url,
                branch=self._settings.repo_branch,
                priority=REPOSITORY_PRIORITY,
            )
        ]
        if self._settings.local_skills_path:
            sources.append(
                SourceDescriptor(
                    type=SourceType.LOCAL,
                    path=self._settings.local_skills_path,
                    priority=LOCAL_PRIORITY,
                )
            )
        return sources

    def load_cache(self) -> int:
        """Restore the registry from the cached snapshot. Returns the restored count."""
        snapshot = self._cache.load_snapshot()
        if snapshot is None:
            logger.info("No cached skills found, starting with an empty registry")
        else:
            self._registry = SkillRegistry.from_snapshot(snapshot)
            self._executor = SkillExecutor(self._registry)
            logger.info(f"Loaded {self._registry.skill_count()} skills from cache")
        for source in self.configured_sources():
            if not self._registry.has_source(source):
                self._registry.add_source(source)
        return self._registry.skill_count()

    def start(self) -> SyncResult:
        """Restore cache, bring the working copy up to date, and ingest on change."""
        self.load_cache()
        self._parser.load_overrides(self._settings.overrides_path)

        logger.info("Syncing with skills repository...")
        with self._sync.exclusive():
            result = self._sync.initialize()
            if result.success:
                if result.skills_changed or self._registry.skill_count() == 0:
                    self.reload()
            else:
                logger.warning(f"Repository sync failed: {result.message}")
                has_copy = self._sync.has_working_copy()
                if self._registry.skill_count() == 0 and (has_copy or self._settings.local_path):
                    logger.warning("No cached skills, loading last known skills")
                    self.reload(include_repository=has_copy)
                else:
                    logger.warning("Using cached skills")
        return result

    def reload(self, *, include_repository: bool = True) -> int:
        """Re-parse every configured source and atomically replace the registry contents."""
        skills: list[Skill] = []
        if include_repository and self._sync.has_working_copy():
            logger.info("Loading skills from repository...")
            skills.extend(self._parser.parse_source(self._sync.repo_dir, SkillOrigin.REPOSITORY))
        local_path = self._settings.local_path
        if local_path is not None:
            logger.info(f"Loading local skills from {local_path}...")
            skills.extend(self._parser.parse_source(local_path, SkillOrigin.LOCAL))

        count = self._registry.replace_skills(skills)
        self._registry.last_sync = datetime.now(UTC)
        self._save_snapshot()
        logger.info(f"Loaded {count} skills total")
        return count

    def refresh(self) -> RefreshResult:
        """Manual refresh: sync and re-ingest under the same gate as the scheduler."""
        old_count = self._registry.skill_count()
        logger.info("Manual refresh triggered")
        try:
            with self._sync.exclusive():
                result = self._sync.sync()
                if result.success and result.skills_changed:
                    new_count = self.reload()
                    return RefreshResult(
                        success=True,
                        skills_updated=new_count,
                        skills_added=max(0, new_count - old_count),
                        skills_removed=max(0, old_count - new_count),
                        message=f"Skills refreshed successfully. Now have {new_count} skills.",
                    )
        except Exception as e:
            logger.exception("Refresh failed")
            return RefreshResult(
                success=False,
                skills_updated=self._registry.skill_count(),
                message=f"Refresh failed: {e}",
            )
        return RefreshResult(
            success=result.success,
            skills_updated=self._registry.skill_count(),
            message="No changes detected" if result.success else result.message,
        )

    def start_auto_sync(self) -> bool:
        interval = self._settings.sync_interval_minutes
        if interval <= 0:
            return False
        self._sync.start_auto_sync(interval, self._on_repository_update)
        return True

    def close(self) -> None:
        self._sync.stop_auto_sync()
        self._parser.close()

    def _on_repository_update(self) -> None:
        count = self.reload()
        logger.info(f"Auto-sync completed: {count} skills loaded")

    def _save_snapshot(self) -> None:
        try:
            self._cache.save_snapshot(self._registry.to_snapshot())
        except OSError as e:
            logger.warning(f"Failed to save skills cache: {e}")

    # -- queries --------------------------------------------------------

    def require_skill(self, skill_id: str) -> Skill:
        skill = self._executor.get_skill(skill_id)
        if skill is None:
            raise SkillNotFoundError(skill_id)
        return skill

    # -- transport payloads ---------------------------------------------

    def list_skills_payload(
        self,
        filter_text: str | None = None,
        source: str | None = None,
    ) -> dict[str, Any]:
        skills = self._executor.list_skills(filter_text, source)
        payload: dict[str, Any] = {
            "skills": [s.to_wire() for s in skills],
            "total": len(skills),
        }
        last_sync = self._registry.last_sync
        if last_sync is not None:
            payload["lastSync"] = last_sync.isoformat()
        return payload

    def get_skill_payload(self, skill_id: str | None) -> dict[str, Any]:
        if not skill_id:
            return error_payload(ErrorCode.INVALID_PARAMS, "Missing required parameter: skill_id")
        try:
            skill = self.require_skill(skill_id)
        except SkillNotFoundError as e:
            return error_payload(ErrorCode.SKILL_NOT_FOUND, str(e))
        return skill.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            include={
                "id",
                "name",
                "description",
                "content",
                "source",
                "source_path",
                "parameters",
                "metadata",
                "last_updated",
            },
        )

    def invoke_skill_payload(
        self,
        skill_id: str | None,
        parameters: object = None,
    ) -> dict[str, Any]:
        if not skill_id:
            result = InvocationResult.fail(
                ErrorCode.INVALID_PARAMS, "Missing required parameter: skill_id", 0
            )
        elif parameters is not None and not isinstance(parameters, dict):
            result = InvocationResult.fail(
                ErrorCode.INVALID_PARAMS, "Parameters must be an object", 0
            )
        else:
            result = self._executor.invoke_skill(skill_id, parameters or {})
        return result.to_wire()

    def refresh_payload(self) -> dict[str, Any]:
        return self.refresh().to_wire()

    def health_payload(self) -> dict[str, Any]:
        last_sync = self._registry.last_sync
        return {
            "status": "ok",
            "skills": self._registry.skill_count(),
            "cacheFresh": self._cache.is_fresh(max(self._settings.sync_interval_minutes, 1)),
            "lastSync": last_sync.isoformat() if last_sync else None,
        }
