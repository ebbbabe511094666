"""Skill registry: multi-source index, override resolution, parameter validation."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import datetime

from skillhub.skills.models import (
    RegistrySnapshot,
    Skill,
    SkillOrigin,
    SourceDescriptor,
    SourceType,
    ValidationResult,
)
from skillhub.skills.parameters import validate_parameter_value

# Which descriptor type supplies the priority for each skill origin
_ORIGIN_SOURCE_TYPE: dict[str, SourceType] = {
    SkillOrigin.REPOSITORY: SourceType.GIT,
    SkillOrigin.LOCAL: SourceType.LOCAL,
}


class SkillRegistry:
    """In-memory skills keyed by id.

    All reads and writes go through one re-entrant lock, so a reader never
    sees the registry half-way through ``replace_skills``.
    """

    _skills: dict[str, Skill]
    _sources: list[SourceDescriptor]
    _last_sync: datetime | None

    def __init__(self) -> None:
        self._skills = {}
        self._sources = []
        self._last_sync = None
        self._lock = threading.RLock()

    # -- sources ------------------------------------------------------

    def add_source(self, source: SourceDescriptor) -> None:
        with self._lock:
            self._sources.append(source)
            # stable: equal priorities keep insertion order
            self._sources.sort(key=lambda s: s.priority, reverse=True)

    def sources(self) -> list[SourceDescriptor]:
        with self._lock:
            return list(self._sources)

    def has_source(self, source: SourceDescriptor) -> bool:
        with self._lock:
            return any(
                s.type == source.type and s.url == source.url and s.path == source.path
                for s in self._sources
            )

    def priority_for(self, origin: SkillOrigin | str) -> int:
        source_type = _ORIGIN_SOURCE_TYPE.get(origin)
        with self._lock:
            for source in self._sources:
                if source.type == source_type:
                    return source.priority
        return 0

    # -- skills -------------------------------------------------------

    def register_skill(self, skill: Skill) -> bool:
        """Store skill unless an existing one with the same id has strictly higher priority."""
        with self._lock:
            existing = self._skills.get(skill.id)
            if existing is not None:
                if self.priority_for(skill.source) < self.priority_for(existing.source):
                    return False
            self._skills[skill.id] = skill
            return True

    def replace_skills(self, skills: Iterable[Skill]) -> int:
        """Clear and re-register as one critical section. Returns the resulting count."""
        with self._lock:
            self._skills.clear()
            for skill in skills:
                self.register_skill(skill)
            return len(self._skills)

    def get_skill(self, skill_id: str) -> Skill | None:
        with self._lock:
            return self._skills.get(skill_id)

    def has_skill(self, skill_id: str) -> bool:
        with self._lock:
            return skill_id in self._skills

    def list_skills(self) -> list[Skill]:
        with self._lock:
            return list(self._skills.values())

    def skill_count(self) -> int:
        with self._lock:
            return len(self._skills)

    def clear(self) -> None:
        with self._lock:
            self._skills.clear()

    @property
    def last_sync(self) -> datetime | None:
        return self._last_sync

    @last_sync.setter
    def last_sync(self, value: datetime | None) -> None:
        self._last_sync = value

    # -- validation ---------------------------------------------------

    def validate_parameters(self, skill_id: str, values: dict[str, object]) -> ValidationResult:
        """Collect every violation: missing required, wrong type/enum, undeclared keys."""
        skill = self.get_skill(skill_id)
        if skill is None:
            return ValidationResult(valid=False, errors=[f"Skill not found: {skill_id}"])

        errors: list[str] = []
        for param in skill.parameters:
            if param.name not in values:
                if param.required:
                    errors.append(f"Missing required parameter: {param.name}")
                continue
            reason = validate_parameter_value(param, values[param.name])
            if reason is not None:
                errors.append(f"Invalid parameter '{param.name}': {reason}")

        declared = {p.name for p in skill.parameters}
        for key in values:
            if key not in declared:
                errors.append(f"Unknown parameter: {key}")

        return ValidationResult(valid=not errors, errors=errors)

    # -- persistence --------------------------------------------------

    def to_snapshot(self) -> RegistrySnapshot:
        with self._lock:
            return RegistrySnapshot(
                skills=list(self._skills.values()),
                sources=list(self._sources),
                last_sync=self._last_sync,
            )

    @classmethod
    def from_snapshot(cls, snapshot: RegistrySnapshot) -> SkillRegistry:
        """Rebuild a registry. Sources go first so priorities apply while skills replay."""
        registry = cls()
        for source in snapshot.sources:
            registry.add_source(source)
        for skill in snapshot.skills:
            registry.register_skill(skill)
        registry.last_sync = snapshot.last_sync
        return registry
