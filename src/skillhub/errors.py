"""Exception hierarchy shared across skillhub components."""

from __future__ import annotations


class SkillhubError(Exception):
    """Base class for skillhub failures."""


class RepositoryError(SkillhubError):
    """Raised when a git operation cannot be run or does not succeed."""


class SkillNotFoundError(SkillhubError, LookupError):
    """Raised when a skill id is not present in the registry."""

    def __init__(self, skill_id: str) -> None:
        super().__init__(f"Skill not found: {skill_id}")
        self.skill_id = skill_id
