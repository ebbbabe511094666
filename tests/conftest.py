"""Shared fixtures for skillhub tests."""

from pathlib import Path

import pytest

from skillhub.config import Settings
from skillhub.skills.models import (
    ParameterSchema,
    ParameterType,
    Skill,
    SkillOrigin,
    SourceDescriptor,
    SourceType,
)
from skillhub.skills.registry import SkillRegistry


def _make_skill(
    skill_id: str,
    *,
    name: str | None = None,
    source: SkillOrigin = SkillOrigin.REPOSITORY,
    content: str = "",
    parameters: list[ParameterSchema] | None = None,
    description: str = "",
) -> Skill:
    return Skill(
        id=skill_id,
        name=name or skill_id,
        description=description,
        source=source,
        content=content,
        parameters=parameters or [],
    )


@pytest.fixture
def git_source() -> SourceDescriptor:
    return SourceDescriptor(type=SourceType.GIT, url="https://example.com/skills.git", priority=1)


@pytest.fixture
def local_source(tmp_path: Path) -> SourceDescriptor:
    return SourceDescriptor(type=SourceType.LOCAL, path=str(tmp_path / "local"), priority=2)


@pytest.fixture
def registry(git_source: SourceDescriptor, local_source: SourceDescriptor) -> SkillRegistry:
    reg = SkillRegistry()
    reg.add_source(git_source)
    reg.add_source(local_source)
    return reg


@pytest.fixture
def greet_skill() -> Skill:
    return _make_skill(
        "greet",
        name="Greet",
        description="Greets someone",
        content="Hello, {{name}}! Excited: ${excited}",
        parameters=[
            ParameterSchema(name="name", type=ParameterType.STRING, required=True),
            ParameterSchema(name="excited", type=ParameterType.BOOLEAN),
        ],
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        repo_url="https://example.com/org/skills.git",
        cache_dir=str(tmp_path / "cache"),
        overrides_file=str(tmp_path / "overrides.json"),
        sync_interval_minutes=0,
    )
