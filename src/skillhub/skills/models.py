"""Pydantic models for skills, sources, snapshots and invocation results."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for records that cross the transport boundary with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ParameterType(StrEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


class SkillOrigin(StrEnum):
    REPOSITORY = "repository"
    LOCAL = "local"


class SourceType(StrEnum):
    GIT = "git"
    LOCAL = "local"


class ErrorCode(StrEnum):
    INVALID_PARAMS = "InvalidParams"
    SKILL_NOT_FOUND = "SkillNotFound"
    EXECUTION_ERROR = "ExecutionError"
    REPOSITORY_ERROR = "RepositoryError"
    INTERNAL_ERROR = "InternalError"


class ParameterSchema(WireModel):
    name: str = Field(pattern=r"^[A-Za-z_$][A-Za-z0-9_$]*$")
    type: ParameterType = ParameterType.STRING
    description: str = ""
    required: bool = False
    default: Any = None
    enum: list[Any] | None = None


class SkillMetadata(WireModel):
    author: str | None = None
    version: str | None = None
    tags: list[str] | None = None
    requirements: list[str] | None = None
    source_org: str | None = None
    source_repo: str | None = None
    # Front-matter keys without a dedicated field
    extra: dict[str, Any] = Field(default_factory=dict)


class Skill(WireModel):
    id: str = Field(min_length=1)
    name: str
    description: str = ""
    source: SkillOrigin
    source_path: str = ""
    content: str = ""
    parameters: list[ParameterSchema] = Field(default_factory=list)
    metadata: SkillMetadata = Field(default_factory=SkillMetadata)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SourceDescriptor(WireModel):
    type: SourceType
    url: str | None = None
    path: str | None = None
    branch: str = "main"
    priority: int = 0

    @model_validator(mode="after")
    def _check_locator(self) -> SourceDescriptor:
        if self.type == SourceType.GIT and not self.url:
            raise ValueError("Git repository source must have a URL")
        if self.type == SourceType.LOCAL and not self.path:
            raise ValueError("Local source must have a path")
        return self


class RegistrySnapshot(WireModel):
    skills: list[Skill] = Field(default_factory=list)
    sources: list[SourceDescriptor] = Field(default_factory=list)
    last_sync: datetime | None = None


class CacheMetadata(WireModel):
    version: str = "1.0.0"
    last_updated: datetime
    skill_count: int = 0


class SyncResult(BaseModel):
    success: bool
    updated: bool = False
    skills_changed: bool = False
    message: str = ""


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class InvocationError(WireModel):
    code: ErrorCode
    message: str
    details: dict[str, Any] | None = None


class InvocationResult(WireModel):
    success: bool
    content: str | None = None
    error: InvocationError | None = None
    execution_time_ms: int = Field(default=0, ge=0)

    @classmethod
    def ok(cls, content: str, execution_time_ms: int) -> InvocationResult:
        return cls(success=True, content=content, execution_time_ms=execution_time_ms)

    @classmethod
    def fail(
        cls,
        code: ErrorCode,
        message: str,
        execution_time_ms: int,
        details: dict[str, Any] | None = None,
    ) -> InvocationResult:
        return cls(
            success=False,
            error=InvocationError(code=code, message=message, details=details),
            execution_time_ms=execution_time_ms,
        )


class ParameterSummary(WireModel):
    name: str
    type: ParameterType
    description: str
    required: bool


class SkillSummary(WireModel):
    id: str
    name: str
    description: str
    source: SkillOrigin
    parameters: list[ParameterSummary] = Field(default_factory=list)


class RefreshResult(WireModel):
    success: bool
    skills_updated: int = 0
    skills_added: int = 0
    skills_removed: int = 0
    message: str = ""
