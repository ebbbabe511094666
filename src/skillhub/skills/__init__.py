"""Skills system: parsing, registry, and template execution."""

from skillhub.skills.executor import SkillExecutor
from skillhub.skills.models import (
    InvocationResult,
    ParameterSchema,
    Skill,
    SkillMetadata,
    SkillOrigin,
    SourceDescriptor,
)
from skillhub.skills.parser import SkillParser
from skillhub.skills.registry import SkillRegistry

__all__ = [
    "InvocationResult",
    "ParameterSchema",
    "Skill",
    "SkillExecutor",
    "SkillMetadata",
    "SkillOrigin",
    "SkillParser",
    "SkillRegistry",
    "SourceDescriptor",
]
