"""Skill executor: listing, documentation lookup, and template invocation over a registry."""

from __future__ import annotations

import json
import logging
import re
import time

from skillhub.skills.models import (
    ErrorCode,
    InvocationResult,
    ParameterSummary,
    Skill,
    SkillSummary,
)
from skillhub.skills.registry import SkillRegistry

logger = logging.getLogger(__name__)

ALL_SOURCES = "all"


def _elapsed_ms(start_ns: int) -> int:
    return (time.monotonic_ns() - start_ns) // 1_000_000


def render_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict | list):
        return json.dumps(value)
    return str(value)


def substitute_parameters(content: str, values: dict[str, object]) -> str:
    """Replace ``{{ name }}`` and ``${ name }`` placeholders for every supplied value.

    One pass over the content: rendered values are never rescanned.
    """
    if not values:
        return content
    rendered = {key: render_value(value) for key, value in values.items()}
    names = "|".join(re.escape(key) for key in sorted(rendered, key=len, reverse=True))
    pattern = re.compile(
        rf"\{{\{{\s*(?P<brace>{names})\s*\}}\}}|\$\{{\s*(?P<dollar>{names})\s*\}}"
    )

    def _replace(match: re.Match[str]) -> str:
        key = match.group("brace")
        return rendered[key if key is not None else match.group("dollar")]

    return pattern.sub(_replace, content)


def summarize(skill: Skill) -> SkillSummary:
    return SkillSummary(
        id=skill.id,
        name=skill.name,
        description=skill.description,
        source=skill.source,
        parameters=[
            ParameterSummary(
                name=p.name,
                type=p.type,
                description=p.description,
                required=p.required,
            )
            for p in skill.parameters
        ],
    )


class SkillExecutor:
    def __init__(self, registry: SkillRegistry) -> None:
        self._registry = registry

    def list_skills(
        self,
        filter_text: str | None = None,
        source: str | None = None,
    ) -> list[SkillSummary]:
        skills = self._registry.list_skills()
        if source and source != ALL_SOURCES:
            skills = [s for s in skills if s.source == source]
        if filter_text:
            needle = filter_text.lower()
            skills = [
                s
                for s in skills
                if needle in s.name.lower()
                or needle in s.description.lower()
                or needle in s.id.lower()
            ]
        return [summarize(s) for s in skills]

    def get_skill(self, skill_id: str) -> Skill | None:
        return self._registry.get_skill(skill_id)

    def invoke_skill(
        self,
        skill_id: str,
        values: dict[str, object] | None = None,
    ) -> InvocationResult:
        start = time.monotonic_ns()
        values = values or {}
        try:
            skill = self._registry.get_skill(skill_id)
            if skill is None:
                logger.warning(f"Skill not found: {skill_id}")
                return InvocationResult.fail(
                    ErrorCode.SKILL_NOT_FOUND, f"Skill not found: {skill_id}", _elapsed_ms(start)
                )

            validation = self._registry.validate_parameters(skill_id, values)
            if not validation.valid:
                message = ", ".join(validation.errors) or "Parameter validation failed"
                logger.warning(f"Parameter validation failed for skill {skill_id}: {message}")
                return InvocationResult.fail(
                    ErrorCode.INVALID_PARAMS,
                    message,
                    _elapsed_ms(start),
                    details={"errors": validation.errors},
                )

            rendered = substitute_parameters(skill.content, values)
            elapsed = _elapsed_ms(start)
            logger.debug(f"Skill {skill_id} invoked in {elapsed}ms")
            return InvocationResult.ok(rendered, elapsed)
        except Exception as e:
            logger.exception(f"Error invoking skill {skill_id}")
            return InvocationResult.fail(ErrorCode.EXECUTION_ERROR, str(e), _elapsed_ms(start))

    def get_skill_documentation(self, skill_id: str) -> InvocationResult:
        start = time.monotonic_ns()
        skill = self._registry.get_skill(skill_id)
        if skill is None:
            return InvocationResult.fail(
                ErrorCode.SKILL_NOT_FOUND, f"Skill not found: {skill_id}", _elapsed_ms(start)
            )
        return InvocationResult.ok(skill.content, _elapsed_ms(start))
