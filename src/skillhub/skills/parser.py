"""Skill document parsing: source-shape detection, front matter, heuristic schema inference.

Two source shapes are supported:

* directory shape: ``<root>/skills/<slug>/`` with one primary markdown file each
  (``SKILL.md`` preferred, then ``README.md``, then any ``*.md``);
* index shape: a ``<root>/README.md`` curated list of GitHub tree links, each
  resolved to its remote document or, failing that, to a stub record.

Everything that turns text into a record (``parse_markdown``,
``extract_parameters``, ``normalize_skill_id``) is a pure function.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from skillhub.skills.fetcher import DocumentFetcher, raw_content_url
from skillhub.skills.models import (
    ParameterSchema,
    ParameterType,
    Skill,
    SkillMetadata,
    SkillOrigin,
)

logger = logging.getLogger(__name__)

SKILLS_DIRNAME = "skills"
INDEX_FILENAME = "README.md"
PRIMARY_DOCUMENTS = ("SKILL.md", "README.md")
REMOTE_CANDIDATES = ("SKILL.md", "README.md", "skill.md")

# - **[org/skill](https://github.com/org/repo/tree/main/skills/skill)** - Description
SKILL_LINK_RE = re.compile(
    r"\*\*\[([^\]]+)\]"
    r"\((https://github\.com/([^/\s)]+)/([^/\s)]+)/tree/([^/\s)]+)/([^)\s]+?))\)\*\*"
    r"\s*-\s*(.+)"
)
H1_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
WHEN_TO_USE_RE = re.compile(r"##\s*When to Use\s*$", re.IGNORECASE | re.MULTILINE)
PARAMS_SECTION_RE = re.compile(
    r"##\s*Parameters?\s*\n+([\s\S]*?)(?=##|\Z)",
    re.IGNORECASE,
)
PARAM_LINE_RE = re.compile(
    r"^[-*]\s+`?([A-Za-z_$][A-Za-z0-9_$]*)`?(?:\s*\(([^)]+)\))?\s*:\s*(.+)$",
    re.MULTILINE,
)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

_METADATA_LIST_KEYS = ("tags", "requirements")
_METADATA_STR_KEYS = ("author", "version")
_TOP_LEVEL_KEYS = ("name", "description")
_OVERRIDE_KEYS = ("name", "description", "content", "parameters", "metadata")
_PARAMETER_TYPES = {t.value for t in ParameterType}


@dataclass
class SkillLink:
    name: str
    url: str
    org: str
    repo: str
    ref: str
    path: str
    description: str

    @property
    def slug(self) -> str:
        tail = self.path.rstrip("/").rsplit("/", 1)[-1]
        return tail or self.name


@dataclass
class ParsedDocument:
    name: str = ""
    description: str = ""
    content: str = ""
    metadata: SkillMetadata = field(default_factory=SkillMetadata)
    parameters: list[ParameterSchema] = field(default_factory=list)


# ------------------------------------------------------------------ #
# Pure text functions
# ------------------------------------------------------------------ #


def normalize_skill_id(raw: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', strip edge separators."""
    return _NON_ALNUM_RE.sub("-", raw.lower()).strip("-")


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split a leading ``---`` block from the body. Unterminated blocks are body text."""
    lines = text.split("\n")
    if not lines or lines[0].strip() != "---":
        return {}, text
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            return parse_front_matter("\n".join(lines[1:i])), "\n".join(lines[i + 1 :])
    return {}, text


def parse_front_matter(block: str) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for line in block.split("\n"):
        key, sep, value = line.partition(":")
        key, value = key.strip(), value.strip()
        if not sep or not key or not value:
            continue
        result[key] = _parse_scalar(value)
    return result


def _parse_scalar(value: str) -> Any:
    if value.startswith("[") and value.endswith("]"):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            # YAML-style flow list: [a, 'b', "c"]
            return _parse_csv(value[1:-1])
        if isinstance(parsed, list):
            return parsed
    return value.strip('"').strip("'")


def _parse_csv(value: str) -> list[str]:
    """Parse comma-separated string into list, filtering empty entries."""
    if not value:
        return []
    items = (v.strip().strip('"').strip("'") for v in value.split(","))
    return [v for v in items if v]


def extract_title(body: str) -> str | None:
    match = H1_RE.search(body)
    return match.group(1).strip() if match else None


def _paragraph_after(body: str, offset: int) -> str | None:
    """First paragraph starting at offset, stopping at a blank line or heading."""
    collected: list[str] = []
    for line in body[offset:].splitlines():
        stripped = line.strip()
        if stripped.startswith("#"):
            break
        if not stripped:
            if collected:
                break
            continue
        collected.append(stripped)
    return " ".join(collected) or None


def extract_description(body: str) -> str | None:
    """Paragraph under a 'When to Use' heading, else the first paragraph after the H1."""
    when = WHEN_TO_USE_RE.search(body)
    if when:
        paragraph = _paragraph_after(body, when.end())
        if paragraph:
            return paragraph
    title = H1_RE.search(body)
    if title:
        return _paragraph_after(body, title.end())
    return None


def infer_parameter_type(description: str) -> ParameterType:
    desc = description.lower()
    if "true/false" in desc or "boolean" in desc:
        return ParameterType.BOOLEAN
    if "array" in desc or "list" in desc:
        return ParameterType.ARRAY
    if "object" in desc or "map" in desc:
        return ParameterType.OBJECT
    return ParameterType.STRING


def infer_required(description: str, *, has_type_hint: bool) -> bool:
    """Guess requiredness from prose. Ambiguous cases resolve to optional."""
    desc = description.lower()
    if has_type_hint:
        return "(required)" in desc or "is required" in desc
    if "optional" in desc or "default" in desc:
        return False
    return "required" in desc


def parse_parameter_line(name: str, type_hint: str | None, description: str) -> ParameterSchema:
    description = description.strip()
    param_type = ParameterType.STRING
    explicit_required: bool | None = None

    if type_hint:
        parts = [p.strip().lower() for p in type_hint.split(",")]
        if parts[0] in _PARAMETER_TYPES:
            param_type = ParameterType(parts[0])
        if len(parts) > 1:
            if parts[1] == "required":
                explicit_required = True
            elif parts[1] == "optional":
                explicit_required = False
    else:
        param_type = infer_parameter_type(description)

    if explicit_required is None:
        required = infer_required(description, has_type_hint=bool(type_hint))
    else:
        required = explicit_required

    return ParameterSchema(
        name=name,
        type=param_type,
        description=description,
        required=required,
    )


def extract_parameters(body: str) -> list[ParameterSchema]:
    """Parse bullet lines of a '## Parameters' section into schemas."""
    section = PARAMS_SECTION_RE.search(body)
    if not section:
        return []
    params: list[ParameterSchema] = []
    seen: set[str] = set()
    for match in PARAM_LINE_RE.finditer(section.group(1)):
        name, type_hint, description = match.groups()
        if name in seen:
            continue
        seen.add(name)
        params.append(parse_parameter_line(name, type_hint, description))
    return params


def build_metadata(front_matter: dict[str, Any]) -> SkillMetadata:
    known: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in front_matter.items():
        if key in _TOP_LEVEL_KEYS:
            continue
        if key in _METADATA_STR_KEYS:
            known[key] = str(value)
        elif key in _METADATA_LIST_KEYS:
            if isinstance(value, str):
                value = _parse_csv(value)
            if isinstance(value, list):
                known[key] = [str(v) for v in value]
        else:
            extra[key] = value
    return SkillMetadata(**known, extra=extra)


def parse_markdown(text: str) -> ParsedDocument:
    text = text.replace("\r\n", "\n")
    front_matter, body = split_front_matter(text)
    name = front_matter.get("name")
    description = front_matter.get("description")
    return ParsedDocument(
        name=str(name) if name else extract_title(body) or "",
        description=str(description) if description else extract_description(body) or "",
        content=body.strip(),
        metadata=build_metadata(front_matter),
        parameters=extract_parameters(body),
    )


def find_skill_links(index_text: str) -> list[SkillLink]:
    links: list[SkillLink] = []
    for match in SKILL_LINK_RE.finditer(index_text):
        name, url, org, repo, ref, path, description = match.groups()
        links.append(
            SkillLink(
                name=name.strip(),
                url=url,
                org=org,
                repo=repo,
                ref=ref,
                path=path.strip().rstrip("/"),
                description=description.strip(),
            )
        )
    return links


def select_primary_document(skill_dir: Path) -> Path | None:
    for filename in PRIMARY_DOCUMENTS:
        candidate = skill_dir / filename
        if candidate.is_file():
            return candidate
    markdown = sorted(p for p in skill_dir.iterdir() if p.is_file() and p.suffix == ".md")
    return markdown[0] if markdown else None


# ------------------------------------------------------------------ #
# Parser
# ------------------------------------------------------------------ #


class SkillParser:
    def __init__(self, fetcher: DocumentFetcher | None = None) -> None:
        self._fetcher = fetcher
        self._overrides: dict[str, dict[str, Any]] = {}

    @property
    def overrides(self) -> dict[str, dict[str, Any]]:
        return dict(self._overrides)

    def close(self) -> None:
        if self._fetcher is not None:
            self._fetcher.close()

    def load_overrides(self, path: Path) -> int:
        """Load the per-skill override table. Returns the number of entries loaded."""
        if not path.exists():
            logger.debug(f"No overrides file found at {path}")
            return 0
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load skill overrides from {path}: {e}")
            return 0
        if not isinstance(data, dict):
            logger.warning(f"Ignoring skill overrides in {path}: expected a JSON object")
            return 0
        self._overrides = {
            normalize_skill_id(key): value
            for key, value in data.items()
            if isinstance(value, dict)
        }
        logger.debug(f"Loaded {len(self._overrides)} skill overrides")
        return len(self._overrides)

    def apply_overrides(self, skill_id: str, parsed: ParsedDocument) -> ParsedDocument:
        override = self._overrides.get(skill_id)
        if not override:
            return parsed
        for key, value in override.items():
            if key not in _OVERRIDE_KEYS:
                logger.warning(f"Unknown override key '{key}' for skill {skill_id}")
                continue
            try:
                if key == "parameters":
                    value = [ParameterSchema.model_validate(p) for p in value]
                elif key == "metadata":
                    value = SkillMetadata.model_validate(value)
                elif not isinstance(value, str):
                    raise ValueError(f"expected a string, got {type(value).__name__}")
            except (ValidationError, ValueError, TypeError) as e:
                logger.warning(f"Invalid override '{key}' for skill {skill_id}: {e}")
                continue
            setattr(parsed, key, value)
        return parsed

    def parse_source(self, root: Path, origin: SkillOrigin) -> list[Skill]:
        """Detect the source shape under root and parse every skill it holds."""
        skills_dir = root / SKILLS_DIRNAME
        index_path = root / INDEX_FILENAME
        if skills_dir.is_dir():
            return self.parse_directory(skills_dir, origin)
        if index_path.is_file():
            logger.info(f"Detected index-style source at {root}, parsing {INDEX_FILENAME}")
            return self.parse_index(index_path, origin)
        logger.warning(f"No skills found in {root}")
        return []

    def parse_directory(self, skills_dir: Path, origin: SkillOrigin) -> list[Skill]:
        skill_dirs = sorted(p for p in skills_dir.iterdir() if p.is_dir())
        logger.info(f"Found {len(skill_dirs)} potential skill directories in {skills_dir}")
        skills: list[Skill] = []
        for skill_dir in skill_dirs:
            skill = self.parse_skill_directory(skill_dir, origin)
            if skill is not None:
                skills.append(skill)
        logger.info(f"Parsed {len(skills)} skills from {skills_dir}")
        return skills

    def parse_skill_directory(self, skill_dir: Path, origin: SkillOrigin) -> Skill | None:
        skill_id = normalize_skill_id(skill_dir.name)
        if not skill_id:
            return None
        document = select_primary_document(skill_dir)
        if document is None:
            logger.warning(f"No skill file found in {skill_dir}")
            return None
        try:
            parsed = parse_markdown(document.read_text(encoding="utf-8"))
            parsed = self.apply_overrides(skill_id, parsed)
            return Skill(
                id=skill_id,
                name=parsed.name or skill_dir.name,
                description=parsed.description,
                source=origin,
                source_path=str(skill_dir),
                content=parsed.content,
                parameters=parsed.parameters,
                metadata=parsed.metadata,
            )
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.error(f"Failed to parse skill directory {skill_dir}: {e}")
            return None

    def parse_index(self, index_path: Path, origin: SkillOrigin) -> list[Skill]:
        try:
            text = index_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read skill index {index_path}: {e}")
            return []
        links = find_skill_links(text)
        logger.info(f"Found {len(links)} skill links in {index_path.name}")
        skills: list[Skill] = []
        for link in links:
            skill = self.fetch_linked_skill(link, origin)
            if skill is None:
                logger.warning(f"Could not fetch skill {link.name}, using stub record")
                try:
                    skill = create_stub_skill(link, origin)
                except ValidationError as e:
                    logger.warning(f"Skipping link {link.url}: no usable skill id ({e})")
                    continue
            skills.append(skill)
        return skills

    def fetch_linked_skill(self, link: SkillLink, origin: SkillOrigin) -> Skill | None:
        if self._fetcher is None:
            self._fetcher = DocumentFetcher()
        urls = [
            raw_content_url(link.org, link.repo, link.ref, link.path, filename)
            for filename in REMOTE_CANDIDATES
        ]
        fetched = self._fetcher.fetch_first(urls)
        if fetched is None:
            return None
        raw_url, text = fetched
        skill_id = normalize_skill_id(link.slug)
        if not skill_id:
            return None
        try:
            parsed = self.apply_overrides(skill_id, parse_markdown(text))
            metadata = parsed.metadata.model_copy(
                update={"source_org": link.org, "source_repo": link.repo}
            )
            skill = Skill(
                id=skill_id,
                name=parsed.name or link.name.rsplit("/", 1)[-1] or skill_id,
                description=parsed.description or link.description,
                source=origin,
                source_path=link.url,
                content=parsed.content,
                parameters=parsed.parameters,
                metadata=metadata,
            )
        except ValidationError as e:
            logger.warning(f"Fetched document for {link.name} is invalid: {e}")
            return None
        logger.debug(f"Fetched skill {skill.name} from {raw_url}")
        return skill


def create_stub_skill(link: SkillLink, origin: SkillOrigin) -> Skill:
    """Minimal record synthesized from an index link whose document is unreachable."""
    skill_id = normalize_skill_id(link.slug) or normalize_skill_id(link.name)
    content = (
        f"# {link.name}\n\n{link.description}\n\n## Source\n\n"
        f"This skill is available at: {link.url}\n\n"
        "Please visit the source repository for full documentation and usage instructions."
    )
    return Skill(
        id=skill_id,
        name=link.name.rsplit("/", 1)[-1] or skill_id,
        description=link.description,
        source=origin,
        source_path=link.url,
        content=content,
        metadata=SkillMetadata(source_org=link.org, source_repo=link.repo),
    )
