"""Tests for skills/parser.py: markdown parsing, schema inference, source shapes, overrides."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from skillhub.skills.fetcher import DocumentFetcher
from skillhub.skills.models import ParameterType, SkillOrigin
from skillhub.skills.parser import (
    SkillLink,
    SkillParser,
    create_stub_skill,
    extract_description,
    extract_parameters,
    find_skill_links,
    normalize_skill_id,
    parse_markdown,
    select_primary_document,
    split_front_matter,
)


GREETING_SKILL = """---
name: Greeting
description: Greets someone by name
author: Jane Doe
version: 1.2.0
tags: [social, demo]
---

# Greeting

Say hello.

## Parameters

- name (string, required): Who to greet
- excited (boolean): Add an exclamation mark

## Usage

Hello, {{name}}!
"""


def _write_skill(root: Path, slug: str, text: str, filename: str = "SKILL.md") -> Path:
    """Create <root>/<slug>/<filename> and return the skill directory."""
    skill_dir = root / slug
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / filename).write_text(text)
    return skill_dir


INDEX = """# Awesome skills

## Document skills

- **[anthropics/docx](https://github.com/anthropics/skills/tree/main/skills/docx)** - Create and edit Word documents
- **[acme/pdf-tools](https://github.com/acme/tools/tree/v2/pdf-tools)** - Work with PDFs
- Plain bullet that is not a skill link
"""


def _fetcher(handler) -> DocumentFetcher:
    return DocumentFetcher(client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestNormalizeSkillId:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("My Skill", "my-skill"),
            ("--Foo__Bar!!", "foo-bar"),
            ("pdf-tools", "pdf-tools"),
            ("  A  B  ", "a-b"),
            ("!!!", ""),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_skill_id(raw) == expected

    def test_idempotent(self):
        once = normalize_skill_id("Hello, World -- 2")
        assert normalize_skill_id(once) == once


class TestFrontMatter:
    def test_splits_block_and_body(self):
        meta, body = split_front_matter("---\nname: X\n---\n# Title\n")
        assert meta == {"name": "X"}
        assert body == "# Title"

    def test_no_front_matter(self):
        meta, body = split_front_matter("# Title\n")
        assert meta == {}
        assert body == "# Title\n"

    def test_unterminated_block_is_body(self):
        text = "---\nname: X\n# Title"
        meta, body = split_front_matter(text)
        assert meta == {}
        assert body == text

    def test_bracket_list_without_quotes(self):
        meta, _ = split_front_matter("---\ntags: [a, 'b', \"c\"]\n---\n")
        assert meta["tags"] == ["a", "b", "c"]

    def test_json_list(self):
        meta, _ = split_front_matter('---\ntags: ["x", "y"]\n---\n')
        assert meta["tags"] == ["x", "y"]

    def test_quoted_scalar(self):
        meta, _ = split_front_matter('---\nversion: "1.0"\n---\n')
        assert meta["version"] == "1.0"


class TestParseMarkdown:
    def test_front_matter_fields(self):
        doc = parse_markdown(GREETING_SKILL)
        assert doc.name == "Greeting"
        assert doc.description == "Greets someone by name"
        assert doc.metadata.author == "Jane Doe"
        assert doc.metadata.version == "1.2.0"
        assert doc.metadata.tags == ["social", "demo"]
        assert doc.content.startswith("# Greeting")
        assert "---" not in doc.content.splitlines()[0]

    def test_title_and_first_paragraph_fallback(self):
        doc = parse_markdown("# Code Review\n\nReviews pull requests\nthoroughly.\n\nMore text.\n")
        assert doc.name == "Code Review"
        assert doc.description == "Reviews pull requests thoroughly."

    def test_when_to_use_section_preferred(self):
        body = "# Tool\n\nIntro.\n\n## When to Use\n\nUse it for audits.\n\n## Other\n"
        assert extract_description(body) == "Use it for audits."

    def test_no_title_no_description(self):
        doc = parse_markdown("just text")
        assert doc.name == ""
        assert doc.description == ""

    def test_unknown_front_matter_goes_to_extra(self):
        doc = parse_markdown("---\nlicense: MIT\n---\n# X\n")
        assert doc.metadata.extra == {"license": "MIT"}

    def test_crlf_line_endings(self):
        doc = parse_markdown("---\r\nname: Win\r\n---\r\n# Win\r\n\r\nBody\r\n")
        assert doc.name == "Win"
        assert doc.description == "Body"

    def test_body_control_characters_kept_after_front_matter(self):
        doc = parse_markdown("---\nname: n\n---\n# T\n\nx\x0cy z\x85w\rv\n")
        assert doc.content == "# T\n\nx\x0cy z\x85w\rv"


class TestExtractParameters:
    def test_no_section(self):
        assert extract_parameters("# X\n\nNothing here.\n") == []

    def test_explicit_type_and_required(self):
        params = extract_parameters(
            "## Parameters\n\n- count (number, required): How many\n- mode (string, optional): Mode\n"
        )
        assert [(p.name, p.type, p.required) for p in params] == [
            ("count", ParameterType.NUMBER, True),
            ("mode", ParameterType.STRING, False),
        ]

    def test_type_hint_with_required_in_prose(self):
        (param,) = extract_parameters("## Parameters\n- name (string): The name (required)\n")
        assert param.required is True

    def test_inferred_types(self):
        params = extract_parameters(
            "## Parameters\n"
            "- verbose: Enable verbose output (true/false)\n"
            "- files: A list of files\n"
            "- options: Options object\n"
            "- title: Page title\n"
        )
        types = {p.name: p.type for p in params}
        assert types == {
            "verbose": ParameterType.BOOLEAN,
            "files": ParameterType.ARRAY,
            "options": ParameterType.OBJECT,
            "title": ParameterType.STRING,
        }

    def test_inferred_requiredness(self):
        params = extract_parameters(
            "## Parameters\n"
            "- target: Target path, required\n"
            "- depth: Optional depth, default 2\n"
            "- label: A label\n"
        )
        required = {p.name: p.required for p in params}
        assert required == {"target": True, "depth": False, "label": False}

    def test_backticked_names_and_duplicates(self):
        params = extract_parameters("## Parameters\n- `path`: First\n- path: Second\n")
        assert len(params) == 1
        assert params[0].description == "First"

    def test_section_ends_at_next_heading(self):
        params = extract_parameters("## Parameters\n- a: A\n\n## Examples\n- b: B\n")
        assert [p.name for p in params] == ["a"]


class TestSkillLinks:
    def test_find_links(self):
        links = find_skill_links(INDEX)
        assert len(links) == 2
        docx = links[0]
        assert docx.name == "anthropics/docx"
        assert (docx.org, docx.repo, docx.ref, docx.path) == (
            "anthropics",
            "skills",
            "main",
            "skills/docx",
        )
        assert docx.description == "Create and edit Word documents"
        assert docx.slug == "docx"
        assert links[1].ref == "v2"

    def test_stub_skill(self):
        link = find_skill_links(INDEX)[0]
        stub = create_stub_skill(link, SkillOrigin.REPOSITORY)
        assert stub.id == "docx"
        assert stub.name == "docx"
        assert stub.source_path == link.url
        assert "This skill is available at: " + link.url in stub.content
        assert stub.metadata.source_org == "anthropics"
        assert stub.metadata.source_repo == "skills"


class TestSelectPrimaryDocument:
    def test_prefers_skill_md(self, tmp_path):
        skill_dir = _write_skill(tmp_path, "a", "x")
        (skill_dir / "README.md").write_text("y")
        assert select_primary_document(skill_dir).name == "SKILL.md"

    def test_falls_back_to_readme_then_any_markdown(self, tmp_path):
        readme_dir = _write_skill(tmp_path, "a", "x", filename="README.md")
        assert select_primary_document(readme_dir).name == "README.md"
        other_dir = _write_skill(tmp_path, "b", "x", filename="guide.md")
        assert select_primary_document(other_dir).name == "guide.md"

    def test_no_markdown(self, tmp_path):
        skill_dir = _write_skill(tmp_path, "a", "x", filename="notes.txt")
        assert select_primary_document(skill_dir) is None


class TestParseDirectory:
    def test_directory_shape(self, tmp_path):
        skills_root = tmp_path / "skills"
        _write_skill(skills_root, "Greeting Skill", GREETING_SKILL)
        _write_skill(skills_root, "empty", "no title here", filename="README.md")
        (skills_root / "nothing").mkdir()

        skills = SkillParser().parse_source(tmp_path, SkillOrigin.LOCAL)

        by_id = {s.id: s for s in skills}
        assert set(by_id) == {"greeting-skill", "empty"}
        greeting = by_id["greeting-skill"]
        assert greeting.name == "Greeting"
        assert greeting.source == SkillOrigin.LOCAL
        assert [p.name for p in greeting.parameters] == ["name", "excited"]
        # name falls back to the directory name
        assert by_id["empty"].name == "empty"

    def test_skills_dir_takes_precedence_over_index(self, tmp_path):
        _write_skill(tmp_path / "skills", "one", "# One\n")
        (tmp_path / "README.md").write_text(INDEX)
        parser = SkillParser(fetcher=MagicMock())
        skills = parser.parse_source(tmp_path, SkillOrigin.REPOSITORY)
        assert [s.id for s in skills] == ["one"]
        parser._fetcher.fetch_first.assert_not_called()

    def test_empty_source(self, tmp_path):
        assert SkillParser().parse_source(tmp_path, SkillOrigin.LOCAL) == []


class TestParseIndex:
    def test_fetches_remote_documents_and_stubs_failures(self, tmp_path):
        (tmp_path / "README.md").write_text(INDEX)
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            if str(request.url).endswith("/skills/docx/README.md"):
                return httpx.Response(200, text="# DOCX\n\nWord files.\n")
            return httpx.Response(404)

        parser = SkillParser(fetcher=_fetcher(handler))
        skills = parser.parse_source(tmp_path, SkillOrigin.REPOSITORY)

        by_id = {s.id: s for s in skills}
        assert set(by_id) == {"docx", "pdf-tools"}
        docx = by_id["docx"]
        assert docx.name == "DOCX"
        assert docx.description == "Word files."
        assert docx.metadata.source_org == "anthropics"
        assert docx.source_path == "https://github.com/anthropics/skills/tree/main/skills/docx"

        stub = by_id["pdf-tools"]
        assert stub.description == "Work with PDFs"
        assert "Please visit the source repository" in stub.content

        # SKILL.md is tried before README.md, and the link's ref is used
        assert requested[0] == (
            "https://raw.githubusercontent.com/anthropics/skills/main/skills/docx/SKILL.md"
        )
        assert any("/acme/tools/v2/pdf-tools/" in url for url in requested)

    def test_transport_error_yields_stub(self, tmp_path):
        (tmp_path / "README.md").write_text(INDEX)

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        parser = SkillParser(fetcher=_fetcher(handler))
        skills = parser.parse_index(tmp_path / "README.md", SkillOrigin.REPOSITORY)
        assert len(skills) == 2
        assert all("This skill is available at" in s.content for s in skills)

    def test_stub_link_fields(self):
        link = SkillLink(
            name="org/x",
            url="https://github.com/org/repo/tree/main/x",
            org="org",
            repo="repo",
            ref="main",
            path="x",
            description="Does x",
        )
        assert create_stub_skill(link, SkillOrigin.LOCAL).source == SkillOrigin.LOCAL


class TestOverrides:
    def _write(self, path: Path, data) -> Path:
        path.write_text(json.dumps(data))
        return path

    def test_missing_file(self, tmp_path):
        assert SkillParser().load_overrides(tmp_path / "none.json") == 0

    def test_keys_are_normalized(self, tmp_path):
        parser = SkillParser()
        count = parser.load_overrides(self._write(tmp_path / "o.json", {"My Skill": {"name": "N"}}))
        assert count == 1
        assert "my-skill" in parser.overrides

    def test_non_object_file_ignored(self, tmp_path):
        parser = SkillParser()
        assert parser.load_overrides(self._write(tmp_path / "o.json", ["x"])) == 0

    def test_malformed_json_ignored(self, tmp_path):
        path = tmp_path / "o.json"
        path.write_text("{not json")
        assert SkillParser().load_overrides(path) == 0

    def test_overrides_applied_to_parsed_skill(self, tmp_path):
        _write_skill(tmp_path / "skills", "greeting", GREETING_SKILL)
        overrides = {
            "greeting": {
                "description": "Overridden",
                "parameters": [{"name": "who", "type": "string", "required": True}],
                "metadata": {"author": "Ops"},
                "bogus": 1,
            }
        }
        parser = SkillParser()
        parser.load_overrides(self._write(tmp_path / "o.json", overrides))
        (skill,) = parser.parse_source(tmp_path, SkillOrigin.LOCAL)

        assert skill.description == "Overridden"
        assert skill.name == "Greeting"
        assert [p.name for p in skill.parameters] == ["who"]
        assert skill.metadata.author == "Ops"

    def test_invalid_override_value_skipped(self, tmp_path):
        _write_skill(tmp_path / "skills", "greeting", GREETING_SKILL)
        parser = SkillParser()
        parser.load_overrides(
            self._write(
                tmp_path / "o.json",
                {"greeting": {"parameters": [{"name": "bad name"}], "name": 5}},
            )
        )
        (skill,) = parser.parse_source(tmp_path, SkillOrigin.LOCAL)
        assert skill.name == "Greeting"
        assert [p.name for p in skill.parameters] == ["name", "excited"]
