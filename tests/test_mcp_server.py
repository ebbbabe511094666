"""Tests for the MCP stdio server tool handlers."""

import contextlib
import json
from unittest.mock import MagicMock, patch

import mcp.types as types
import pytest

from skillhub.mcp_server.server import create_mcp_server
from skillhub.service import SkillService
from skillhub.skills.models import Skill, SkillOrigin, SyncResult
from skillhub.sync.git_sync import GitSyncService


def _make_skill(
    skill_id: str,
    *,
    name: str | None = None,
    source: SkillOrigin = SkillOrigin.REPOSITORY,
) -> Skill:
    return Skill(id=skill_id, name=name or skill_id, source=source)


@pytest.fixture
def git_sync(tmp_path) -> MagicMock:
    sync = MagicMock(spec=GitSyncService)
    sync.repo_dir = tmp_path / "repo"
    sync.has_working_copy.return_value = False
    sync.exclusive.side_effect = contextlib.nullcontext
    sync.sync.return_value = SyncResult(success=True, message="Repository is up to date")
    return sync


@pytest.fixture
def service(settings, git_sync, greet_skill) -> SkillService:
    svc = SkillService(settings, git_sync=git_sync)
    svc.load_cache()
    svc.registry.register_skill(greet_skill)
    svc.registry.register_skill(_make_skill("notes", name="Notes", source=SkillOrigin.LOCAL))
    return svc


async def _call(server, name: str, arguments: dict | None = None):
    result = await server.request_handlers[types.CallToolRequest](
        types.CallToolRequest(
            method="tools/call",
            params=types.CallToolRequestParams(name=name, arguments=arguments),
        )
    )
    return result.root


def _payload(result) -> dict:
    return json.loads(result.content[0].text)


class TestListTools:
    @pytest.mark.asyncio
    async def test_four_tools(self, service):
        server = create_mcp_server(service)
        result = await server.request_handlers[types.ListToolsRequest](
            types.ListToolsRequest(method="tools/list")
        )
        names = [t.name for t in result.root.tools]
        assert names == ["list_skills", "get_skill", "invoke_skill", "refresh_skills"]

    @pytest.mark.asyncio
    async def test_schemas(self, service):
        server = create_mcp_server(service)
        result = await server.request_handlers[types.ListToolsRequest](
            types.ListToolsRequest(method="tools/list")
        )
        tools = {t.name: t for t in result.root.tools}
        assert tools["get_skill"].inputSchema["required"] == ["skill_id"]
        assert tools["invoke_skill"].inputSchema["required"] == ["skill_id"]
        assert tools["list_skills"].inputSchema["properties"]["source"]["enum"] == [
            "all",
            "repository",
            "local",
        ]
        for tool in tools.values():
            assert tool.inputSchema["type"] == "object"
            assert tool.description


class TestCallTool:
    @pytest.mark.asyncio
    async def test_list_skills(self, service):
        result = await _call(create_mcp_server(service), "list_skills", {"source": "local"})
        assert not result.isError
        payload = _payload(result)
        assert payload["total"] == 1
        assert payload["skills"][0]["id"] == "notes"

    @pytest.mark.asyncio
    async def test_list_skills_without_arguments(self, service):
        payload = _payload(await _call(create_mcp_server(service), "list_skills"))
        assert {s["id"] for s in payload["skills"]} == {"greet", "notes"}

    @pytest.mark.asyncio
    async def test_get_skill(self, service):
        result = await _call(create_mcp_server(service), "get_skill", {"skill_id": "greet"})
        payload = _payload(result)
        assert payload["name"] == "Greet"
        assert payload["content"] == "Hello, {{name}}! Excited: ${excited}"

    @pytest.mark.asyncio
    async def test_get_skill_missing_id_is_invalid_params(self, service):
        result = await _call(create_mcp_server(service), "get_skill", {})
        assert result.isError
        assert _payload(result)["error"]["code"] == "InvalidParams"

    @pytest.mark.asyncio
    async def test_get_skill_unknown(self, service):
        result = await _call(create_mcp_server(service), "get_skill", {"skill_id": "nope"})
        assert result.isError
        assert _payload(result)["error"]["code"] == "SkillNotFound"

    @pytest.mark.asyncio
    async def test_invoke_skill(self, service):
        result = await _call(
            create_mcp_server(service),
            "invoke_skill",
            {"skill_id": "greet", "parameters": {"name": "Ada"}},
        )
        assert not result.isError
        payload = _payload(result)
        assert payload["success"] is True
        assert payload["content"].startswith("Hello, Ada!")

    @pytest.mark.asyncio
    async def test_invoke_skill_validation_failure(self, service):
        result = await _call(
            create_mcp_server(service),
            "invoke_skill",
            {"skill_id": "greet", "parameters": {"excited": "yes"}},
        )
        assert result.isError
        error = _payload(result)["error"]
        assert error["code"] == "InvalidParams"
        assert "Missing required parameter: name" in error["details"]["errors"]

    @pytest.mark.asyncio
    async def test_refresh_skills(self, service, git_sync):
        result = await _call(create_mcp_server(service), "refresh_skills", {})
        assert not result.isError
        payload = _payload(result)
        assert payload["success"] is True
        assert payload["message"] == "No changes detected"
        git_sync.sync.assert_called_once()

    @pytest.mark.asyncio
    async def test_unknown_tool(self, service):
        result = await _call(create_mcp_server(service), "delete_everything", {})
        assert result.isError
        error = _payload(result)["error"]
        assert error["code"] == "ExecutionError"
        assert error["message"] == "Unknown tool: delete_everything"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_internal_error(self, service):
        with patch.object(service, "list_skills_payload", side_effect=RuntimeError("kaput")):
            result = await _call(create_mcp_server(service), "list_skills", {})
        assert result.isError
        assert _payload(result)["error"] == {"code": "InternalError", "message": "kaput"}
