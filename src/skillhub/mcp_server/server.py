"""MCP stdio server exposing list_skills, get_skill, invoke_skill and refresh_skills."""

from __future__ import annotations

import json
import logging
from typing import Any

import anyio
import anyio.to_thread
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.stdio import stdio_server

from skillhub import __version__
from skillhub.config import Settings, load_settings
from skillhub.logging_config import configure_logging
from skillhub.service import SkillService, error_payload
from skillhub.skills.models import ErrorCode

logger = logging.getLogger(__name__)

SERVER_NAME = "skillhub"

LIST_SKILLS_SCHEMA = {
    "type": "object",
    "properties": {
        "filter": {
            "type": "string",
            "description": "Optional filter to search skills by name or description",
        },
        "source": {
            "type": "string",
            "enum": ["all", "repository", "local"],
            "description": "Filter by skill source",
            "default": "all",
        },
    },
}

GET_SKILL_SCHEMA = {
    "type": "object",
    "properties": {
        "skill_id": {"type": "string", "description": "Unique identifier of the skill"},
    },
    "required": ["skill_id"],
}

INVOKE_SKILL_SCHEMA = {
    "type": "object",
    "properties": {
        "skill_id": {
            "type": "string",
            "description": "Unique identifier of the skill to invoke",
        },
        "parameters": {
            "type": "object",
            "description": "Parameters to pass to the skill",
            "additionalProperties": True,
        },
    },
    "required": ["skill_id"],
}

REFRESH_SKILLS_SCHEMA = {
    "type": "object",
    "properties": {},
}


class ToolFailure(Exception):
    """Carries a structured error payload; the MCP layer reports it with isError set."""

    def __init__(self, payload: dict[str, Any]) -> None:
        super().__init__(json.dumps(payload, indent=2))
        self.payload = payload


def _is_failure(payload: dict[str, Any]) -> bool:
    return payload.get("success") is False


def create_mcp_server(service: SkillService) -> Server:
    """Create and configure the MCP server with the four skill tools."""
    server = Server(SERVER_NAME, __version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name="list_skills",
                description="List all available agent skills that can be invoked",
                inputSchema=LIST_SKILLS_SCHEMA,
                annotations=types.ToolAnnotations(readOnlyHint=True, openWorldHint=False),
            ),
            types.Tool(
                name="get_skill",
                description="Get detailed information and documentation for a specific skill",
                inputSchema=GET_SKILL_SCHEMA,
                annotations=types.ToolAnnotations(readOnlyHint=True, openWorldHint=False),
            ),
            types.Tool(
                name="invoke_skill",
                description="Invoke a skill with parameters to get formatted instructions",
                inputSchema=INVOKE_SKILL_SCHEMA,
                annotations=types.ToolAnnotations(readOnlyHint=False, openWorldHint=False),
            ),
            types.Tool(
                name="refresh_skills",
                description="Manually trigger a refresh of skills from the repository",
                inputSchema=REFRESH_SKILLS_SCHEMA,
                annotations=types.ToolAnnotations(
                    readOnlyHint=False,
                    destructiveHint=False,
                    idempotentHint=True,
                    openWorldHint=False,
                ),
            ),
        ]

    # Arguments are validated by the service; failures keep the skill error shape
    @server.call_tool(validate_input=False)
    async def call_tool(
        name: str,
        arguments: dict | None,
    ) -> list[types.TextContent]:
        args = arguments or {}
        logger.debug(f"Tool called: {name}")
        try:
            if name == "list_skills":
                result = service.list_skills_payload(args.get("filter"), args.get("source"))
            elif name == "get_skill":
                result = service.get_skill_payload(args.get("skill_id"))
            elif name == "invoke_skill":
                result = service.invoke_skill_payload(
                    args.get("skill_id"),
                    args.get("parameters"),
                )
            elif name == "refresh_skills":
                result = await anyio.to_thread.run_sync(service.refresh_payload)
            else:
                result = error_payload(ErrorCode.EXECUTION_ERROR, f"Unknown tool: {name}")
        except Exception as e:
            logger.exception(f"Error handling tool {name}")
            result = error_payload(ErrorCode.INTERNAL_ERROR, str(e))

        if _is_failure(result):
            raise ToolFailure(result)
        return [types.TextContent(type="text", text=json.dumps(result, indent=2))]

    return server


async def run_mcp_server(settings: Settings | None = None) -> None:
    """Start the skill service and serve MCP over stdio until the client disconnects."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    service = SkillService(settings)
    try:
        await anyio.to_thread.run_sync(service.start)
        service.start_auto_sync()
        logger.info(f"Serving {service.registry.skill_count()} skills over MCP stdio")

        server = create_mcp_server(service)
        async with stdio_server() as (read_stream, write_stream):
            init_options = server.create_initialization_options(
                notification_options=NotificationOptions(tools_changed=True),
            )
            await server.run(read_stream, write_stream, init_options)
    finally:
        service.close()
        logger.info("Shutting down skillhub MCP server")


def main() -> None:
    anyio.run(run_mcp_server)
