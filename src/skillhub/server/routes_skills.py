"""Skill routes: list, get, invoke, refresh, plus a health check."""

from __future__ import annotations

import json

import anyio.to_thread
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from skillhub.service import error_payload
from skillhub.skills.models import ErrorCode

_ERROR_STATUS = {
    ErrorCode.INVALID_PARAMS: 400,
    ErrorCode.SKILL_NOT_FOUND: 404,
    ErrorCode.REPOSITORY_ERROR: 502,
    ErrorCode.EXECUTION_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def _respond(payload: dict) -> JSONResponse:
    if payload.get("success") is False and "error" in payload:
        status = _ERROR_STATUS.get(payload["error"].get("code"), 500)
        return JSONResponse(payload, status_code=status)
    return JSONResponse(payload)


async def health(request: Request) -> JSONResponse:
    """GET /health: liveness plus the current skill count."""
    return JSONResponse(request.app.state.service.health_payload())


async def list_skills(request: Request) -> JSONResponse:
    """GET /api/skills: list skills, optionally filtered by text and source."""
    service = request.app.state.service
    payload = service.list_skills_payload(
        request.query_params.get("filter"),
        request.query_params.get("source"),
    )
    return JSONResponse(payload)


async def get_skill(request: Request) -> JSONResponse:
    """GET /api/skills/{skill_id}: full skill record including content."""
    service = request.app.state.service
    return _respond(service.get_skill_payload(request.path_params["skill_id"]))


async def invoke_skill(request: Request) -> JSONResponse:
    """POST /api/skills/{skill_id}/invoke: render the skill with the given parameters."""
    service = request.app.state.service
    body: dict = {}
    raw = await request.body()
    if raw:
        try:
            body = json.loads(raw)
        except json.JSONDecodeError:
            return _respond(error_payload(ErrorCode.INVALID_PARAMS, "Invalid JSON body"))
        if not isinstance(body, dict):
            return _respond(error_payload(ErrorCode.INVALID_PARAMS, "Body must be a JSON object"))
    payload = service.invoke_skill_payload(
        request.path_params["skill_id"],
        body.get("parameters"),
    )
    return _respond(payload)


async def refresh_skills(request: Request) -> JSONResponse:
    """POST /api/skills/refresh: sync the repository and re-ingest on change."""
    service = request.app.state.service
    payload = await anyio.to_thread.run_sync(service.refresh_payload)
    return JSONResponse(payload, status_code=200 if payload["success"] else 502)


routes = [
    Route("/health", health, methods=["GET"]),
    Route("/api/skills", list_skills, methods=["GET"]),
    Route("/api/skills/refresh", refresh_skills, methods=["POST"]),
    Route("/api/skills/{skill_id}", get_skill, methods=["GET"]),
    Route("/api/skills/{skill_id}/invoke", invoke_skill, methods=["POST"]),
]
