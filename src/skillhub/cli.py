"""CLI entry point for skillhub."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import cast

import anyio

from skillhub import __version__
from skillhub.config import Settings, load_settings
from skillhub.logging_config import configure_logging
from skillhub.mcp_server.server import run_mcp_server
from skillhub.server.runner import run_server
from skillhub.service import SkillService


def _settings(args: argparse.Namespace) -> Settings:
    config_path = cast(Path | None, args.config)
    settings = load_settings(config_path)
    configure_logging(settings.log_level)
    return settings


def _cmd_mcp_serve(args: argparse.Namespace) -> None:
    anyio.run(run_mcp_server, load_settings(cast(Path | None, args.config)))


def _cmd_serve(args: argparse.Namespace) -> None:
    settings = _settings(args)
    port = cast(int | None, args.port)
    if port is not None:
        settings.port = port
    run_server(settings, host=cast(str, args.host))


def _cmd_sync(args: argparse.Namespace) -> None:
    service = SkillService(_settings(args))
    try:
        result = service.start()
    finally:
        service.close()

    if result.success:
        print(f"{result.message} ({service.registry.skill_count()} skills)")
    else:
        print(f"Error: {result.message}", file=sys.stderr)
        sys.exit(1)


def _cmd_list(args: argparse.Namespace) -> None:
    service = SkillService(_settings(args))
    service.load_cache()
    payload = service.list_skills_payload(
        cast(str | None, args.filter),
        cast(str, args.source),
    )
    if args.json:
        print(json.dumps(payload, indent=2))
        return

    if not payload["skills"]:
        print("No skills cached. Run `skillhub sync` first.")
        return
    for skill in payload["skills"]:
        print(f"{skill['id']:<40} [{skill['source']}] {skill['description']}")
    print(f"\n{payload['total']} skills")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="skillhub",
        description="Serve agent skills from a git repository over MCP and HTTP",
    )
    _ = parser.add_argument(
        "-V", "--version", action="version", version=f"skillhub {__version__}"
    )
    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON settings file with a 'skillhub' section",
    )
    subparsers = parser.add_subparsers(dest="command")

    # mcp-serve subcommand
    _ = subparsers.add_parser("mcp-serve", help="Start the MCP stdio server")

    # serve subcommand
    serve_p = subparsers.add_parser("serve", help="Start the HTTP API server")
    _ = serve_p.add_argument("--host", default="127.0.0.1", help="Bind address")
    _ = serve_p.add_argument("--port", type=int, default=None, help="Override SKILLS_PORT")

    # sync subcommand
    _ = subparsers.add_parser("sync", help="Clone or update the skills repository and re-index")

    # list subcommand
    list_p = subparsers.add_parser("list", help="List cached skills")
    _ = list_p.add_argument("--filter", default=None, help="Match name, description or id")
    _ = list_p.add_argument(
        "--source",
        choices=["all", "repository", "local"],
        default="all",
    )
    _ = list_p.add_argument("--json", action="store_true", help="Print the raw JSON payload")

    args = parser.parse_args()
    dispatch = {
        "mcp-serve": _cmd_mcp_serve,
        "serve": _cmd_serve,
        "sync": _cmd_sync,
        "list": _cmd_list,
    }
    command = cast(str | None, args.command)
    handler = dispatch.get(command) if command is not None else None
    if handler:
        handler(args)
    else:
        parser.print_help()
        sys.exit(1)
