from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .catalog import CATALOG
from .config import CONFIG_PATH, configure_logging, load_config
from .mcp_server import configure as configure_server
from .mcp_server import main as mcp_main


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="koboldmcp",
        description="MCP server exposing the KoboldAI / KoboldCpp API as tools.",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the MCP server over stdio (default when no command is given).",
    )
    _add_server_options(serve_parser)
    _add_server_options(parser)

    subparsers.add_parser("tools", help="List the exposed tools and their KoboldAI routes")

    return parser


def _add_server_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--api-url", help="Default KoboldAI base URL (per-call apiUrl still wins)")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds (default: none)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Log level for stderr output",
    )
    parser.add_argument("--config", type=Path, default=CONFIG_PATH, help="Path to config.yml")


def serve_command(args: argparse.Namespace) -> None:
    cfg = load_config(getattr(args, "config", None) or CONFIG_PATH)
    configure_logging(getattr(args, "log_level", None) or cfg["log_level"])
    timeout = getattr(args, "timeout", None)
    configure_server(
        api_url=getattr(args, "api_url", None) or cfg["api_url"],
        timeout=timeout if timeout and timeout > 0 else cfg["timeout"],
    )
    mcp_main()


def tools_command() -> int:
    for definition in CATALOG.values():
        print(f"{definition.name.value:<34} {definition.method:<4} {definition.endpoint}")
        print(f"    {definition.description}")
    return 0


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    if args.command in (None, "serve"):
        serve_command(args)
        return
    if args.command == "tools":
        sys.exit(tools_command())
    parser.print_help()
    sys.exit(2)


if __name__ == "__main__":
    main()
