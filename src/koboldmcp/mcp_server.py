"""
MCP (Model Context Protocol) server for koboldmcp.

Exposes the KoboldAI / KoboldCpp HTTP API (text generation, Stable Diffusion,
Whisper transcription, TTS, web search and the OpenAI-compatible endpoints)
as MCP tools that any MCP-compatible client (Claude Desktop, LM Studio, etc.)
can call.

Protocol: JSON-RPC 2.0 over stdio (one JSON object per line).  Logging goes
to stderr so it never interleaves with protocol frames.

Usage
-----
Run directly:
    python -m koboldmcp.mcp_server

Or via the CLI:
    koboldmcp serve --api-url http://localhost:5001

Claude Desktop claude_desktop_config.json entry
-----------------------------------------------
{
  "mcpServers": {
    "kobold": {
      "command": "koboldmcp",
      "args": ["serve"],
      "env": {"KOBOLD_API_URL": "http://localhost:5001"}
    }
  }
}
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

from .catalog import list_tools
from .client import KoboldClient
from .config import CONFIG_PATH, DEFAULT_API_URL, configure_logging, load_config
from .dispatcher import Dispatcher
from .state import ChatTranscript

log = logging.getLogger("koboldmcp.server")

SERVER_NAME = "kobold-server"
SERVER_VERSION = "0.1.0"
_PROTOCOL_VERSIONS = {"2024-11-05", "2025-03-26", "2025-06-18"}

_MAX_LINE_BYTES = 64 * 1024 * 1024

_dispatcher: Dispatcher | None = None


def _get_dispatcher() -> Dispatcher:
    global _dispatcher
    if _dispatcher is None:
        cfg = load_config(CONFIG_PATH)
        _dispatcher = Dispatcher(
            ChatTranscript(), KoboldClient(timeout=cfg["timeout"]), default_base_url=cfg["api_url"]
        )
    return _dispatcher


def configure(api_url: str = DEFAULT_API_URL, timeout: float | None = None) -> Dispatcher:
    """Replace the process dispatcher (and with it, the chat transcript)."""
    global _dispatcher
    _dispatcher = Dispatcher(ChatTranscript(), KoboldClient(timeout=timeout), default_base_url=api_url)
    return _dispatcher


async def _call_tool(name: str, arguments: dict[str, Any]) -> tuple[list[dict[str, Any]], bool]:
    try:
        result = await _get_dispatcher().invoke(name, arguments)
    except Exception as exc:
        log.exception("Unhandled error in tool %s", name)
        return [{"type": "text", "text": f"Error: {exc}"}], True
    return result.content_blocks(), not result.ok


# ---------------------------------------------------------------------------
# JSON-RPC 2.0 helpers
# ---------------------------------------------------------------------------

def _ok(request_id: Any, result: Any) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _err(request_id: Any, code: int, message: str) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def _write(obj: dict) -> None:
    sys.stdout.write(json.dumps(obj) + "\n")
    sys.stdout.flush()


# ---------------------------------------------------------------------------
# Main request handler
# ---------------------------------------------------------------------------

async def _handle(line: str) -> None:
    try:
        req = json.loads(line)
    except json.JSONDecodeError:
        _write(_err(None, -32700, "Parse error"))
        return
    if not isinstance(req, dict):
        _write(_err(None, -32600, "Invalid Request"))
        return

    req_id = req.get("id")
    method = req.get("method", "")
    params = req.get("params") or {}
    if not isinstance(params, dict):
        params = {}

    if method == "initialize":
        client_ver = params.get("protocolVersion", "2024-11-05")
        agreed_ver = client_ver if client_ver in _PROTOCOL_VERSIONS else "2024-11-05"
        _write(_ok(req_id, {
            "protocolVersion": agreed_ver,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": SERVER_NAME,
                "version": SERVER_VERSION,
            },
        }))

    elif method in {"notifications/initialized", "initialized"}:
        # Notification: no response needed
        pass

    elif method == "tools/list":
        _write(_ok(req_id, {"tools": list_tools()}))

    elif method == "tools/call":
        tool_name = params.get("name", "")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            _write(_err(req_id, -32602, "Invalid params: 'arguments' must be an object"))
            return
        content_blocks, is_error = await _call_tool(str(tool_name), arguments)
        _write(_ok(req_id, {
            "content": content_blocks,
            "isError": is_error,
        }))

    elif method == "ping":
        _write(_ok(req_id, {}))

    else:
        if req_id is not None:
            _write(_err(req_id, -32601, f"Method not found: {method}"))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def _run() -> None:
    loop = asyncio.get_running_loop()
    # Base64 image and audio payloads arrive on a single line.
    reader = asyncio.StreamReader(limit=_MAX_LINE_BYTES)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    log.info("KoboldAI MCP server running on stdio")

    while True:
        line_bytes = await reader.readline()
        if not line_bytes:
            break
        line = line_bytes.decode(errors="replace").strip()
        if line:
            await _handle(line)


def main() -> None:
    configure_logging(load_config(CONFIG_PATH)["log_level"])
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass
    except Exception:
        log.exception("Fatal error running server")
        sys.exit(1)


if __name__ == "__main__":
    main()
