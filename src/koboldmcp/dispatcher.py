"""Turn one tool invocation into one outbound KoboldAI call.

The chat tool is the only stateful path: caller messages are merged into a
:class:`~koboldmcp.state.ChatTranscript` and the *whole* transcript is sent,
giving the stateless ``/v1/chat/completions`` endpoint conversational memory.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from .catalog import lookup
from .client import KoboldClient
from .config import DEFAULT_API_URL
from .errors import DispatchError, InvalidArguments, UnknownTool
from .state import ChatTranscript, ChatTurn

log = logging.getLogger("koboldmcp.dispatcher")

# Number of trailing turns echoed to the debug log on each chat call.
_LOG_TAIL = 4


@dataclass(frozen=True)
class ToolResult:
    ok: bool
    payload: Any = None
    error: str | None = None
    kind: str | None = None

    @classmethod
    def success(cls, payload: Any) -> "ToolResult":
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, exc: DispatchError) -> "ToolResult":
        return cls(ok=False, error=str(exc), kind=exc.kind)

    def content_blocks(self) -> list[dict[str, Any]]:
        if self.ok:
            return [{"type": "text", "text": json.dumps(self.payload, indent=2)}]
        return [{"type": "text", "text": f"Error: {self.error}"}]


class Dispatcher:
    def __init__(
        self,
        transcript: ChatTranscript,
        client: KoboldClient | None = None,
        default_base_url: str = DEFAULT_API_URL,
    ) -> None:
        self.transcript = transcript
        self.client = client or KoboldClient()
        self.default_base_url = default_base_url.rstrip("/")

    async def invoke(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
        try:
            payload = await self._dispatch(name, dict(arguments or {}))
        except DispatchError as exc:
            log.warning("%s failed (%s): %s", name, exc.kind, exc)
            return ToolResult.failure(exc)
        return ToolResult.success(payload)

    async def _dispatch(self, name: str, arguments: dict[str, Any]) -> Any:
        definition = lookup(name)
        if definition is None:
            raise UnknownTool(name)

        # GET routes carry no body, so only POST arguments are shape-checked.
        if definition.method == "POST":
            problems = definition.validate(arguments)
            if problems:
                raise InvalidArguments(name, problems)
        base_url = arguments.pop("apiUrl", None)
        if base_url is None:
            base_url = self.default_base_url
        elif not isinstance(base_url, str):
            raise InvalidArguments(name, ["apiUrl: Input should be a valid string"])
        elif not base_url.strip():
            raise InvalidArguments(name, ["apiUrl: String should not be empty"])
        url = base_url.strip().rstrip("/") + definition.endpoint

        if definition.conversational:
            return await self._chat(url, arguments)
        if definition.method == "GET":
            return await self.client.request("GET", url)
        return await self.client.request("POST", url, arguments)

    async def _chat(self, url: str, payload: dict[str, Any]) -> Any:
        incoming = [ChatTurn.from_dict(m) for m in payload.get("messages") or []]
        async with self.transcript.lock:
            mark = self.transcript.snapshot()
            self.transcript.extend(incoming)
            if log.isEnabledFor(logging.DEBUG):
                recent = [t.as_chat_dict() for t in self.transcript.tail(_LOG_TAIL)]
                log.debug("Last %d messages in chat:\n%s", len(recent), json.dumps(recent, indent=2))
            try:
                result = await self.client.request(
                    "POST", url, {**payload, "messages": self.transcript.as_messages()}
                )
            except BaseException:
                self.transcript.restore(mark)
                raise
            reply = _assistant_message(result)
            if reply is not None:
                self.transcript.append(ChatTurn.from_dict(reply))
        return result


def _assistant_message(result: Any) -> dict[str, Any] | None:
    if not isinstance(result, dict):
        return None
    choices = result.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    return message if isinstance(message, dict) and message else None
