from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import UpstreamError

log = logging.getLogger("koboldmcp.client")


class KoboldClient:
    """One-shot HTTP calls against a KoboldAI-compatible server.

    Parameters
    ----------
    timeout:
        Seconds before a request is abandoned.  ``None`` (the default) waits
        indefinitely, since long generations are normal.
    transport:
        Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self._transport = transport

    async def request(self, method: str, url: str, body: dict[str, Any] | None = None) -> Any:
        kwargs: dict[str, Any] = {}
        if body is not None and method != "GET":
            kwargs["json"] = body
        log.debug("%s %s", method, url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamError(f"KoboldAI API error: {exc}") from exc
        if not response.is_success:
            raise UpstreamError(
                f"KoboldAI API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"KoboldAI API error: non-JSON response from {url}",
                status_code=response.status_code,
            ) from exc
