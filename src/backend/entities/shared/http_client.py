"""
Shared HTTP client for API call workflow nodes.

Wraps ``httpx.AsyncClient`` behind the ``HttpCaller`` protocol. Transport
errors propagate to the caller; only the response status and body text are
returned.
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


def parse_headers(text: str | None) -> dict[str, str]:
    """Parse newline-separated ``Name: value`` header lines.

    Each line is split on its first colon and both sides are trimmed.
    Blank lines and lines without a colon are ignored.

    Args:
        text: Raw header block from the node settings.

    Returns:
        Header name → value mapping (later duplicates win).
    """
    headers: dict[str, str] = {}
    if not text:
        return headers
    for line in text.splitlines():
        name, sep, value = line.partition(":")
        name = name.strip()
        if not sep or not name:
            continue
        headers[name] = value.strip()
    return headers


class HttpxCaller:
    """``HttpCaller`` backed by ``httpx``.

    Args:
        timeout: Request timeout in seconds (``None`` → no timeout).
        transport: Optional transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        timeout: float | None = 100.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def call(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str | None,
    ) -> dict[str, Any]:
        """Send one request and return ``{"statusCode", "content"}``.

        A non-empty body is sent as ``application/json`` unless the node
        supplied its own ``Content-Type``.
        """
        request_headers = dict(headers)
        content: bytes | None = None
        if body:
            content = body.encode("utf-8")
            if not any(name.lower() == "content-type" for name in request_headers):
                request_headers["Content-Type"] = "application/json"

        logger.info("API call: %s %s", method, url)
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.request(method, url, headers=request_headers, content=content)

        logger.info("API call finished: %s %s -> %d", method, url, response.status_code)
        return {"statusCode": response.status_code, "content": response.text}
