"""
REST HTTP transport for the Live Agent chat API.

Executes one request and returns ``(status_code, body)``. Only failures below
the application layer raise; status codes are classified by the caller.
"""

import logging
from typing import Any, Optional

import httpx

from liveagent.errors import TransportFailure

logger = logging.getLogger(__name__)

USER_AGENT = "liveagent-sdk/0.1.0"


class Header:
    API_VERSION = "X-LIVEAGENT-API-VERSION"
    AFFINITY = "X-LIVEAGENT-AFFINITY"
    SESSION_KEY = "X-LIVEAGENT-SESSION-KEY"
    SEQUENCE = "X-LIVEAGENT-SEQUENCE"


class HttpClient:
    def __init__(
        self,
        host: str,
        version: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._host = host.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._host,
            headers={
                Header.API_VERSION: version,
                "User-Agent": USER_AGENT,
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        body: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> tuple[int, Any]:
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if body is not None:
            kwargs["json"] = body
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise TransportFailure(
                f"{method} {path} failed: {e!r}", details={"exception": type(e).__name__},
            ) from e
        logger.debug("%s %s -> %s", method, path, resp.status_code)
        return resp.status_code, self._decode(resp)

    async def close(self) -> None:
        await self._client.aclose()
