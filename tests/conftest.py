"""Shared fixtures: a scripted in-process Live Agent server on httpx.MockTransport."""

import asyncio
import json
from collections import defaultdict
from typing import Any, Optional

import httpx
import pytest

from liveagent import Config
from liveagent.api import LiveAgentAPI
from liveagent.models.requests import ChasitorInit
from liveagent.state import SessionState
from liveagent.transport.http import HttpClient

SESSION_BODY = {"id": "S1", "key": "K1", "affinityToken": "A1", "clientPollTimeout": 40}


class FakeLiveAgent:
    """Replies from per-resource scripts; Messages requests block until a poll is pushed."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.scripts: dict[str, list[tuple[int, Any]]] = defaultdict(list)
        self.polls: asyncio.Queue[tuple[int, Any]] = asyncio.Queue()
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    def reply(self, resource: str, status: int = 200, body: Any = None) -> None:
        self.scripts[resource].append((status, body))

    def push_poll(self, status: int = 200, body: Any = None) -> None:
        self.polls.put_nowait((status, body))

    def calls(self, resource: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.rsplit("/", 1)[-1] == resource]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        resource = request.url.path.rsplit("/", 1)[-1]
        if resource == "Messages":
            status, body = await self.polls.get()
        else:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                if self.delay:
                    await asyncio.sleep(self.delay)
            finally:
                self.in_flight -= 1
            if self.scripts[resource]:
                status, body = self.scripts[resource].pop(0)
            elif resource == "SessionId":
                status, body = 200, SESSION_BODY
            else:
                status, body = 200, None
        if body is None:
            return httpx.Response(status)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def body_of(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


def poll_body(*events: dict[str, Any], sequence: Optional[int] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"messages": list(events)}
    if sequence is not None:
        body["sequence"] = sequence
    return body


def message(type: str, **fields: Any) -> dict[str, Any]:
    return {"type": type, "message": fields}


async def next_event(subscription, timeout: float = 1.0):
    return await asyncio.wait_for(subscription.__anext__(), timeout)


async def drain(subscription, timeout: float = 1.0) -> list:
    async def collect() -> list:
        return [event async for event in subscription]
    return await asyncio.wait_for(collect(), timeout)


async def until(predicate, timeout: float = 1.0) -> None:
    async def spin() -> None:
        while not predicate():
            await asyncio.sleep(0)
    await asyncio.wait_for(spin(), timeout)


@pytest.fixture
def config() -> Config:
    return Config(
        host="https://d.la1-c1-ia2.salesforceliveagent.com",
        organization_id="00D000000000001",
        deployment_id="572000000000001",
        button_id="573000000000001",
    )


@pytest.fixture
def visitor() -> ChasitorInit:
    return ChasitorInit(visitor_name="Blip Blapperton", language="en", user_agent="Test", screen_resolution="1900x1200")


@pytest.fixture
def server() -> FakeLiveAgent:
    return FakeLiveAgent()


@pytest.fixture
def make_api(config: Config, server: FakeLiveAgent):
    def make(**overrides: Any) -> LiveAgentAPI:
        cfg = config.model_copy(update=overrides) if overrides else config
        http = HttpClient(cfg.host, cfg.version.value, transport=server.transport)
        return LiveAgentAPI(cfg, SessionState(), http)
    return make
