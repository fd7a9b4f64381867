"""
Outbound dispatcher: the Live Agent REST call surface for one chat session.

Every call is declared with an ``Endpoint`` that fixes its kind:

- ``UNSCOPED``   no session headers, runs outside the queue
- ``SESSION``    needs an established session, runs through the queue
- ``SEQUENCED``  as SESSION, and consumes one outbound sequence number on success

Session-scoped calls share one FIFO queue so at most one of them is in flight
and each sees a consistent snapshot of the session headers. The Messages
long-poll is session-scoped but runs outside the queue; it is owned by the poll
loop. All network calls run inside a shared ``CancelScope``.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from liveagent.config import Config
from liveagent.errors import (
    AffinityRotated,
    ChatCancelled,
    LiveAgentError,
    ProtocolError,
    ResyncRequired,
    SessionNotEstablished,
    error_for_status,
)
from liveagent.models.events import Envelope, Event, EventTag, parse_envelope
from liveagent.models.requests import ChasitorInit, NounWrapper
from liveagent.models.responses import (
    PollResponse,
    ResyncSessionResponse,
    SessionIdResponse,
    SettingsResponse,
    VisitorIdResponse,
)
from liveagent.state import SessionState
from liveagent.transport.http import Header, HttpClient

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

DEFAULT_POLL_TIMEOUT_S = 40


class CallKind(Enum):
    UNSCOPED = "unscoped"
    SESSION = "session"
    SEQUENCED = "sequenced"


@dataclass(frozen=True)
class Endpoint:
    name: str
    method: str
    path: str
    kind: CallKind
    # Successful tagged results and errors are published on the session bus
    publishes: bool = True
    queued: bool = True
    # A 503 records the call for replay after resync
    replayable: bool = True


AVAILABILITY = Endpoint("Availability", "GET", "/chat/rest/Visitor/Availability", CallKind.UNSCOPED)
BREADCRUMB = Endpoint("Breadcrumb", "POST", "/chat/rest/Visitor/Breadcrumb", CallKind.SESSION)
SESSION_ID = Endpoint("SessionId", "GET", "/chat/rest/System/SessionId", CallKind.UNSCOPED, publishes=False)
CHASITOR_INIT = Endpoint("ChasitorInit", "POST", "/chat/rest/Chasitor/ChasitorInit", CallKind.SEQUENCED)
RESYNC_SESSION = Endpoint(
    "ResyncSession", "GET", "/chat/rest/System/ResyncSession", CallKind.SESSION, replayable=False,
)
CHASITOR_RESYNC_STATE = Endpoint(
    "ChasitorResyncState", "POST", "/chat/rest/Chasitor/ChasitorResyncState", CallKind.SESSION,
    replayable=False,
)
CHASITOR_NOT_TYPING = Endpoint(
    "ChasitorNotTyping", "POST", "/chat/rest/Chasitor/ChasitorNotTyping", CallKind.SEQUENCED,
)
CHASITOR_SNEAK_PEEK = Endpoint(
    "ChasitorSneakPeek", "POST", "/chat/rest/Chasitor/ChasitorSneakPeek", CallKind.SEQUENCED,
)
CHASITOR_TYPING = Endpoint("ChasitorTyping", "POST", "/chat/rest/Chasitor/ChasitorTyping", CallKind.SEQUENCED)
CHAT_END = Endpoint("ChatEnd", "POST", "/chat/rest/Chasitor/ChatEnd", CallKind.SEQUENCED)
CHAT_MESSAGE = Endpoint("ChatMessage", "POST", "/chat/rest/Chasitor/ChatMessage", CallKind.SEQUENCED)
CUSTOM_EVENT = Endpoint("CustomEvent", "POST", "/chat/rest/Chasitor/CustomEvent", CallKind.SEQUENCED)
MESSAGES = Endpoint(
    "Messages", "GET", "/chat/rest/System/Messages", CallKind.SESSION, publishes=False, queued=False,
)
MULTI_NOUN = Endpoint("MultiNoun", "POST", "/chat/rest/System/MultiNoun", CallKind.SEQUENCED)
SETTINGS = Endpoint("Settings", "GET", "/chat/rest/Visitor/Settings", CallKind.UNSCOPED)
VISITOR_ID = Endpoint("VisitorId", "GET", "/chat/rest/Visitor/VisitorId", CallKind.UNSCOPED)


class CancelScope:
    """One cancellation token shared by every network call of a session."""

    def __init__(self) -> None:
        self._cancelled = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        for task in list(self._tasks):
            task.cancel()

    async def run(self, coro: Awaitable[Any]) -> Any:
        if self._cancelled:
            if asyncio.iscoroutine(coro):
                coro.close()
            raise ChatCancelled()
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled and task.cancelled():
                raise ChatCancelled() from None
            raise
        finally:
            self._tasks.discard(task)


def outbound(endpoint: Endpoint) -> Callable:
    """Bind a call to its endpoint; publish its tagged result or its error."""

    def decorate(fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(fn)
        async def wrapper(self: "LiveAgentAPI", *args: Any, **kwargs: Any) -> Any:
            try:
                result = await fn(self, *args, **kwargs)
            except LiveAgentError as e:
                replay = endpoint.replayable and endpoint.kind is not CallKind.UNSCOPED
                if replay and isinstance(e, AffinityRotated):
                    self._pending_replay = functools.partial(wrapper, self, *args, **kwargs)
                if endpoint.publishes:
                    self._emit(e)
                raise
            if endpoint.publishes and isinstance(result, Envelope):
                self._emit(result)
            return result

        wrapper.endpoint = endpoint  # type: ignore[attr-defined]
        return wrapper

    return decorate


class LiveAgentAPI:
    def __init__(
        self,
        config: Config,
        state: Optional[SessionState] = None,
        http: Optional[HttpClient] = None,
        scope: Optional[CancelScope] = None,
        sink: Optional[Callable[[Event], Any]] = None,
    ):
        self._config = config
        self.state = state or SessionState()
        self.http = http or HttpClient(config.host, config.version.value, timeout=config.request_timeout)
        self.scope = scope or CancelScope()
        self._sink = sink
        self._queue = asyncio.Lock()
        self._pending_replay: Optional[Callable[[], Awaitable[Any]]] = None

    def bind(self, sink: Optional[Callable[[Event], Any]]) -> None:
        """Route published results and errors to ``sink`` (the session bus)."""
        self._sink = sink

    def _emit(self, event: Event) -> None:
        if self._sink is not None:
            self._sink(event)

    @property
    def has_pending_replay(self) -> bool:
        return self._pending_replay is not None

    # ------------------------------------------------------------------ core

    def _headers(self, endpoint: Endpoint) -> dict[str, str]:
        if endpoint.kind is CallKind.UNSCOPED:
            return {Header.AFFINITY: "null"}
        headers = {
            Header.AFFINITY: self.state.affinity_token or "null",
            Header.SESSION_KEY: self.state.session_key,
        }
        if endpoint.kind is CallKind.SEQUENCED and self._config.send_sequence_header:
            headers[Header.SEQUENCE] = str(self.state.outbound_sequence)
        return headers

    async def dispatch(
        self,
        endpoint: Endpoint,
        params: Optional[dict[str, Any]] = None,
        body: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send one call and return its decoded body. Raises ``LiveAgentError``."""
        if endpoint.kind is not CallKind.UNSCOPED and not self.state.established:
            raise SessionNotEstablished()
        if isinstance(body, dict) and body.get("visitorName"):
            self.state.visitor.name = body["visitorName"]

        if endpoint.queued and endpoint.kind is not CallKind.UNSCOPED:
            async with self._queue:
                return await self._send(endpoint, params, body, timeout)
        return await self._send(endpoint, params, body, timeout)

    async def _send(
        self,
        endpoint: Endpoint,
        params: Optional[dict[str, Any]],
        body: Optional[Any],
        timeout: Optional[float],
    ) -> Any:
        if endpoint.kind is CallKind.SEQUENCED and self.state.resync_required:
            raise ResyncRequired()
        status, data = await self.scope.run(self.http.request(
            endpoint.method, endpoint.path,
            params=params, body=body, headers=self._headers(endpoint), timeout=timeout,
        ))
        if status >= 400:
            error = error_for_status(status, data)
            if isinstance(error, AffinityRotated):
                logger.warning("%s: affinity token rotated, resync required", endpoint.name)
                self.state.resync_required = True
            raise error
        if endpoint.kind is CallKind.SEQUENCED:
            self.state.advance_sequence()
        return data

    @staticmethod
    def _parse(model: type[M], data: Any) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(f"Unexpected {model.__name__} body: {e}", details={"body": data}) from e

    @staticmethod
    def _first_message(data: Any) -> Any:
        """Unwrap Visitor resource bodies shaped ``{messages: [{type, message}]}``."""
        if isinstance(data, dict) and isinstance(data.get("messages"), list) and data["messages"]:
            return data["messages"][0].get("message", {})
        return data

    def _org_params(self) -> dict[str, Any]:
        return {"org_id": self._config.organization_id, "deployment_id": self._config.deployment_id}

    # ----------------------------------------------------------- call surface

    @outbound(AVAILABILITY)
    async def availability(self, ids: Optional[list[str]] = None) -> Envelope:
        """Indicates whether a chat button is available to receive new chat requests."""
        params = self._org_params()
        params["Availability.ids"] = ",".join(ids) if ids else self._config.button_id
        data = await self.dispatch(AVAILABILITY, params=params)
        message = self._first_message(data)
        if not isinstance(message, dict) or "results" not in message:
            raise ProtocolError("Availability response has no results", details={"body": data})
        return Envelope(type=EventTag.AVAILABILITY, message={"results": message["results"]})

    @outbound(BREADCRUMB)
    async def breadcrumb(self, location: str) -> Any:
        """Sets the URL of the page the visitor is viewing, shown to the agent."""
        return await self.dispatch(BREADCRUMB, body={"location": location})

    @outbound(SESSION_ID)
    async def allocate_session(self) -> SessionState:
        """SessionId: required as the first request of every new session."""
        data = await self.dispatch(SESSION_ID)
        session = self._parse(SessionIdResponse, data)
        self.state.establish(session)
        logger.info("session %s allocated", session.id)
        return self.state

    @outbound(CHASITOR_INIT)
    async def chasitor_init(self, details: ChasitorInit) -> Any:
        """Initiates the chat request. Always the first POST of a session."""
        body = {
            "organizationId": self._config.organization_id,
            "deploymentId": self._config.deployment_id,
            "buttonId": self._config.button_id,
            "sessionId": self.state.session_id,
            **details.to_wire(),
        }
        return await self.dispatch(CHASITOR_INIT, body=body)

    @outbound(RESYNC_SESSION)
    async def resync_session(self) -> ResyncSessionResponse:
        """Reestablishes the session on a new server after a 503.

        On ``isValid`` the new key and affinity token are installed and sequenced
        calls are allowed again.
        """
        data = await self.dispatch(RESYNC_SESSION, params={"sessionId": self.state.session_id})
        resync = self._parse(ResyncSessionResponse, data)
        if resync.is_valid:
            self.state.rotate(resync)
            logger.info("session %s resynced", self.state.session_id)
        return resync

    @outbound(CHASITOR_RESYNC_STATE)
    async def chasitor_resync_state(self, organization_id: Optional[str] = None) -> Any:
        """Restores the visitor's chat state after ResyncSession."""
        return await self.dispatch(
            CHASITOR_RESYNC_STATE,
            body={"organizationId": organization_id or self._config.organization_id},
        )

    @outbound(CHASITOR_NOT_TYPING)
    async def chasitor_not_typing(self) -> Any:
        return await self.dispatch(CHASITOR_NOT_TYPING, body={})

    @outbound(CHASITOR_SNEAK_PEEK)
    async def chasitor_sneak_peek(self, position: int, text: str) -> Any:
        """Sends the text being typed, for agents with Sneak Peek enabled."""
        return await self.dispatch(CHASITOR_SNEAK_PEEK, body={"position": position, "text": text})

    @outbound(CHASITOR_TYPING)
    async def chasitor_typing(self) -> Any:
        return await self.dispatch(CHASITOR_TYPING, body={})

    @outbound(CHAT_END)
    async def chat_end(self, reason: str = "client") -> Envelope:
        """Ends the chat from the visitor side and cancels all session traffic."""
        await self.dispatch(CHAT_END, body={"reason": reason})
        self.scope.cancel()
        return Envelope(type=EventTag.CHAT_END, message={})

    @outbound(CHAT_MESSAGE)
    async def chat_message(self, text: str) -> Envelope:
        """Sends a visitor message; the echo is returned as ChasitorChatMessage."""
        await self.dispatch(CHAT_MESSAGE, body={"text": text})
        visitor = self.state.visitor
        return Envelope(
            type=EventTag.CHASITOR_CHAT_MESSAGE,
            message={"text": text, "name": visitor.name, "agentId": visitor.id},
        )

    @outbound(CUSTOM_EVENT)
    async def custom_event(self, type: str, data: str) -> Any:
        return await self.dispatch(CUSTOM_EVENT, body={"type": type, "data": data})

    @outbound(MULTI_NOUN)
    async def multi_noun(self, nouns: list[NounWrapper]) -> Any:
        """Batches several POST requests into one."""
        return await self.dispatch(MULTI_NOUN, body={"nouns": [n.to_wire() for n in nouns]})

    @outbound(SETTINGS)
    async def settings(self, button_ids: Optional[list[str]] = None, update_breadcrumb: bool = False) -> SettingsResponse:
        params = self._org_params()
        params["Settings.buttonIds"] = ",".join(button_ids) if button_ids else self._config.button_id
        params["Settings.updateBreadcrumb"] = "1" if update_breadcrumb else "0"
        data = await self.dispatch(SETTINGS, params=params)
        return self._parse(SettingsResponse, self._first_message(data))

    @outbound(VISITOR_ID)
    async def visitor_id(self) -> VisitorIdResponse:
        data = await self.dispatch(VISITOR_ID, params=self._org_params())
        return self._parse(VisitorIdResponse, self._first_message(data))

    async def messages(self, ack: int) -> PollResponse:
        """One Messages long-poll request, acknowledging everything up to ``ack``."""
        timeout = (self.state.poll_timeout or DEFAULT_POLL_TIMEOUT_S) + self._config.poll_grace
        data = await self.dispatch(MESSAGES, params={"ack": ack}, timeout=timeout)
        if not data:
            return PollResponse()
        if not isinstance(data, dict):
            raise ProtocolError("Messages response is not an object", details={"body": data})

        raw_messages = data.get("messages") or []
        if not isinstance(raw_messages, list):
            raise ProtocolError("Messages response has no message list", details={"body": data})

        events: list[Envelope] = []
        skipped: list[Any] = []
        for raw in raw_messages:
            try:
                events.append(parse_envelope(raw))
            except ValidationError:
                logger.debug("skipping unrecognised message %r", raw)
                skipped.append(raw)
        try:
            return PollResponse(events=events, sequence=data.get("sequence"), skipped=skipped)
        except ValidationError as e:
            raise ProtocolError(f"Unexpected Messages body: {e}", details={"body": data}) from e

    # ----------------------------------------------------------------- resync

    async def replay_pending(self) -> Any:
        """Resend the call that failed with 503, if any."""
        replay, self._pending_replay = self._pending_replay, None
        if replay is None:
            return None
        logger.info("replaying outbound call interrupted by affinity rotation")
        return await replay()

    async def close(self) -> None:
        self.scope.cancel()
        await self.http.close()
