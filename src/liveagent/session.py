"""
Chat session driver.

Startup runs in a fixed order: SessionId → ChasitorInit → Messages long-poll.
The driver owns the session state, the event bus and the cancellation scope,
and ends the session when the bus sees its terminal event.

Affinity rotation (HTTP 503) does not end the session. Polling stops, sequenced
calls fail fast with ``ResyncRequired`` and the application calls ``resync()``
(or sets ``Config.auto_resync``) to move the session to the new server and
resume polling.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Optional

import httpx

from liveagent.api import CancelScope, LiveAgentAPI
from liveagent.bus import EventBus, Subscription
from liveagent.config import Config
from liveagent.errors import AffinityRotated, InvalidSession, LiveAgentError
from liveagent.models.events import Envelope, Event, EventTag, is_terminal
from liveagent.models.requests import ChasitorInit
from liveagent.poller import LongPollLoop
from liveagent.state import SessionState
from liveagent.transport.http import HttpClient

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    SESSION_ESTABLISHED = "session_established"
    CHAT_INITIATED = "chat_initiated"
    POLLING = "polling"
    ENDED = "ended"


class ChatSession:
    """One visitor chat. Create a new instance for every new chat."""

    def __init__(
        self,
        config: Config,
        visitor: ChasitorInit,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._visitor = visitor
        self.state = SessionState()
        self.bus = EventBus()
        self.scope = CancelScope()
        http = HttpClient(config.host, config.version.value, timeout=config.request_timeout, transport=transport)
        self.api = LiveAgentAPI(config, self.state, http, self.scope, sink=self.bus.publish)
        self._poller = LongPollLoop(self.api, self.state)
        self._poll_task: Optional[asyncio.Task] = None
        self._resync_task: Optional[asyncio.Task] = None
        self._resync_lock = asyncio.Lock()
        self.phase = SessionPhase.UNINITIALIZED
        self.last_error: Optional[LiveAgentError] = None
        self.bus.add_handler(self._observe)

    # ------------------------------------------------------------- streams

    def all(self) -> Subscription:
        return self.bus.all()

    def stream(self, tag: EventTag) -> Subscription:
        return self.bus.stream(tag)

    def errors(self) -> Subscription:
        return self.bus.errors()

    @property
    def resyncing(self) -> bool:
        return self.state.resync_required

    @property
    def polls(self) -> int:
        return self._poller.polls

    # ----------------------------------------------------------- lifecycle

    async def start(self) -> bool:
        """Allocate the session, request the chat and start polling.

        A failure is published on the bus and ends the session; returns False.
        """
        if self.phase is not SessionPhase.UNINITIALIZED:
            raise RuntimeError(f"Session already started (phase={self.phase.value})")
        try:
            await self.api.allocate_session()
            self._enter(SessionPhase.SESSION_ESTABLISHED)
            await self.api.chasitor_init(self._visitor)
            self._enter(SessionPhase.CHAT_INITIATED)
        except LiveAgentError as e:
            logger.error("chat startup failed: %s", e)
            if e is not self.last_error:
                self.bus.publish(e)
            self._end()
            return False
        self._start_polling()
        self._enter(SessionPhase.POLLING)
        return True

    def _enter(self, phase: SessionPhase) -> None:
        logger.info("session phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def _start_polling(self) -> None:
        self._poll_task = asyncio.create_task(self.bus.pump(self._poller.events()))

    async def _stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        await asyncio.wait([task])

    def _observe(self, event: Event) -> None:
        if isinstance(event, LiveAgentError):
            self.last_error = event
        if isinstance(event, AffinityRotated):
            self._on_affinity_rotated()
        if is_terminal(event):
            self._end()

    def _on_affinity_rotated(self) -> None:
        if self.phase is not SessionPhase.POLLING:
            return
        logger.warning("affinity token rotated; polling suspended until resync")
        if self._poll_task is not None and self._poll_task is not asyncio.current_task():
            self._poll_task.cancel()
        if self.config.auto_resync and (self._resync_task is None or self._resync_task.done()):
            self._resync_task = asyncio.create_task(self.resync())

    def _end(self) -> None:
        if self.phase is SessionPhase.ENDED:
            return
        self._enter(SessionPhase.ENDED)
        self.scope.cancel()
        self.bus.close()

    async def resync(self) -> bool:
        """Move the session to the server behind the new affinity token.

        ResyncSession → ChasitorResyncState → replay of the call that got the
        503 → polling resumes. Returns False if the session could not be
        restored; a rejected resync ends the session.
        """
        async with self._resync_lock:
            if self.phase is not SessionPhase.POLLING:
                return False
            if not self.state.resync_required:
                return True
            await self._stop_polling()
            try:
                result = await self.api.resync_session()
                if not result.is_valid:
                    self.bus.publish(InvalidSession("ResyncSession rejected the session (isValid=false)."))
                    return False
                await self.api.chasitor_resync_state()
                await self.api.replay_pending()
            except LiveAgentError as e:
                logger.error("resync failed: %s", e)
                if e is not self.last_error:
                    self.bus.publish(e)
                return False
            if self.phase is not SessionPhase.POLLING:
                return False
            logger.info("resync complete; resuming poll at ack=%s", self.state.inbound_ack)
            self._start_polling()
            return True

    async def end(self, reason: str = "client") -> Envelope:
        """End the chat from the visitor side (ChatEnd)."""
        return await self.api.chat_end(reason)

    async def wait_closed(self) -> None:
        await self.bus.wait_closed()

    async def close(self) -> None:
        """Stop all session traffic and release the HTTP client."""
        await self._stop_polling()
        if self._resync_task is not None and not self._resync_task.done():
            self._resync_task.cancel()
            await asyncio.wait([self._resync_task])
        self._end()
        await self.api.close()

    async def __aenter__(self) -> "ChatSession":
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
