"""
Session event bus.

One ordered broadcast channel per chat session. Results of the session's own
outbound calls and events from the long-poll loop are published into it in
arrival order. Subscribers get a filtered view: everything, one event tag, or
errors only. Late subscribers miss what was published before they subscribed.

The bus closes after the first terminal event (ChatEnd, ChatEnded or a terminal
error). That event is still delivered; nothing is delivered after it, and a
closed bus never reopens.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Optional

from liveagent.errors import LiveAgentError
from liveagent.models.events import Envelope, Event, EventTag, is_terminal

logger = logging.getLogger(__name__)

Predicate = Callable[[Event], bool]
Handler = Callable[[Event], None]

_CLOSED = object()


def _match_all(event: Event) -> bool:
    return True


def _match_errors(event: Event) -> bool:
    return isinstance(event, LiveAgentError)


def _match_tag(tag: EventTag) -> Predicate:
    def match(event: Event) -> bool:
        return isinstance(event, Envelope) and event.type == tag
    return match


class Subscription:
    """Async iterator over the events of one filtered view of the bus."""

    def __init__(self, bus: "EventBus", predicate: Predicate):
        self._bus = bus
        self._predicate = predicate
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._done = False

    def _offer(self, event: Event) -> None:
        if self._predicate(event):
            self._queue.put_nowait(event)

    def _finish(self) -> None:
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Event:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self.close()
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        """Stop receiving. Pending events are discarded."""
        if not self._done:
            self._done = True
            self._bus._remove(self)
            self._queue.put_nowait(_CLOSED)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()


class EventBus:
    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._handlers: list[tuple[Predicate, Handler]] = []
        self._closed = False
        self._closed_event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: Event) -> bool:
        """Deliver ``event`` to every matching subscriber. False once closed."""
        if self._closed:
            logger.debug("bus closed, dropping %r", event)
            return False
        for sub in list(self._subscriptions):
            sub._offer(event)
        for predicate, handler in list(self._handlers):
            if not predicate(event):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Error in bus handler for %r", event)
        if is_terminal(event):
            self.close()
        return True

    async def pump(self, source: AsyncIterator[Event]) -> None:
        """Forward events from ``source`` until it ends or the bus closes."""
        try:
            async for event in source:
                if not self.publish(event) or self._closed:
                    break
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()

    def close(self) -> None:
        """Close without a terminal event; subscribers finish after pending events."""
        if not self._closed:
            self._close()

    def _close(self) -> None:
        self._closed = True
        for sub in self._subscriptions:
            sub._finish()
        self._subscriptions.clear()
        self._handlers.clear()
        self._closed_event.set()
        logger.debug("bus closed")

    def _remove(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass

    def _subscribe(self, predicate: Predicate) -> Subscription:
        sub = Subscription(self, predicate)
        if self._closed:
            sub._finish()
        else:
            self._subscriptions.append(sub)
        return sub

    def all(self) -> Subscription:
        return self._subscribe(_match_all)

    def stream(self, tag: EventTag) -> Subscription:
        return self._subscribe(_match_tag(EventTag(tag)))

    def errors(self) -> Subscription:
        return self._subscribe(_match_errors)

    def add_handler(self, handler: Handler, tag: Optional[EventTag] = None) -> Callable[[], None]:
        """Call ``handler`` synchronously for each matching event. Returns a remover."""
        entry = (_match_tag(EventTag(tag)) if tag is not None else _match_all, handler)
        if not self._closed:
            self._handlers.append(entry)

        def remove() -> None:
            try:
                self._handlers.remove(entry)
            except ValueError:
                pass
        return remove

    async def wait_closed(self) -> None:
        await self._closed_event.wait()
