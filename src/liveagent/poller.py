"""
Messages long-poll loop.

When a Messages request returns (200 with events, or 204 when the server's own
poll timeout elapsed) the next one is issued immediately: any gap risks the
server-side session timeout. The ack cursor is advanced from each response
before the next request so the server does not redeliver.

The loop never ends on its own. It stops after yielding an error: a transport
failure, an HTTP error code, or an affinity rotation (503), which the session
driver answers with the resync workflow.
"""

import logging
from typing import TYPE_CHECKING, AsyncIterator

from liveagent.errors import ChatCancelled, LiveAgentError
from liveagent.models.events import Event, EventTag
from liveagent.models.responses import PollResponse
from liveagent.state import SessionState

if TYPE_CHECKING:
    from liveagent.api import LiveAgentAPI

logger = logging.getLogger(__name__)


class LongPollLoop:
    def __init__(self, api: "LiveAgentAPI", state: SessionState):
        self._api = api
        self._state = state
        self.polls = 0

    async def responses(self) -> AsyncIterator[PollResponse]:
        """Infinite sequence of poll responses. Raises ``LiveAgentError``."""
        while True:
            self.polls += 1
            response = await self._api.messages(self._state.inbound_ack)
            if response.sequence is not None and not self._state.acknowledge(response.sequence):
                logger.warning(
                    "ignoring poll sequence %s below ack %s", response.sequence, self._state.inbound_ack,
                )
            self._capture_visitor(response)
            if response.events:
                logger.debug("poll %d: %d event(s), ack=%s", self.polls, len(response.events), self._state.inbound_ack)
            yield response

    def _capture_visitor(self, response: PollResponse) -> None:
        if self._state.visitor.id:
            return
        for envelope in response.events:
            if envelope.type is EventTag.CHAT_REQUEST_SUCCESS:
                if self._state.capture_visitor_id(str(envelope.message.get("visitorId") or "")):
                    logger.info("visitor id %s", self._state.visitor.id)
                return

    async def events(self) -> AsyncIterator[Event]:
        """Flatten poll responses into envelopes; an error is yielded last."""
        try:
            async for response in self.responses():
                for envelope in response.events:
                    yield envelope
        except ChatCancelled:
            logger.debug("poll loop cancelled")
        except LiveAgentError as e:
            logger.warning("poll loop stopped: %s", e)
            yield e
