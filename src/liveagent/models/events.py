"""
Inbound event envelope, the unit carried by the session event bus.
"""

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field

from liveagent.errors import LiveAgentError


class EventTag(str, Enum):
    AVAILABILITY = "Availability"
    AGENT_DISCONNECT = "AgentDisconnect"
    AGENT_TYPING = "AgentTyping"
    AGENT_NOT_TYPING = "AgentNotTyping"
    CHASITOR_SESSION_DATA = "ChasitorSessionData"
    CHAT_ENDED = "ChatEnded"
    CHAT_END = "ChatEnd"
    CHAT_ESTABLISHED = "ChatEstablished"
    CHAT_MESSAGE = "ChatMessage"
    CHASITOR_CHAT_MESSAGE = "ChasitorChatMessage"
    CHAT_REQUEST_FAIL = "ChatRequestFail"
    CHAT_REQUEST_SUCCESS = "ChatRequestSuccess"
    CHAT_TRANSFERRED = "ChatTransferred"
    CUSTOM_EVENT = "CustomEvent"
    NEW_VISITOR_BREADCRUMB = "NewVisitorBreadcrumb"
    QUEUE_UPDATE = "QueueUpdate"


# Agent ended the chat (ChatEnded) or the visitor did (ChatEnd)
END_TAGS = frozenset({EventTag.CHAT_END, EventTag.CHAT_ENDED})


class Envelope(BaseModel):
    type: EventTag
    message: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def payload(self) -> BaseModel:
        """Parse ``message`` into the payload model registered for this tag."""
        from liveagent.models.messages import PAYLOAD_MODELS
        return PAYLOAD_MODELS[self.type].model_validate(self.message)


class Visitor(BaseModel):
    id: str = ""
    name: str = ""


# What flows on the bus: a tagged envelope or an error
Event = Union[Envelope, LiveAgentError]


def is_terminal(event: Event) -> bool:
    """True for the event that closes the bus (it is still delivered)."""
    if isinstance(event, LiveAgentError):
        return event.terminal
    return event.type in END_TAGS


def parse_envelope(raw: Any) -> Envelope:
    """Parse one inbound ``{type, message}`` item. Raises on unknown tags."""
    return Envelope.model_validate(raw)
