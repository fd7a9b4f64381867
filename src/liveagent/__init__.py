"""
liveagent-sdk: Live Agent chat client for Python.

Drives one visitor chat over the Live Agent REST API: session allocation,
outbound visitor events and the Messages long-poll loop, delivered as typed
event streams.
"""

from liveagent.api import CallKind, CancelScope, Endpoint, LiveAgentAPI
from liveagent.bus import EventBus, Subscription
from liveagent.config import Config, ProtocolVersion
from liveagent.errors import (
    AffinityRotated,
    ChatCancelled,
    HttpStatusError,
    InvalidSession,
    LiveAgentError,
    MalformedRequest,
    MethodNotAllowed,
    NotFound,
    ProtocolError,
    ResyncRequired,
    SequenceConflict,
    ServerFault,
    SessionNotEstablished,
    TransportFailure,
)
from liveagent.models.events import Envelope, EventTag, Visitor
from liveagent.models.requests import ChasitorInit, NounWrapper
from liveagent.session import ChatSession, SessionPhase
from liveagent.state import SessionState

__version__ = "0.1.0"
__all__ = [
    "ChatSession",
    "SessionPhase",
    "LiveAgentAPI",
    "CallKind",
    "CancelScope",
    "Endpoint",
    "EventBus",
    "Subscription",
    "Config",
    "ProtocolVersion",
    "SessionState",
    "Envelope",
    "EventTag",
    "Visitor",
    "ChasitorInit",
    "NounWrapper",
    "LiveAgentError",
    "SessionNotEstablished",
    "ResyncRequired",
    "ChatCancelled",
    "TransportFailure",
    "ProtocolError",
    "HttpStatusError",
    "MalformedRequest",
    "InvalidSession",
    "NotFound",
    "MethodNotAllowed",
    "SequenceConflict",
    "ServerFault",
    "AffinityRotated",
]
