"""
Per-session mutable state.

Owned by the session driver. Only the dispatcher writes the session fields and
the outbound sequence; only the poll loop writes the ack cursor and visitor id.
"""

from typing import Optional

from liveagent.models.events import Visitor
from liveagent.models.responses import ResyncSessionResponse, SessionIdResponse


class SessionState:
    def __init__(self) -> None:
        self.session_id = ""
        self.session_key = ""
        self.affinity_token = ""
        self.poll_timeout: Optional[int] = None
        self.outbound_sequence = 1
        self.inbound_ack = -1
        self.visitor = Visitor()
        # Set on a 503 until the resync workflow has installed a new affinity token
        self.resync_required = False

    @property
    def established(self) -> bool:
        return bool(self.session_id and self.session_key)

    def establish(self, session: SessionIdResponse) -> None:
        if self.established:
            raise RuntimeError("Session already established")
        self.session_id = session.id
        self.session_key = session.key
        self.affinity_token = session.affinity_token
        self.poll_timeout = session.client_poll_timeout

    def rotate(self, resync: ResyncSessionResponse) -> None:
        """Install the key and affinity token issued by ResyncSession."""
        self.session_key = resync.key
        self.affinity_token = resync.affinity_token
        self.resync_required = False

    def advance_sequence(self) -> int:
        self.outbound_sequence += 1
        return self.outbound_sequence

    def acknowledge(self, sequence: Optional[int]) -> bool:
        """Move the ack cursor forward. Returns False if ``sequence`` was ignored."""
        if sequence is None or sequence < self.inbound_ack:
            return False
        self.inbound_ack = sequence
        return True

    def capture_visitor_id(self, visitor_id: str) -> bool:
        if self.visitor.id or not visitor_id:
            return False
        self.visitor.id = visitor_id
        return True

    def __repr__(self) -> str:
        return (
            f"SessionState(session_id={self.session_id!r}, sequence={self.outbound_sequence}, "
            f"ack={self.inbound_ack}, visitor_id={self.visitor.id!r})"
        )
