"""SessionState bookkeeping."""

import pytest

from liveagent.models.responses import ResyncSessionResponse, SessionIdResponse
from liveagent.state import SessionState


def make_session() -> SessionIdResponse:
    return SessionIdResponse.model_validate({"id": "S1", "key": "K1", "affinityToken": "A1", "clientPollTimeout": 40})


def test_initial_state():
    state = SessionState()
    assert not state.established
    assert state.outbound_sequence == 1
    assert state.inbound_ack == -1
    assert state.visitor.id == ""


def test_establish_is_one_shot():
    state = SessionState()
    state.establish(make_session())
    assert state.established
    assert (state.session_id, state.session_key, state.affinity_token) == ("S1", "K1", "A1")
    assert state.poll_timeout == 40
    with pytest.raises(RuntimeError):
        state.establish(make_session())


def test_sequence_advances_by_one():
    state = SessionState()
    assert [state.advance_sequence() for _ in range(3)] == [2, 3, 4]


def test_ack_never_decreases():
    state = SessionState()
    seen = []
    for sequence in (1, 3, 2, None, 3, 7):
        state.acknowledge(sequence)
        seen.append(state.inbound_ack)
    assert seen == [1, 3, 3, 3, 3, 7]
    assert seen == sorted(seen)


def test_visitor_id_captured_once():
    state = SessionState()
    assert not state.capture_visitor_id("")
    assert state.capture_visitor_id("V1")
    assert not state.capture_visitor_id("V2")
    assert state.visitor.id == "V1"


def test_rotate_installs_new_affinity_and_clears_resync():
    state = SessionState()
    state.establish(make_session())
    state.resync_required = True
    state.rotate(ResyncSessionResponse.model_validate({"isValid": True, "key": "K2", "affinityToken": "A2"}))
    assert (state.session_id, state.session_key, state.affinity_token) == ("S1", "K2", "A2")
    assert not state.resync_required
