"""Messages long-poll loop."""

import asyncio

import pytest

from liveagent.errors import AffinityRotated, ProtocolError, ServerFault, SessionNotEstablished
from liveagent.models.events import EventTag
from liveagent.poller import LongPollLoop

from conftest import message, poll_body, until


async def established(make_api):
    api = make_api()
    await api.allocate_session()
    return api, LongPollLoop(api, api.state)


@pytest.mark.asyncio
async def test_ack_advances_and_is_sent_on_the_next_poll(make_api, server):
    api, loop = await established(make_api)
    server.push_poll(200, poll_body(message("ChatRequestSuccess", visitorId="V1"), sequence=1))
    server.push_poll(200, poll_body(message("QueueUpdate", position=2), sequence=2))
    server.push_poll(204)

    responses = loop.responses()
    first = await responses.__anext__()
    assert first.sequence == 1
    assert api.state.inbound_ack == 1
    await responses.__anext__()
    await responses.__anext__()
    await responses.aclose()

    assert [r.url.params["ack"] for r in server.calls("Messages")] == ["-1", "1", "2"]
    assert loop.polls == 3


@pytest.mark.asyncio
async def test_ack_never_moves_backwards(make_api, server):
    api, loop = await established(make_api)
    server.push_poll(200, poll_body(message("AgentTyping"), sequence=5))
    server.push_poll(200, poll_body(message("AgentNotTyping"), sequence=3))
    server.push_poll(200, poll_body(message("AgentTyping")))

    responses = loop.responses()
    acks = []
    for _ in range(3):
        await responses.__anext__()
        acks.append(api.state.inbound_ack)
    await responses.aclose()

    assert acks == [5, 5, 5]


@pytest.mark.asyncio
async def test_visitor_id_taken_from_first_request_success_only(make_api, server):
    api, loop = await established(make_api)
    server.push_poll(200, poll_body(message("ChatRequestSuccess", visitorId="V1"), sequence=1))
    server.push_poll(200, poll_body(message("ChatRequestSuccess", visitorId="V2"), sequence=2))

    events = loop.events()
    assert (await events.__anext__()).message["visitorId"] == "V1"
    assert (await events.__anext__()).message["visitorId"] == "V2"
    await events.aclose()

    assert api.state.visitor.id == "V1"


@pytest.mark.asyncio
async def test_empty_poll_is_reissued_immediately(make_api, server):
    api, loop = await established(make_api)
    server.push_poll(204)
    server.push_poll(204)
    server.push_poll(200, poll_body(message("ChatEstablished", name="Ann", userId="005"), sequence=1))

    events = loop.events()
    envelope = await events.__anext__()
    await events.aclose()

    assert envelope.type is EventTag.CHAT_ESTABLISHED
    assert len(server.calls("Messages")) == 3


@pytest.mark.asyncio
async def test_unknown_events_are_skipped(make_api, server):
    api, loop = await established(make_api)
    server.push_poll(200, poll_body(
        message("SomethingNew", foo=1),
        message("ChatMessage", name="Ann", text="hi", agentId="005"),
        sequence=1,
    ))

    events = loop.events()
    envelope = await events.__anext__()
    await events.aclose()

    assert envelope.type is EventTag.CHAT_MESSAGE
    assert api.state.inbound_ack == 1


@pytest.mark.parametrize("status,error", [(500, ServerFault), (503, AffinityRotated)])
@pytest.mark.asyncio
async def test_error_is_yielded_last(make_api, server, status, error):
    api, loop = await established(make_api)
    server.push_poll(200, poll_body(message("AgentTyping"), sequence=1))
    server.push_poll(status)

    received = [event async for event in loop.events()]

    assert received[0].type is EventTag.AGENT_TYPING
    assert isinstance(received[1], error)
    assert len(received) == 2
    assert len(server.calls("Messages")) == 2


@pytest.mark.asyncio
async def test_cancellation_ends_the_loop_quietly(make_api, server):
    api, loop = await established(make_api)

    collected = []

    async def consume():
        async for event in loop.events():
            collected.append(event)

    task = asyncio.ensure_future(consume())
    await until(lambda: server.calls("Messages"))
    api.scope.cancel()
    await asyncio.wait_for(task, 1.0)

    assert collected == []


@pytest.mark.asyncio
async def test_poll_requires_a_session(make_api, server):
    api = make_api()
    loop = LongPollLoop(api, api.state)
    received = [event async for event in loop.events()]
    assert len(received) == 1
    assert isinstance(received[0], SessionNotEstablished)
    assert server.requests == []


@pytest.mark.parametrize("body", [
    {"messages": [], "sequence": "abc"},
    {"messages": {"type": "ChatMessage"}, "sequence": 1},
    ["not", "an", "object"],
])
@pytest.mark.asyncio
async def test_malformed_poll_body_is_yielded_as_protocol_error(make_api, server, body):
    api, loop = await established(make_api)
    server.push_poll(200, body)

    received = [event async for event in loop.events()]

    assert len(received) == 1
    assert isinstance(received[0], ProtocolError)
    assert received[0].details == {"body": body}
    assert api.state.inbound_ack == -1
