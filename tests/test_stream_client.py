"""Tests for the reconnecting progress stream client."""

import asyncio
import json
import random

import httpx
import pytest

from blogagent.errors import TransportFailure
from blogagent.workflow.stream_client import ConnectionState, StreamClient, backoff_delay


def _sse(*events) -> bytes:
    return "".join(f"data: {json.dumps(e)}\n\n" for e in events).encode()


class _Server:
    """Replays one scripted response per connection attempt."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests += 1
        status, body = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(status, content=body, headers={"content-type": "text/event-stream"})


def _client(server, **kwargs):
    sleeps = []
    states = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    client = StreamClient(
        "http://testserver",
        "job_1",
        on_state=states.append,
        sleep=fake_sleep,
        transport=httpx.MockTransport(server),
        rng=random.Random(7),
        **kwargs,
    )
    return client, sleeps, states


async def _drain(client):
    return [event async for event in client.events()]


def test_reads_until_complete():
    server = _Server((200, _sse(
        {"type": "progress", "seq": 1, "step": "research"},
        {"type": "review-required"},
        {"type": "complete", "filepath": "content/tech/post.mdoc"},
    )))
    client, sleeps, states = _client(server)

    events = asyncio.run(_drain(client))
    assert [e["type"] for e in events] == ["progress", "review-required", "complete"]
    assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED, ConnectionState.CLOSED]
    assert sleeps == []


def test_keepalive_comments_are_ignored():
    body = b": keepalive\n\n" + _sse({"type": "error", "message": "boom", "step": "write"})
    client, _, _ = _client(_Server((200, body)))
    events = asyncio.run(_drain(client))
    assert events == [{"type": "error", "message": "boom", "step": "write"}]


def test_reconnects_after_server_error():
    server = _Server(
        (503, b""),
        (200, _sse({"type": "progress", "seq": 3}, {"type": "complete"})),
    )
    client, sleeps, states = _client(server)

    events = asyncio.run(_drain(client))
    assert [e["type"] for e in events] == ["progress", "complete"]
    assert server.requests == 2
    assert len(sleeps) == 1
    assert 0.5 <= sleeps[0] <= 1.0
    assert ConnectionState.RECONNECTING in states
    assert states[-1] == ConnectionState.CLOSED


def test_gives_up_after_max_attempts():
    client, sleeps, states = _client(_Server((500, b"")), max_attempts=2)
    with pytest.raises(TransportFailure):
        asyncio.run(_drain(client))
    assert len(sleeps) == 2
    assert states[-1] == ConnectionState.CLOSED


def test_stream_ending_early_counts_as_drop():
    snapshot = _sse({"type": "progress", "seq": 4})
    server = _Server((200, snapshot))
    client, sleeps, _ = _client(server, max_attempts=3)
    with pytest.raises(TransportFailure):
        asyncio.run(_drain(client))
    # the same snapshot on every reconnect does not refill the budget
    assert server.requests == 4
    assert len(sleeps) == 3


def test_client_error_is_not_retried():
    server = _Server((404, b'{"detail": "job not found: job_1"}'))
    client, sleeps, states = _client(server)
    with pytest.raises(TransportFailure):
        asyncio.run(_drain(client))
    assert server.requests == 1
    assert sleeps == []
    assert states[-1] == ConnectionState.CLOSED


class TestBackoff:

    def test_first_attempt_is_jittered_around_base(self):
        rng = random.Random(1)
        for _ in range(20):
            assert 0.5 <= backoff_delay(1, base=1.0, cap=10.0, rng=rng) <= 1.0

    def test_delay_grows_then_caps(self):
        rng = random.Random(1)
        assert 2.0 <= backoff_delay(3, base=1.0, cap=10.0, rng=rng) <= 4.0
        assert 5.0 <= backoff_delay(8, base=1.0, cap=10.0, rng=rng) <= 10.0
