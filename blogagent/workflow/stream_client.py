"""Client for the progress stream with bounded, jittered reconnects."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from contextlib import aclosing
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx

from blogagent.errors import TransportFailure

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


def backoff_delay(attempt: int, base: float = 1.0, cap: float = 10.0, rng: random.Random | None = None) -> float:
    """Exponential delay for reconnect ``attempt`` (1-based), jittered into [d/2, d]."""
    delay = min(cap, base * (2 ** (attempt - 1)))
    return (rng or random).uniform(delay / 2, delay)


class StreamClient:
    def __init__(
        self,
        base_url: str,
        job_id: str,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        on_state: Callable[[ConnectionState], None] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._job_id = job_id
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._on_state = on_state
        self._sleep = sleep
        self._transport = transport
        self._rng = rng
        self.state = ConnectionState.CLOSED

    def _set_state(self, state: ConnectionState) -> None:
        if state != self.state:
            self.state = state
            if self._on_state:
                self._on_state(state)

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded events until ``complete``/``error``.

        Raises TransportFailure once reconnect attempts are exhausted or the
        server rejects the request (4xx).
        """
        attempt = 0
        last_seq = 0
        self._set_state(ConnectionState.CONNECTING)
        async with httpx.AsyncClient(
            base_url=self._base_url,
            transport=self._transport,
            timeout=httpx.Timeout(10.0, read=None),
        ) as client:
            while True:
                try:
                    async with aclosing(self._read_once(client)) as stream:
                        async for event in stream:
                            # Only a new log entry refills the reconnect budget,
                            # not a re-sent snapshot.
                            seq = event.get("seq")
                            if isinstance(seq, int) and seq > last_seq:
                                last_seq = seq
                                attempt = 0
                            yield event
                            if event.get("type") in ("complete", "error"):
                                self._set_state(ConnectionState.CLOSED)
                                return
                    raise TransportFailure("stream ended before a terminal event")
                except httpx.HTTPStatusError as e:
                    if e.response.status_code < 500:
                        self._set_state(ConnectionState.CLOSED)
                        raise TransportFailure(f"stream rejected: HTTP {e.response.status_code}") from e
                    error: Exception = e
                except (httpx.TransportError, TransportFailure) as e:
                    error = e

                attempt += 1
                if attempt > self._max_attempts:
                    self._set_state(ConnectionState.CLOSED)
                    raise TransportFailure(
                        f"gave up after {self._max_attempts} reconnect attempts: {error}"
                    ) from error
                delay = backoff_delay(attempt, self._base_delay, self._max_delay, self._rng)
                logger.info("Stream for %s dropped (%s); reconnecting in %.1fs", self._job_id, error, delay)
                self._set_state(ConnectionState.RECONNECTING)
                await self._sleep(delay)

    async def _read_once(self, client: httpx.AsyncClient) -> AsyncIterator[dict[str, Any]]:
        async with client.stream("GET", f"/api/jobs/{self._job_id}/stream") as resp:
            resp.raise_for_status()
            self._set_state(ConnectionState.CONNECTED)
            async for line in resp.aiter_lines():
                if not line.startswith("data:"):
                    continue
                try:
                    yield json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed stream line: %s", line[:200])
