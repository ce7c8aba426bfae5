"""Connectivity monitor: probes the disk API and streams online/offline state."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator

import httpx

from gallerysync.config import settings

logger = logging.getLogger(__name__)


class ConnectionType(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    OTHER = "other"


@dataclass(frozen=True)
class ConnectivityState(ABC):
    """Closed set: Connected, Disconnected, Unknown."""

    @property
    def is_online(self) -> bool:
        return isinstance(self, Connected)

    @property
    def is_offline(self) -> bool:
        return isinstance(self, Disconnected)

    @property
    @abstractmethod
    def name(self) -> str:
        ...


@dataclass(frozen=True)
class Connected(ConnectivityState):
    connection_type: ConnectionType = ConnectionType.OTHER

    @property
    def name(self) -> str:
        return "connected"


@dataclass(frozen=True)
class Disconnected(ConnectivityState):
    @property
    def name(self) -> str:
        return "disconnected"


@dataclass(frozen=True)
class Unknown(ConnectivityState):
    @property
    def name(self) -> str:
        return "unknown"


class ConnectivityMonitor:
    """Tracks reachability of the remote API.

    State changes come from the background probe loop or from ``update()``
    (e.g. an OS network callback forwarded by the host). Observers never see
    the same state twice in a row.
    """

    def __init__(
        self,
        probe_url: str | None = None,
        interval: float | None = None,
        timeout: float | None = None,
        failure_threshold: int | None = None,
        connection_type: ConnectionType | None = None,
        initial_state: ConnectivityState | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._probe_url = probe_url or settings.effective_probe_url
        self._interval = interval if interval is not None else settings.probe_interval_seconds
        self._timeout = timeout if timeout is not None else settings.probe_timeout_seconds
        self._failure_threshold = failure_threshold or settings.probe_failure_threshold
        self._connection_type = connection_type or ConnectionType(settings.connection_type)
        self._transport = transport
        self._state: ConnectivityState = initial_state or Unknown()
        self._subscribers: set[asyncio.Queue[ConnectivityState]] = set()
        self._consecutive_failures = 0
        self._task: asyncio.Task | None = None
        self._running = False

    def current_state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state.is_online

    def is_definitely_offline(self) -> bool:
        return self._state.is_offline

    def update(self, state: ConnectivityState) -> bool:
        """Publish a new state. Returns False when it equals the current one."""
        if state == self._state:
            return False
        old_state = self._state
        self._state = state
        logger.info("Connectivity: %s -> %s", old_state.name, state.name)
        for queue in list(self._subscribers):
            queue.put_nowait(state)
        return True

    async def observe(self) -> AsyncIterator[ConnectivityState]:
        """Current state first, then every change."""
        queue: asyncio.Queue[ConnectivityState] = asyncio.Queue()
        self._subscribers.add(queue)
        last = self._state
        try:
            yield last
            while True:
                state = await queue.get()
                if state != last:
                    last = state
                    yield state
        finally:
            self._subscribers.discard(queue)

    async def observe_online(self) -> AsyncIterator[bool]:
        last: bool | None = None
        async for state in self.observe():
            if state.is_online != last:
                last = state.is_online
                yield last

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background probe loop."""
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Connectivity monitor started (probe %s every %ss)", self._probe_url, self._interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Connectivity monitor stopped")

    async def probe(self) -> bool:
        """True when the probe URL answers with any HTTP response."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                await client.head(self._probe_url)
            return True
        except (httpx.HTTPError, OSError) as e:
            logger.debug("Connectivity probe failed: %s", e)
            return False

    async def check_now(self) -> ConnectivityState:
        """Run one probe and fold the result into the state."""
        self._handle_probe(await self.probe())
        return self._state

    def _handle_probe(self, reachable: bool) -> None:
        if reachable:
            self._consecutive_failures = 0
            self.update(Connected(self._connection_type))
            return

        self._consecutive_failures += 1
        # A single lost probe only demotes a state nobody has confirmed yet
        if isinstance(self._state, Unknown) or self._consecutive_failures >= self._failure_threshold:
            self.update(Disconnected())

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.check_now()
            except Exception as e:
                logger.error("Connectivity probe error: %s", e)

            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
