"""
Live event relay between the capture agent and connected observers.

AgentEventStream keeps one socket.io connection to the agent for the whole
process lifetime and hands every forwarded event to EventRelay, which fans
it out to per-observer queues. Observers read those queues over the
/ws/events WebSocket, or as Socket.IO events through SocketIOBroadcaster.
A slow observer only ever loses its own oldest events; the agent side and
other observers are never blocked.
Events emitted while the agent connection is down are lost.
"""

import asyncio
from typing import Any, Optional, Set, Tuple

import socketio
from socketio.exceptions import ConnectionError as AgentStreamUnavailable

from app.logger import get_logger

logger = get_logger(__name__)

FORWARDED_EVENTS = (
    "live_preview",
    "enrollment_step",
    "capture_result",
    "identification_result",
    "identification_step",
)

Event = Tuple[str, Any]


class EventSubscription:
    """Bounded queue of events for one observer."""

    def __init__(self, maxsize: int = 100):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, event: Event) -> None:
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(event)

    async def get(self) -> Event:
        return await self.queue.get()


class EventRelay:
    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscriptions: Set[EventSubscription] = set()

    @property
    def observer_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> EventSubscription:
        # new observers start empty, nothing is replayed
        subscription = EventSubscription(self.queue_size)
        self._subscriptions.add(subscription)
        logger.info(f"Observer connected ({self.observer_count} total)")
        return subscription

    def unsubscribe(self, subscription: EventSubscription) -> None:
        self._subscriptions.discard(subscription)
        logger.info(f"Observer disconnected ({self.observer_count} total)")

    def publish(self, event: str, data: Any = None) -> int:
        """Forward one agent event verbatim to every observer. Returns the number reached."""
        if event not in FORWARDED_EVENTS:
            logger.debug(f"Ignoring unknown agent event: {event}")
            return 0

        for subscription in list(self._subscriptions):
            subscription.offer((event, data))
        return len(self._subscriptions)


class AgentEventStream:
    """Process-lifetime socket.io connection to the capture agent's event stream."""

    def __init__(
        self,
        url: str,
        relay: EventRelay,
        reconnect_delay: float = 5.0,
        client: Optional[socketio.AsyncClient] = None
    ):
        self.url = url
        self.relay = relay
        self.reconnect_delay = reconnect_delay
        self.client = client or socketio.AsyncClient(reconnection=True)
        self._task: Optional[asyncio.Task] = None

        self.client.on("connect", self._on_connect)
        self.client.on("disconnect", self._on_disconnect)
        for name in FORWARDED_EVENTS:
            self.client.on(name, self._forwarder(name))

    def _forwarder(self, name: str):
        async def forward(*args):
            data = args[0] if len(args) == 1 else (list(args) or None)
            self.relay.publish(name, data)
        return forward

    async def _on_connect(self):
        logger.info(f"Event relay connected to capture agent at {self.url}")

    async def _on_disconnect(self, *args):
        logger.warning("Event relay lost connection to capture agent; events are dropped until it reconnects")

    async def _connect_loop(self) -> None:
        # socket.io reconnects by itself once a first connection succeeded
        while not self.client.connected:
            try:
                await self.client.connect(self.url)
            except AgentStreamUnavailable as e:
                logger.warning(f"Capture agent event stream unavailable ({e}); retrying in {self.reconnect_delay:g}s")
                await asyncio.sleep(self.reconnect_delay)

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._connect_loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        # disconnects, or aborts a reconnection already in progress
        await self.client.shutdown()
        logger.info("Event relay stopped")


class SocketIOBroadcaster:
    """Re-emits relayed events to Socket.IO observers, one relay subscription for all of them."""

    def __init__(self, relay: EventRelay, server: socketio.AsyncServer):
        self.relay = relay
        self.server = server
        self._subscription: Optional[EventSubscription] = None
        self._task: Optional[asyncio.Task] = None

    async def _run(self) -> None:
        while True:
            event, data = await self._subscription.get()
            await self.server.emit(event, data)

    async def start(self) -> None:
        if self._task is None:
            self._subscription = self.relay.subscribe()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            self.relay.unsubscribe(self._subscription)
            self._subscription = None
