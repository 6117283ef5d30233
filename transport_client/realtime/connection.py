"""
Socket.IO connection manager for live bus tracking.

One ``LiveConnection`` is owned per session. It gives the socket an explicit
lifecycle and a small state machine:

    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTED -> RECONNECTING (unrequested drop) -> CONNECTED | DISCONNECTED

Reconnection uses exponential backoff, and route channels joined before a
drop are re-joined afterwards. Event listeners are kept in a registry so
screens can remove exactly the listeners they added.
"""

import asyncio
import inspect
import logging
import random
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError
from socketio.exceptions import SocketIOError

from transport_client.config import config
from transport_client.errors import NotConnectedError
from transport_client.type_defs import EntityId, EventListener

logger = logging.getLogger(__name__)

JOIN_ROUTE = "join_route"
DRIVER_LOCATION_UPDATE = "driver_location_update"
RECEIVE_LOCATION = "receive_location"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


StateListener = Callable[[ConnectionState], Any]


def backoff_delay(
    attempt: int,
    base: float,
    cap: float,
    jitter: float = 0.0,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay before reconnect ``attempt`` (0-based): base * 2**attempt, capped."""
    delay = min(base * (2 ** attempt), cap)
    if jitter:
        delay *= 1 + jitter * rand()
    return min(delay, cap)


class LiveConnection:
    """Owns one Socket.IO client and its reconnect policy."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        sio: Optional[socketio.AsyncClient] = None,
        token: Optional[str] = None,
        socketio_path: Optional[str] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        max_attempts: Optional[int] = None,
        jitter: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.url = url or config.SERVER_URL
        self.socketio_path = socketio_path or config.SOCKETIO_PATH
        token = token if token is not None else config.API_TOKEN
        self._auth = {"token": token} if token else None
        self.base_delay = base_delay if base_delay is not None else config.RECONNECT_BASE_DELAY
        self.max_delay = max_delay if max_delay is not None else config.RECONNECT_MAX_DELAY
        self.max_attempts = max_attempts if max_attempts is not None else config.RECONNECT_MAX_ATTEMPTS
        self.jitter = jitter
        self._sleep = sleep

        # Reconnection is driven here, not by the library
        self._sio = sio if sio is not None else socketio.AsyncClient(reconnection=False)
        self._sio.on("connect", self._handle_connect)
        self._sio.on("disconnect", self._handle_disconnect)
        self._sio.on("connect_error", self._handle_connect_error)

        self.state = ConnectionState.DISCONNECTED
        self._listeners: Dict[str, List[EventListener]] = {}
        self._state_listeners: List[StateListener] = []
        self._joined_routes: Set[EntityId] = set()
        self._closing = False
        self._reconnect_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def joined_routes(self) -> Set[EntityId]:
        return set(self._joined_routes)

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self.state:
            return
        logger.info(f"[Socket] {self.state.value} -> {state.value}")
        self.state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("[Socket] State listener failed")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _open(self) -> None:
        await self._sio.connect(self.url, socketio_path=self.socketio_path, auth=self._auth)

    async def connect(self) -> bool:
        """
        Open the connection.

        Returns:
            True when connected; False when the first attempt failed and the
            reconnect loop has taken over.
        """
        self._closing = False
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self._open()
        except SocketConnectionError as e:
            logger.warning(f"[Socket] Connect to {self.url} failed: {e}")
            self._start_reconnect()
            return False
        self._set_state(ConnectionState.CONNECTED)
        await self._rejoin_routes()
        return True

    async def disconnect(self) -> None:
        self._closing = True
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._sio.connected:
            await self._sio.disconnect()
        self._set_state(ConnectionState.DISCONNECTED)

    async def __aenter__(self) -> "LiveConnection":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.disconnect()

    async def ensure_connected(self, timeout: Optional[float] = None) -> None:
        """Connect if needed and wait; raises NotConnectedError when that fails."""
        if self.state is ConnectionState.DISCONNECTED:
            await self.connect()
        if not await self.wait_connected(timeout):
            raise NotConnectedError(f"Could not connect to {self.url} ({self.state.value})")

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """Wait until CONNECTED; False on timeout or when reconnection gave up."""
        if self.connected:
            return True
        done = asyncio.Event()

        def _on_state(state: ConnectionState) -> None:
            if state in (ConnectionState.CONNECTED, ConnectionState.DISCONNECTED):
                done.set()

        self.add_state_listener(_on_state)
        try:
            await asyncio.wait_for(done.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        finally:
            self.remove_state_listener(_on_state)
        return self.connected

    # ------------------------------------------------------------------
    # Reconnect
    # ------------------------------------------------------------------

    def _start_reconnect(self) -> None:
        self._set_state(ConnectionState.RECONNECTING)
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        attempt = 0
        while not self._closing:
            if self.max_attempts and attempt >= self.max_attempts:
                logger.error(f"[Socket] Giving up after {attempt} reconnect attempts")
                self._set_state(ConnectionState.DISCONNECTED)
                return
            delay = backoff_delay(attempt, self.base_delay, self.max_delay, self.jitter)
            logger.info(f"[Socket] Reconnecting in {delay:.1f}s (attempt {attempt + 1})")
            await self._sleep(delay)
            if self._closing:
                return
            try:
                await self._open()
            except SocketConnectionError as e:
                logger.warning(f"[Socket] Reconnect attempt {attempt + 1} failed: {e}")
                attempt += 1
                continue
            self._set_state(ConnectionState.CONNECTED)
            await self._rejoin_routes()
            return

    async def _rejoin_routes(self) -> None:
        for route_id in list(self._joined_routes):
            await self.emit(JOIN_ROUTE, route_id)
        if self._joined_routes:
            logger.info(f"[Socket] Re-joined {len(self._joined_routes)} route channel(s)")

    async def _handle_connect(self) -> None:
        logger.debug("[Socket] connect event")

    async def _handle_disconnect(self, *args) -> None:
        if self._closing:
            self._set_state(ConnectionState.DISCONNECTED)
            return
        logger.warning(f"[Socket] Connection lost {args[0] if args else ''}".rstrip())
        self._start_reconnect()

    async def _handle_connect_error(self, data: Any = None) -> None:
        logger.debug(f"[Socket] connect_error: {data}")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def emit(self, event: str, payload: Any) -> bool:
        """Fire-and-forget emit. Dropped (returns False) while not connected."""
        if not self.connected:
            logger.debug(f"[Socket] Dropping '{event}' while {self.state.value}")
            return False
        try:
            await self._sio.emit(event, payload)
        except SocketIOError as e:
            logger.warning(f"[Socket] Emit '{event}' failed: {e}")
            return False
        return True

    async def join_route(self, route_id: EntityId) -> bool:
        self._joined_routes.add(route_id)
        return await self.emit(JOIN_ROUTE, route_id)

    def leave_route(self, route_id: EntityId) -> None:
        # The relay has no leave event; stop re-joining on reconnect
        self._joined_routes.discard(route_id)

    def add_listener(self, event: str, listener: EventListener) -> None:
        if event not in self._listeners:
            self._listeners[event] = []
            self._sio.on(event, self._make_dispatcher(event))
        self._listeners[event].append(listener)

    def remove_listener(self, event: str, listener: EventListener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def _make_dispatcher(self, event: str):
        async def _dispatch(*args):
            await self.dispatch(event, args[0] if args else None)

        return _dispatch

    async def dispatch(self, event: str, data: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(data)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"[Socket] Listener for '{event}' failed")
