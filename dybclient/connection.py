"""
Dock Your Boat remote control client.

Owns the TCP transport to the game, drives the connection state machine,
reassembles inbound frames and sends control values. Everything runs on
the caller's asyncio event loop; no method blocks and none raise for
transport trouble or misuse. Those surface as events and log warnings.
"""

from __future__ import annotations
import asyncio
import math
from enum import Enum
from typing import Any, Optional, Union

from dybproto.controls import (
    ControlKey,
    bow_thruster_step,
    clamp_sail,
    clamp_unit,
    sail_key,
    subscription_value,
    throttle_key,
)
from dybproto.envelope import MessageInput, ProtocolError, decode_message
from dybproto.framing import FrameDecoder, encode_frame, split_routing_id
from dybproto.log import get_logger, log_frame

from .config import ClientConfig
from .events import Callback, EventBus, EventType, MessageDispatcher

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    ERROR = "ERROR"


class _GameProtocol(asyncio.Protocol):
    """Forwards transport callbacks to the owning client.

    A fresh instance is made per connection attempt so callbacks from a
    transport the client has already abandoned can be told apart.
    """

    def __init__(self, client: 'DYBClient') -> None:
        self._client = client

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._client._on_connect(self, transport)  # type: ignore[arg-type]

    def data_received(self, data: bytes) -> None:
        self._client._on_data(self, data)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._client._on_connection_lost(self, exc)


class DYBClient:
    """
    Persistent connection to the game's remote control socket.

    Usage (inside a running event loop):
        client = DYBClient(host="localhost", port=2612, user_id="...")
        client.on("connected", lambda: client.send_subscription())
        client.on("compassDisplay", print)
        client.connect()
    """

    def __init__(self, config: Optional[ClientConfig] = None, **overrides: Any) -> None:
        self.config = (config or ClientConfig()).with_overrides(**overrides)
        self.events = EventBus()
        self._dispatcher = MessageDispatcher(self.events)
        self._decoder = FrameDecoder()
        self._state = ConnectionState.DISCONNECTED
        self._transport: Optional[asyncio.Transport] = None
        self._protocol: Optional[_GameProtocol] = None
        self._connect_task: Optional[asyncio.Task[None]] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        # Set when an error hits an established session, so the close that
        # follows still counts as losing a connected session.
        self._error_from_connected = False

    @property
    def address(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    # Lifecycle -------------------------------------------------------------

    def connect(self) -> None:
        """Start connecting; must be called from within the event loop."""
        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            logger.warning("Already connected or connecting", extra={"state": self._state.value})
            return

        loop = asyncio.get_running_loop()
        self._cancel_reconnect()
        self._state = ConnectionState.CONNECTING
        self._transport = None
        self._error_from_connected = False
        self._decoder.reset()
        logger.info("Connecting to %s...", self.address)
        logger.debug("Client config: %s", self.config.to_dict())

        protocol = _GameProtocol(self)
        self._protocol = protocol
        self._connect_task = loop.create_task(self._open(protocol), name="dyb-connect")

    def disconnect(self) -> None:
        """Drop the connection now and stop any pending reconnect."""
        self._cancel_reconnect()

        if self._connect_task is not None:
            self._connect_task.cancel()
            self._connect_task = None

        transport = self._transport
        self._transport = None
        self._protocol = None
        self._decoder.reset()
        self._error_from_connected = False
        self._state = ConnectionState.DISCONNECTED

        if transport is not None:
            transport.abort()
            logger.info("Disconnected from game server %s", self.address)
            self.events.emit(EventType.DISCONNECTED)

    def get_state(self) -> ConnectionState:
        return self._state

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    async def wait_connected(self, timeout: Optional[float] = None) -> None:
        """Wait until the next CONNECTED transition (returns at once if connected).

        Raises asyncio.TimeoutError if ``timeout`` elapses first.
        """
        if self.is_connected():
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _done() -> None:
            if not waiter.done():
                waiter.set_result(None)

        self.events.on(EventType.CONNECTED, _done)
        try:
            await asyncio.wait_for(waiter, timeout=timeout)
        finally:
            self.events.off(EventType.CONNECTED, _done)

    # Subscriptions ---------------------------------------------------------

    def on(self, event: Union[str, EventType], callback: Callback) -> 'DYBClient':
        self.events.on(event, callback)
        return self

    def off(self, event: Union[str, EventType], callback: Callback) -> 'DYBClient':
        self.events.off(event, callback)
        return self

    def once(self, event: Union[str, EventType], callback: Callback) -> 'DYBClient':
        self.events.once(event, callback)
        return self

    # Sending ---------------------------------------------------------------

    def send_message(self, message: MessageInput) -> bool:
        """Write one frame holding every key in ``message``.

        Fire-and-forget: returns True once the bytes are handed to the
        transport, False (with a log entry) if nothing was written.
        """
        if not self.is_connected() or self._transport is None:
            logger.warning("Cannot send message: not connected", extra={"state": self._state.value})
            return False

        try:
            data = encode_frame(self.config.group_id, message)
        except (TypeError, ValueError) as e:
            logger.error("Error sending message: %s", e)
            return False

        self._transport.write(data)
        log_frame(logger, "debug", f"SENT: {data[:-1].decode('utf-8')}", frame=message)
        return True

    def send_control(self, key: Union[str, ControlKey], value: Any) -> bool:
        """Send a single control value; keys outside the well-known set go out as given."""
        name = key.value if isinstance(key, ControlKey) else str(key)
        if not ControlKey.is_valid(name):
            logger.debug("Sending non-standard control key %r", name)
        return self.send_message({name: value})

    def send_rudder(self, value: float) -> bool:
        """Rudder position, clamped to [-1, 1]."""
        if not _is_finite_number(value, "rudder"):
            return False
        return self.send_control(ControlKey.RUDDER, clamp_unit(value))

    def send_throttle(self, value: float, engine: int = 0) -> bool:
        """Throttle for one engine, clamped to [-1, 1]."""
        key = throttle_key(engine)
        if key is None:
            logger.warning("No throttle control for engine %r", engine)
            return False
        if not _is_finite_number(value, "throttle"):
            return False
        return self.send_control(key, clamp_unit(value))

    def send_engine_state(self, on: bool) -> bool:
        return self.send_control(ControlKey.ENGINE_ON, bool(on))

    def send_bow_thruster(self, value: float) -> bool:
        """Bow thruster direction: -1, 0 or 1."""
        if not _is_finite_number(value, "bow thruster"):
            return False
        return self.send_control(ControlKey.BOW_THRUSTER, bow_thruster_step(value))

    def send_autopilot(self, active: bool) -> bool:
        return self.send_control(ControlKey.AP_ACTIVE, active)

    def send_heading_adjust(self, degrees: float) -> bool:
        return self.send_control(ControlKey.AP_SET, degrees)

    def send_sail_control(self, sail: str, value: float) -> bool:
        """Sail sub-control such as ``Main.Size``, clamped to [0, 1]."""
        key = sail_key(sail)
        if key is None:
            logger.warning("Unknown sail control %r", sail)
            return False
        if not _is_finite_number(value, "sail"):
            return False
        return self.send_control(key, clamp_sail(value))

    def send_low_power(self, on: bool) -> bool:
        return self.send_control(ControlKey.LOW_POWER_SWITCH, bool(on))

    def send_subscription(self, user_id: Optional[str] = None, active: Optional[bool] = None) -> bool:
        """Announce this client's identity; the game expects it right after connecting."""
        user_id = user_id or self.config.user_id
        if not user_id:
            logger.warning("Cannot subscribe: no user id configured")
            return False
        if active is None:
            active = self.config.active
        return self.send_control(ControlKey.PLAYER_MESSENGER, subscription_value(user_id, active))

    # Transport callbacks ---------------------------------------------------

    async def _open(self, protocol: _GameProtocol) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.create_connection(lambda: protocol, self.config.host, self.config.port)
        except Exception as exc:
            if protocol is self._protocol:
                self._on_error(exc)
                self._on_close(protocol)
        finally:
            if self._connect_task is asyncio.current_task():
                self._connect_task = None

    def _on_connect(self, protocol: _GameProtocol, transport: asyncio.Transport) -> None:
        if protocol is not self._protocol:
            transport.abort()
            return
        self._transport = transport
        self._cancel_reconnect()
        self._state = ConnectionState.CONNECTED
        logger.info("Connected to game server %s", self.address)
        self.events.emit(EventType.CONNECTED)

    def _on_data(self, protocol: _GameProtocol, data: bytes) -> None:
        for frame in self._decoder.feed(data):
            # A subscriber may have disconnected us mid-chunk
            if protocol is not self._protocol:
                return
            self._process_frame(frame)

    def _on_connection_lost(self, protocol: _GameProtocol, exc: Optional[Exception]) -> None:
        if protocol is not self._protocol:
            return
        if exc is not None:
            self._on_error(exc)
        self._on_close(protocol)

    def _on_error(self, exc: Exception) -> None:
        if self._state is ConnectionState.CONNECTED:
            self._error_from_connected = True
        self._state = ConnectionState.ERROR
        logger.error("Socket error: %s", exc, extra={"host": self.address})
        self.events.emit(EventType.ERROR, exc)

    def _on_close(self, protocol: _GameProtocol) -> None:
        # An error subscriber already called connect() or disconnect()
        if protocol is not self._protocol:
            logger.debug("Close of superseded connection to %s ignored", self.address)
            return

        lost_session = (
            self._state is ConnectionState.CONNECTED
            or (self._state is ConnectionState.ERROR and self._error_from_connected)
        )
        self._state = ConnectionState.DISCONNECTED
        self._transport = None
        self._protocol = None
        self._error_from_connected = False
        logger.info("Disconnected from game server %s", self.address)
        self.events.emit(EventType.DISCONNECTED)

        # A disconnected subscriber may already have reconnected or shut down
        if (
            self.config.auto_reconnect
            and lost_session
            and self._state is ConnectionState.DISCONNECTED
        ):
            self._schedule_reconnect()

    def _process_frame(self, frame: str) -> None:
        try:
            group_id, body = split_routing_id(frame)
            message = decode_message(body)
        except ProtocolError as exc:
            logger.warning("Error parsing message: %s", exc, extra={"group": frame[:1]})
            return

        log_frame(logger, "debug", f"RECV [Group {group_id}]: {body}", frame=message, group=group_id)
        self._dispatcher.dispatch(message)

    # Reconnect ------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            return
        delay = self.config.reconnect_delay
        logger.info("Reconnecting in %s seconds...", delay)
        self._reconnect_handle = asyncio.get_running_loop().call_later(delay, self._reconnect)

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None


def _is_finite_number(value: Any, what: str) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        logger.warning("Ignoring %s value %r: not a finite number", what, value)
        return False
    return True
