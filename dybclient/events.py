from __future__ import annotations
from enum import Enum
from typing import Any, Callable, Dict, List, Union

from dybproto.controls import ControlKey
from dybproto.envelope import Message, PropType
from dybproto.log import get_logger
from dybproto.messages import PlayerMessenger

logger = get_logger(__name__)


class EventType(str, Enum):
    """Event categories and the payload each one carries."""

    CONNECTED = "connected"                 # no payload
    DISCONNECTED = "disconnected"           # no payload
    ERROR = "error"                         # Exception
    MESSAGE = "message"                     # Message (Dict[str, Envelope])
    BOAT_PROPERTIES = "boatProperties"      # BoatProperties
    GAME_NOTIFICATION = "gameNotification"  # GameNotification
    COMPASS_DISPLAY = "compassDisplay"      # str, e.g. "270.NW.HDG"

    @classmethod
    def from_string(cls, value: Union[str, 'EventType']) -> 'EventType':
        """Accept either a member or its string value."""
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown event type: {value}")


Callback = Callable[..., Any]


class EventBus:
    """
    Ordered subscriber registry keyed by EventType.

    emit() calls each subscriber synchronously in registration order. A
    subscriber that raises is logged and skipped; the rest still run.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[EventType, List[Callback]] = {event: [] for event in EventType}

    def on(self, event: Union[str, EventType], callback: Callback) -> None:
        self._subscribers[EventType.from_string(event)].append(callback)

    def off(self, event: Union[str, EventType], callback: Callback) -> None:
        """Remove the first registration of ``callback``; unknown callbacks are ignored."""
        subscribers = self._subscribers[EventType.from_string(event)]
        if callback in subscribers:
            subscribers.remove(callback)

    def once(self, event: Union[str, EventType], callback: Callback) -> None:
        event_type = EventType.from_string(event)

        def _wrapper(*args: Any) -> None:
            self.off(event_type, _wrapper)
            callback(*args)

        self.on(event_type, _wrapper)

    def emit(self, event: EventType, *args: Any) -> bool:
        """Invoke subscribers; returns True if there were any."""
        subscribers = list(self._subscribers[event])
        for callback in subscribers:
            try:
                callback(*args)
            except Exception:
                logger.exception("Subscriber %r failed handling %s", callback, event.value)
        return bool(subscribers)

    def listener_count(self, event: Union[str, EventType]) -> int:
        return len(self._subscribers[EventType.from_string(event)])


class MessageDispatcher:
    """Routes decoded messages onto the bus.

    The generic MESSAGE event always fires first, then any derived events
    in this order: boat properties, game notification, compass display.
    """

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus

    def dispatch(self, message: Message) -> None:
        self.bus.emit(EventType.MESSAGE, message)

        messenger_env = message.get(ControlKey.PLAYER_MESSENGER.value)
        if messenger_env is not None:
            messenger = PlayerMessenger.from_value(messenger_env.value)
            if messenger is not None:
                if messenger.props is not None:
                    logger.info("Boat properties: %s", messenger.props)
                    self.bus.emit(EventType.BOAT_PROPERTIES, messenger.props)
                if messenger.msg is not None:
                    logger.info("Game event: %s", messenger.msg)
                    self.bus.emit(EventType.GAME_NOTIFICATION, messenger.msg)

        display_env = message.get(ControlKey.AP_DISPLAY.value)
        if display_env is not None and display_env.tag is PropType.STRING:
            logger.info("Compass: %s", display_env.value)
            self.bus.emit(EventType.COMPASS_DISPLAY, display_env.value)

        active_env = message.get(ControlKey.AP_ACTIVE.value)
        if active_env is not None and active_env.tag is PropType.BOOLEAN:
            logger.info("Autopilot: %s", "ON" if active_env.value else "OFF")
