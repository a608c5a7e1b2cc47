"""
Typed property envelopes exchanged with the game.

Every property travels as ``{"t": <tag>, "v": <value>}`` where the tag
tells the game how to read the value. Locally the value keeps its
Python representation; the tag is never used to coerce it on decode.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Union
import json
import math

from dybproto.log import get_logger

logger = get_logger(__name__)


class ProtocolError(Exception):
    """Raised when an inbound frame cannot be turned into a message."""
    pass
class MalformedEnvelope(ProtocolError):
    """Raised when a property value lacks the ``{t, v}`` envelope shape."""
    pass


class PropType(str, Enum):
    """Envelope type tags."""

    FLOAT = "F"
    INTEGER = "I"
    BOOLEAN = "B"
    JSON = "J"
    STRING = "S"


def type_code_for(value: Any) -> PropType:
    """Pick the tag the game expects for ``value``.

    bool is checked before int since it is a subclass of it. Floats with
    an integral value are tagged as integers. None and containers are JSON.
    Anything else falls back to STRING.
    """
    if isinstance(value, bool):
        return PropType.BOOLEAN
    if isinstance(value, int):
        return PropType.INTEGER
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return PropType.INTEGER
        return PropType.FLOAT
    if isinstance(value, str):
        return PropType.STRING
    if value is None or isinstance(value, (dict, list, tuple)):
        return PropType.JSON
    return PropType.STRING


@dataclass(frozen=True)
class Envelope:
    """A single ``(tag, value)`` pair.

    Tags outside :class:`PropType` are kept as the raw string the game sent.
    """
    tag: Union[PropType, str]
    value: Any

    @classmethod
    def encode(cls, value: Any) -> 'Envelope':
        """Wrap a native value, choosing its tag"""
        return cls(tag=type_code_for(value), value=value)

    @classmethod
    def from_dict(cls, data: Any) -> 'Envelope':
        """Create Envelope from the parsed ``{t, v}`` mapping"""
        if not isinstance(data, dict):
            raise MalformedEnvelope(f"Envelope must be an object, got {type(data).__name__}")
        missing = {'t', 'v'} - set(data.keys())
        if missing:
            raise MalformedEnvelope(f"Missing envelope fields: {sorted(missing)}")
        tag = data['t']
        if not isinstance(tag, str):
            raise MalformedEnvelope(f"Type tag must be a string, got {type(tag).__name__}")
        try:
            tag = PropType(tag)
        except ValueError:
            logger.debug("Unrecognised type tag %r, keeping it as sent", tag)
        return cls(tag=tag, value=data['v'])

    @property
    def tag_code(self) -> str:
        return self.tag.value if isinstance(self.tag, PropType) else self.tag

    def to_dict(self) -> Dict[str, Any]:
        """Convert Envelope back to its wire mapping"""
        value = self.value
        # 1.0 goes out as 1 when tagged as an integer
        if self.tag is PropType.INTEGER and isinstance(value, float) and value.is_integer():
            value = int(value)
        elif isinstance(value, tuple):
            value = list(value)
        return {'t': self.tag_code, 'v': value}


Message = Dict[str, Envelope]
MessageInput = Mapping[str, Union[Envelope, Any]]


def decode_message(json_str: str) -> Message:
    """Parse the JSON body of one inbound frame into a control-key mapping.

    Unknown keys pass through untouched. An entry without the envelope
    shape is skipped with a warning; if no entry of a non-empty body has
    it, the whole frame is rejected with MalformedEnvelope.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON: {e}")
    if not isinstance(data, dict):
        raise ProtocolError(f"Frame body must be a JSON object, got {type(data).__name__}")

    message: Message = {}
    errors = []
    for key, raw in data.items():
        try:
            message[key] = Envelope.from_dict(raw)
        except MalformedEnvelope as e:
            errors.append(f"{key}: {e}")

    if errors and not message:
        raise MalformedEnvelope("; ".join(errors))
    for error in errors:
        logger.warning("Skipping malformed property %s", error)
    return message


def encode_message(message: MessageInput) -> str:
    """Serialize a control-key mapping to compact JSON.

    Values that are not already an Envelope get wrapped with
    :meth:`Envelope.encode`. Raises ValueError for non-finite floats and
    TypeError for values JSON cannot represent.
    """
    body = {}
    for key, value in message.items():
        envelope = value if isinstance(value, Envelope) else Envelope.encode(value)
        body[key] = envelope.to_dict()
    return json.dumps(body, separators=(',', ':'), ensure_ascii=False, allow_nan=False)
