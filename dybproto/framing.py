"""
Framing for the game's text stream.

Inbound frames are ``<routing char><json>\\n``; outbound frames are
``<routing id><json>\\0`` with no newline.
"""

from __future__ import annotations
import codecs
from typing import Iterator, Tuple, Union

from dybproto.envelope import ProtocolError, MessageInput, encode_message
from dybproto.log import get_logger

logger = get_logger(__name__)

FRAME_DELIMITER = "\n"
FRAME_TERMINATOR = "\0"
# Routing char plus at least one byte of payload
MIN_FRAME_LENGTH = 2


class FrameDecoder:
    """Accumulates stream input and yields complete newline-delimited frames.

    The buffer never leaves this object; callers only see whole frames.
    Byte chunks are decoded incrementally so a UTF-8 sequence split across
    two reads is reassembled rather than mangled.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[bytes, str]) -> Iterator[str]:
        """Append ``chunk`` and yield every complete frame now available.

        Frames shorter than two characters are dropped. Never raises;
        malformed content is left for the decode stage.
        """
        if isinstance(chunk, (bytes, bytearray)):
            chunk = self._utf8.decode(bytes(chunk))
        self._buffer += chunk

        while True:
            line_end = self._buffer.find(FRAME_DELIMITER)
            if line_end < 0:
                return
            frame = self._buffer[:line_end]
            self._buffer = self._buffer[line_end + 1:]

            if len(frame) < MIN_FRAME_LENGTH:
                if frame:
                    logger.debug("Discarding short frame %r", frame)
                continue
            yield frame

    def reset(self) -> None:
        """Forget any partial frame (used when a new transport starts)."""
        self._buffer = ""
        self._utf8.reset()

    @property
    def pending(self) -> int:
        """Number of buffered characters not yet part of a complete frame."""
        return len(self._buffer)


def split_routing_id(frame: str) -> Tuple[str, str]:
    """Split an inbound frame into its routing character and JSON body."""
    if len(frame) < MIN_FRAME_LENGTH:
        raise ProtocolError(f"Frame too short: {frame!r}")
    return frame[0], frame[1:]


def encode_frame(routing_id: Union[str, int], message: MessageInput) -> bytes:
    """Build the outbound wire bytes for ``message``.

    The routing id goes out as its full string form, not truncated.
    """
    body = encode_message(message)
    return f"{routing_id}{body}{FRAME_TERMINATOR}".encode("utf-8")
