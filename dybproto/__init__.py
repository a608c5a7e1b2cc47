"""
Wire-level primitives for the Dock Your Boat remote control protocol.

Envelopes, framing, well-known control keys and decoded payload shapes
live here so that any participant (client, test stubs, tooling) can
share them.
"""

__all__ = ["controls", "envelope", "framing", "log", "messages"]
