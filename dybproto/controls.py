"""
Well-known control keys and the value constraints that go with them.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Optional


class ControlKey(str, Enum):
    """Protocol keys with a predefined meaning."""

    RUDDER = "BoatRuder"             # sic, the game spells it this way
    THROTTLE_0 = "BoatThrottle0"
    THROTTLE_1 = "BoatThrottle1"
    ENGINE_ON = "BoatEngineOn"
    BOW_THRUSTER = "BowThruster"
    LOW_POWER_SWITCH = "LoPowerSwitch"
    SAIL_MAIN_SIZE = "Sail.Main.Size"
    SAIL_MAIN_SHEET = "Sail.Main.Sheet"
    SAIL_GENOA_SIZE = "Sail.Genoa.Size"
    SAIL_GENOA_SHEET_LEFT = "Sail.Genoa.SheetLeft"
    SAIL_GENOA_SHEET_RIGHT = "Sail.Genoa.SheetRight"
    AP_ACTIVE = "AP_active"
    AP_SET = "AP_set"
    AP_DISPLAY = "AP_display"
    PLAYER_MESSENGER = "PlayerMessenger"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if string is a well-known key."""
        try:
            cls(value)
            return True
        except ValueError:
            return False


class SailControl(str, Enum):
    """Sail sub-controls; the wire key is ``Sail.<value>``."""

    MAIN_SIZE = "Main.Size"
    MAIN_SHEET = "Main.Sheet"
    GENOA_SIZE = "Genoa.Size"
    GENOA_SHEET_LEFT = "Genoa.SheetLeft"
    GENOA_SHEET_RIGHT = "Genoa.SheetRight"

    @property
    def key(self) -> ControlKey:
        return ControlKey(f"Sail.{self.value}")


THROTTLE_KEYS = (ControlKey.THROTTLE_0, ControlKey.THROTTLE_1)

SUBSCRIPTION_ACTIVE_PREFIX = "active:"
SUBSCRIPTION_SEPARATOR = ":"


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_unit(value: float) -> float:
    """Rudder and throttle range, [-1, 1]."""
    return clamp(value, -1, 1)


def clamp_sail(value: float) -> float:
    """Sail controls range, [0, 1]."""
    return clamp(value, 0, 1)


def bow_thruster_step(value: float) -> int:
    """Round to the nearest step and clamp to -1, 0 or 1.

    Halves round upwards: 0.5 gives 1, -0.5 gives 0.
    """
    return int(clamp(math.floor(value + 0.5), -1, 1))


def throttle_key(engine: int = 0) -> Optional[ControlKey]:
    """Per-engine throttle key, or None if the game has no such engine key."""
    if isinstance(engine, bool) or not isinstance(engine, int):
        return None
    if 0 <= engine < len(THROTTLE_KEYS):
        return THROTTLE_KEYS[engine]
    return None


def sail_key(sail: str) -> Optional[ControlKey]:
    """Resolve ``Main.Size``-style names (or SailControl members) to their key."""
    try:
        return SailControl(sail).key
    except ValueError:
        return None


def subscription_value(user_id: str, active: bool = False) -> str:
    """Identity string announced right after connecting."""
    prefix = SUBSCRIPTION_ACTIVE_PREFIX if active else SUBSCRIPTION_SEPARATOR
    return f"{prefix}{user_id}"
