from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class BoatProperties:
    """Boat capabilities reported by the game after subscribing."""
    engine_count: int
    has_thrusters: bool
    has_low_power_switch: bool
    has_sails: bool

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BoatProperties':
        engines = data.get("EngineCount", 0)
        return cls(
            engine_count=int(engines) if isinstance(engines, (int, float)) else 0,
            has_thrusters=bool(data.get("HasThrusters", False)),
            has_low_power_switch=bool(data.get("HasLoPowerSwitch", False)),
            has_sails=bool(data.get("HasSails", False)),
        )


@dataclass(frozen=True)
class GameNotification:
    type: str
    noti: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional['GameNotification']:
        if "Type" not in data or "Noti" not in data:
            return None
        return cls(type=str(data["Type"]), noti=str(data["Noti"]))

    def __str__(self) -> str:
        return f"{self.type}.{self.noti}"


@dataclass(frozen=True)
class PlayerMessenger:
    """Contents of the messenger channel (game to remote)."""
    props: Optional[BoatProperties] = None
    msg: Optional[GameNotification] = None

    @classmethod
    def from_value(cls, value: Any) -> Optional['PlayerMessenger']:
        """Parse the envelope value; None unless it is a JSON object."""
        if not isinstance(value, dict):
            return None
        props = value.get("Props")
        msg = value.get("Msg")
        return cls(
            props=BoatProperties.from_dict(props) if isinstance(props, dict) else None,
            msg=GameNotification.from_dict(msg) if isinstance(msg, dict) else None,
        )
