from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from rich.markup import escape
from rich.table import Table

from dybproto.messages import BoatProperties, GameNotification

COMPASS_KINDS = ("HDG", "COG", "SET")


@dataclass(frozen=True)
class CompassReading:
    heading: str
    direction: str
    kind: str

    def __str__(self) -> str:
        return f"{self.heading}° {self.direction} ({self.kind})"


def parse_compass(display: str) -> Optional[CompassReading]:
    """Split an autopilot display string like ``270.NW.HDG``.

    The kind token may come second or third; anything that is not three
    dot-separated parts gives None.
    """
    parts = display.split(".")
    if len(parts) != 3:
        return None
    heading, first, second = parts
    if first in COMPASS_KINDS:
        return CompassReading(heading=heading, direction=second, kind=first)
    return CompassReading(heading=heading, direction=first, kind=second)


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def boat_properties_table(props: BoatProperties) -> Table:
    table = Table(title="Boat Properties", show_header=False)
    table.add_column("Property")
    table.add_column("Value")
    table.add_row("Engines", str(props.engine_count))
    table.add_row("Thrusters", _yes_no(props.has_thrusters))
    table.add_row("Sails", _yes_no(props.has_sails))
    table.add_row("Low Power", _yes_no(props.has_low_power_switch))
    return table


def format_notification(notification: GameNotification) -> str:
    return f"[bold yellow]\\[{escape(notification.type)}][/] {escape(notification.noti)}"
