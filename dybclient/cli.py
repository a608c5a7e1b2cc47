#!/usr/bin/env python3

from __future__ import annotations
import asyncio
import json
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import typer
from aioconsole import ainput
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dybproto.controls import ControlKey, SailControl
from dybproto.envelope import Message
from dybproto.log import configure_root_logging, get_logger
from dybproto.messages import BoatProperties, GameNotification
from .config import ClientConfig, ConfigError, load_config
from .connection import DYBClient
from .display import boat_properties_table, format_notification, parse_compass
from .events import EventType

app = typer.Typer(help="Dock Your Boat remote control client")
console = Console()
logger = get_logger(__name__)


@app.callback()
def options(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, help="Game host (default: $GAME_HOST or localhost)"),
    port: Optional[int] = typer.Option(None, help="Game port (default: $GAME_PORT or 2612)"),
    config: Optional[str] = typer.Option(None, "--config", help="YAML config file (default: $DYB_CONFIG)"),
    user_id: Optional[str] = typer.Option(None, help="Identity announced after connecting"),
    active: bool = typer.Option(False, "--active", help="Announce the identity as active"),
    log_level: str = typer.Option("INFO", help="DEBUG, INFO, WARNING or ERROR"),
):
    """Shared connection options."""
    configure_root_logging(log_level)
    try:
        cfg = load_config(config)
    except ConfigError as e:
        console.print(f"[red]Config error[/]: {e}")
        raise typer.Exit(code=1)
    ctx.obj = cfg.with_overrides(host=host, port=port, user_id=user_id, active=active or None)


def _make_client(cfg: ClientConfig, show_raw: bool = False) -> DYBClient:
    """Client with console printers and the subscription handshake wired in."""
    client = DYBClient(cfg)

    def on_connected() -> None:
        console.print("[bold green]✓ Connected to game server[/]")
        if client.send_subscription():
            console.print("[dim]Subscription sent[/]")
        else:
            console.print("[yellow]No user id configured; the game may ignore this client[/]")

    def on_props(props: BoatProperties) -> None:
        console.print(boat_properties_table(props))

    def on_notification(notification: GameNotification) -> None:
        console.print(format_notification(notification))

    def on_compass(display: str) -> None:
        reading = parse_compass(display)
        console.print(f"Compass: {reading}" if reading else f"Compass: {display}")

    def on_message(message: Message) -> None:
        body = {key: envelope.to_dict() for key, envelope in message.items()}
        console.print(f"[dim]← {escape(json.dumps(body))}[/]")

    client.on(EventType.CONNECTED, on_connected)
    client.on(EventType.DISCONNECTED, lambda: console.print("[red]✗ Connection closed[/]"))
    client.on(EventType.ERROR, lambda exc: console.print(f"[red]✗ Error[/]: {exc}"))
    client.on(EventType.BOAT_PROPERTIES, on_props)
    client.on(EventType.GAME_NOTIFICATION, on_notification)
    client.on(EventType.COMPASS_DISPLAY, on_compass)
    if show_raw:
        client.on(EventType.MESSAGE, on_message)
    return client


def _run(main: Callable[[], Awaitable[None]]) -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("\nShutting down gracefully...")


async def _run_forever(client: DYBClient) -> None:
    client.connect()
    try:
        await asyncio.Event().wait()
    finally:
        client.disconnect()


@app.command()
def listen(ctx: typer.Context, raw: bool = typer.Option(False, help="Print every decoded message")):
    """Connect and print whatever the game sends until interrupted."""
    cfg: ClientConfig = ctx.obj
    console.print(f"Connecting to game at {cfg.host}:{cfg.port}...")
    _run(lambda: _run_forever(_make_client(cfg, show_raw=raw)))


# (description, action, pause in seconds afterwards)
DemoStep = Tuple[str, Callable[[DYBClient], Any], float]

DEMO_SEQUENCE: List[Tuple[str, List[DemoStep]]] = [
    ("Engine Control", [
        ("Turning engine ON", lambda c: c.send_engine_state(True), 2.0),
    ]),
    ("Rudder Control", [
        ("Setting rudder to 50% right (0.5)", lambda c: c.send_rudder(0.5), 2.0),
        ("Setting rudder to center (0.0)", lambda c: c.send_rudder(0.0), 2.0),
        ("Setting rudder to 50% left (-0.5)", lambda c: c.send_rudder(-0.5), 2.0),
        ("Centering rudder", lambda c: c.send_rudder(0.0), 1.0),
    ]),
    ("Throttle Control", [
        ("Setting throttle to 25% (0.25)", lambda c: c.send_throttle(0.25), 2.0),
        ("Increasing throttle to 50% (0.5)", lambda c: c.send_throttle(0.5), 2.0),
        ("Increasing throttle to 75% (0.75)", lambda c: c.send_throttle(0.75), 2.0),
        ("Full throttle! (1.0)", lambda c: c.send_throttle(1.0), 2.0),
        ("Reducing to idle (0.0)", lambda c: c.send_throttle(0.0), 2.0),
    ]),
    ("Reverse Throttle", [
        ("Reverse 50% (-0.5)", lambda c: c.send_throttle(-0.5), 2.0),
        ("Back to idle (0.0)", lambda c: c.send_throttle(0.0), 1.0),
    ]),
    ("Bow Thruster", [
        ("Bow thruster LEFT (-1)", lambda c: c.send_bow_thruster(-1), 2.0),
        ("Bow thruster OFF (0)", lambda c: c.send_bow_thruster(0), 1.0),
        ("Bow thruster RIGHT (1)", lambda c: c.send_bow_thruster(1), 2.0),
        ("Bow thruster OFF (0)", lambda c: c.send_bow_thruster(0), 1.0),
    ]),
    ("Autopilot", [
        ("Activating autopilot", lambda c: c.send_autopilot(True), 2.0),
        ("Adjusting heading +10°", lambda c: c.send_heading_adjust(10), 2.0),
        ("Adjusting heading -10°", lambda c: c.send_heading_adjust(-10), 2.0),
        ("Deactivating autopilot", lambda c: c.send_autopilot(False), 1.0),
    ]),
    ("Sail Controls", [
        ("Deploying main sail to 80%", lambda c: c.send_sail_control(SailControl.MAIN_SIZE, 0.8), 1.5),
        ("Tightening main sheet to 60%", lambda c: c.send_sail_control(SailControl.MAIN_SHEET, 0.6), 1.5),
        ("Deploying genoa to 100%", lambda c: c.send_sail_control(SailControl.GENOA_SIZE, 1.0), 1.5),
        ("Adjusting genoa left sheet to 50%", lambda c: c.send_sail_control(SailControl.GENOA_SHEET_LEFT, 0.5), 0.0),
        ("Adjusting genoa right sheet to 50%", lambda c: c.send_sail_control(SailControl.GENOA_SHEET_RIGHT, 0.5), 2.0),
    ]),
    ("Shutdown", [
        ("Turning engine OFF", lambda c: c.send_engine_state(False), 1.0),
    ]),
]


async def run_demo_sequence(client: DYBClient, speed: float = 1.0) -> None:
    """Walk through DEMO_SEQUENCE; ``speed`` scales every pause."""
    console.rule("STARTING TEST SEQUENCE")
    for number, (title, steps) in enumerate(DEMO_SEQUENCE, start=1):
        console.print(f"\n[bold]Test {number}: {title}[/]")
        for description, action, pause in steps:
            console.print(f"   → {description}")
            action(client)
            if pause:
                await asyncio.sleep(pause * speed)
    console.rule("TEST SEQUENCE COMPLETED")
    console.print("Demo will continue running to receive messages. Press Ctrl+C to exit.")


@app.command()
def demo(
    ctx: typer.Context,
    start_delay: float = typer.Option(2.0, help="Seconds to wait after connecting before the sequence"),
):
    """Connect and run the scripted control sequence once."""
    cfg: ClientConfig = ctx.obj

    async def main() -> None:
        client = _make_client(cfg)
        client.connect()
        try:
            await client.wait_connected()
            await asyncio.sleep(start_delay)
            await run_demo_sequence(client)
            await asyncio.Event().wait()
        finally:
            client.disconnect()

    console.print(f"Connecting to game at {cfg.host}:{cfg.port}...")
    _run(main)


REPL_HELP = (
    "rudder <v> | throttle <v> [engine] | engine on|off | thruster <v> | autopilot on|off | "
    "heading <deg> | sail <name> <v> | lowpower on|off | raw <key> <json> | state | quit"
)


class CommandError(ValueError):
    """Raised for a REPL line that cannot be executed."""


def _on_off(word: str) -> bool:
    lowered = word.lower()
    if lowered in {"on", "true", "1"}:
        return True
    if lowered in {"off", "false", "0"}:
        return False
    raise CommandError(f"expected on/off, got {word!r}")


def _number(word: str) -> float:
    try:
        return float(word)
    except ValueError:
        raise CommandError(f"expected a number, got {word!r}")


def _engine(word: str) -> int:
    try:
        return int(word)
    except ValueError:
        raise CommandError(f"expected an engine index, got {word!r}")


def _json_value(text: str) -> Any:
    """Parse a JSON literal, treating anything unparseable as a bare string."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def execute_command(client: DYBClient, line: str) -> Optional[str]:
    """Run one REPL line against ``client``; returns text to show, if any."""
    parts = line.split()
    if not parts:
        return None
    cmd, args = parts[0].lower(), parts[1:]

    if cmd == "help":
        return REPL_HELP
    if cmd == "state":
        return client.state.value
    if cmd == "raw":
        if len(args) < 2:
            raise CommandError("usage: raw <key> <json>")
        client.send_control(args[0], _json_value(line.split(None, 2)[2]))
        return None
    if not args:
        raise CommandError(f"missing value for {cmd!r}")

    if cmd == "rudder":
        client.send_rudder(_number(args[0]))
    elif cmd == "throttle":
        engine = _engine(args[1]) if len(args) > 1 else 0
        client.send_throttle(_number(args[0]), engine)
    elif cmd == "engine":
        client.send_engine_state(_on_off(args[0]))
    elif cmd == "thruster":
        client.send_bow_thruster(_number(args[0]))
    elif cmd == "autopilot":
        client.send_autopilot(_on_off(args[0]))
    elif cmd == "heading":
        client.send_heading_adjust(_number(args[0]))
    elif cmd == "lowpower":
        client.send_low_power(_on_off(args[0]))
    elif cmd == "sail":
        if len(args) < 2:
            raise CommandError("usage: sail <name> <v>")
        client.send_sail_control(args[0], _number(args[1]))
    else:
        raise CommandError(f"unknown command {cmd!r}; try 'help'")
    return None


@app.command()
def repl(ctx: typer.Context):
    """Interactive prompt for sending individual controls."""
    cfg: ClientConfig = ctx.obj

    async def main() -> None:
        client = _make_client(cfg)
        client.connect()
        console.print(REPL_HELP)
        try:
            while True:
                line = (await ainput("dyb> ")).strip()
                if line in {"quit", "exit"}:
                    break
                try:
                    output = execute_command(client, line)
                except CommandError as e:
                    console.print(f"[red]{e}[/]")
                    continue
                if output:
                    console.print(output)
        except EOFError:
            pass
        finally:
            client.disconnect()

    _run(main)


@app.command()
def send(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Control key, e.g. BoatRuder"),
    value: str = typer.Argument(..., help="JSON value; bare words are sent as strings"),
    timeout: float = typer.Option(5.0, help="Seconds to wait for the connection"),
):
    """Connect, announce, send one control value and disconnect."""
    cfg: ClientConfig = ctx.obj.with_overrides(auto_reconnect=False)
    sent = False

    async def main() -> None:
        nonlocal sent
        client = _make_client(cfg)
        client.connect()
        try:
            await client.wait_connected(timeout=timeout)
            sent = client.send_control(key, _json_value(value))
            # give the transport a moment to flush before aborting it
            await asyncio.sleep(0.2)
        except asyncio.TimeoutError:
            console.print(f"[red]Could not connect to {cfg.host}:{cfg.port} within {timeout}s[/]")
        finally:
            client.disconnect()

    _run(main)
    if not sent:
        raise typer.Exit(code=1)


@app.command()
def keys():
    """List the well-known control keys."""
    table = Table(title="Control Keys")
    table.add_column("Name")
    table.add_column("Wire key")
    for member in ControlKey:
        table.add_row(member.name, member.value)
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
