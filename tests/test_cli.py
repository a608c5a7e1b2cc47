import pytest
from typer.testing import CliRunner

from conftest import attach_dummy_transport


def _connected_client():
    from dybclient.connection import DYBClient

    client = DYBClient()
    return client, attach_dummy_transport(client)


def test_parse_compass_accepts_kind_in_either_position():
    from dybclient.display import CompassReading, parse_compass

    assert parse_compass("270.NW.HDG") == CompassReading("270", "NW", "HDG")
    assert parse_compass("045.COG.NE") == CompassReading("045", "NE", "COG")
    assert str(parse_compass("270.NW.HDG")) == "270° NW (HDG)"
    assert parse_compass("270NW") is None


def test_execute_command_sends_controls():
    from dybclient.cli import execute_command

    client, transport = _connected_client()
    for line in [
        "rudder 0.5",
        "throttle 2 1",
        "engine on",
        "thruster -0.7",
        "autopilot off",
        "heading 10",
        "sail Main.Sheet 0.6",
        "lowpower on",
        'raw Custom {"a": 1}',
    ]:
        assert execute_command(client, line) is None

    assert transport.written == [
        b'1{"BoatRuder":{"t":"F","v":0.5}}\x00',
        b'1{"BoatThrottle1":{"t":"I","v":1}}\x00',
        b'1{"BoatEngineOn":{"t":"B","v":true}}\x00',
        b'1{"BowThruster":{"t":"I","v":-1}}\x00',
        b'1{"AP_active":{"t":"B","v":false}}\x00',
        b'1{"AP_set":{"t":"I","v":10}}\x00',
        b'1{"Sail.Main.Sheet":{"t":"F","v":0.6}}\x00',
        b'1{"LoPowerSwitch":{"t":"B","v":true}}\x00',
        b'1{"Custom":{"t":"J","v":{"a":1}}}\x00',
    ]


def test_execute_command_reports_state_and_errors():
    from dybclient.cli import CommandError, execute_command

    client, transport = _connected_client()
    assert execute_command(client, "state") == "CONNECTED"
    assert execute_command(client, "") is None
    assert "rudder" in execute_command(client, "help")

    for bad in [
        "rudder",
        "rudder fast",
        "engine maybe",
        "fly 1",
        "sail Main.Size",
        "throttle 0.5 nan",
        "throttle 0.5 inf",
        "throttle 0.5 second",
    ]:
        with pytest.raises(CommandError):
            execute_command(client, bad)
    assert transport.written == []


@pytest.mark.asyncio
async def test_demo_sequence_sends_every_step():
    from dybclient.cli import DEMO_SEQUENCE, run_demo_sequence

    client, transport = _connected_client()
    await run_demo_sequence(client, speed=0)

    steps = sum(len(group) for _, group in DEMO_SEQUENCE)
    assert len(transport.written) == steps
    assert transport.written[0] == b'1{"BoatEngineOn":{"t":"B","v":true}}\x00'
    assert transport.written[-1] == b'1{"BoatEngineOn":{"t":"B","v":false}}\x00'


def test_keys_command_lists_control_keys(monkeypatch):
    from dybclient.cli import app

    monkeypatch.setattr("dybclient.cli.configure_root_logging", lambda level: None)
    result = CliRunner().invoke(app, ["keys"])
    assert result.exit_code == 0
    assert "BoatRuder" in result.output
    assert "PlayerMessenger" in result.output


def test_send_command_fails_without_game(monkeypatch):
    from dybclient.cli import app
    from conftest import free_port

    monkeypatch.delenv("DYB_CONFIG", raising=False)
    monkeypatch.setattr("dybclient.cli.configure_root_logging", lambda level: None)
    result = CliRunner().invoke(
        app, ["--host", "127.0.0.1", "--port", str(free_port()), "send", "BoatRuder", "0.5", "--timeout", "0.3"]
    )
    assert result.exit_code == 1
