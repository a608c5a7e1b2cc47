import logging

import pytest

from conftest import attach_dummy_transport


def _client(**overrides):
    from dybclient.connection import DYBClient

    client = DYBClient(**overrides)
    transport = attach_dummy_transport(client)
    return client, transport


def test_throttle_end_to_end_payload():
    client, transport = _client(group_id=1)
    assert client.send_throttle(0.25) is True
    assert transport.written == [b'1{"BoatThrottle0":{"t":"F","v":0.25}}\x00']


def test_rudder_is_clamped():
    client, transport = _client()
    client.send_rudder(2.0)
    client.send_rudder(-5.0)
    client.send_rudder(0.5)
    assert transport.written == [
        b'1{"BoatRuder":{"t":"I","v":1}}\x00',
        b'1{"BoatRuder":{"t":"I","v":-1}}\x00',
        b'1{"BoatRuder":{"t":"F","v":0.5}}\x00',
    ]


def test_bow_thruster_is_rounded_and_clamped():
    client, transport = _client()
    client.send_bow_thruster(0.6)
    client.send_bow_thruster(-4)
    assert transport.written == [
        b'1{"BowThruster":{"t":"I","v":1}}\x00',
        b'1{"BowThruster":{"t":"I","v":-1}}\x00',
    ]


def test_throttle_second_engine_and_unknown_engine():
    client, transport = _client()
    assert client.send_throttle(-2, engine=1) is True
    assert client.send_throttle(0.5, engine=4) is False
    assert transport.written == [b'1{"BoatThrottle1":{"t":"I","v":-1}}\x00']


def test_sail_controls():
    client, transport = _client()
    client.send_sail_control("Main.Size", 1.7)
    client.send_sail_control("Genoa.SheetLeft", -0.2)
    assert client.send_sail_control("Jib.Size", 0.5) is False
    assert transport.written == [
        b'1{"Sail.Main.Size":{"t":"I","v":1}}\x00',
        b'1{"Sail.Genoa.SheetLeft":{"t":"I","v":0}}\x00',
    ]


def test_autopilot_and_heading_pass_values_through():
    client, transport = _client()
    client.send_autopilot(True)
    client.send_heading_adjust(-10)
    client.send_heading_adjust(12.5)
    assert transport.written == [
        b'1{"AP_active":{"t":"B","v":true}}\x00',
        b'1{"AP_set":{"t":"I","v":-10}}\x00',
        b'1{"AP_set":{"t":"F","v":12.5}}\x00',
    ]


def test_engine_and_low_power_switches():
    client, transport = _client()
    client.send_engine_state(True)
    client.send_low_power(False)
    assert transport.written == [
        b'1{"BoatEngineOn":{"t":"B","v":true}}\x00',
        b'1{"LoPowerSwitch":{"t":"B","v":false}}\x00',
    ]


def test_subscription_announcement():
    client, transport = _client(user_id="3e53b065", active=True)
    client.send_subscription()
    client.send_subscription("abc", active=False)
    assert transport.written == [
        b'1{"PlayerMessenger":{"t":"S","v":"active:3e53b065"}}\x00',
        b'1{"PlayerMessenger":{"t":"S","v":":abc"}}\x00',
    ]


def test_subscription_without_user_id_is_skipped():
    client, transport = _client()
    assert client.send_subscription() is False
    assert transport.written == []


def test_send_message_with_several_keys_and_custom_group():
    client, transport = _client(group_id="42")
    client.send_message({"BoatRuder": 0.5, "NewKey": {"a": [1, 2]}})
    assert transport.written == [
        b'42{"BoatRuder":{"t":"F","v":0.5},"NewKey":{"t":"J","v":{"a":[1,2]}}}\x00'
    ]


def test_non_finite_values_are_not_sent():
    client, transport = _client()
    assert client.send_rudder(float("nan")) is False
    assert client.send_throttle(float("inf")) is False
    assert client.send_control("AP_set", float("nan")) is False
    assert transport.written == []


def test_unserialisable_value_is_logged_not_raised(caplog):
    client, transport = _client()
    with caplog.at_level(logging.ERROR):
        assert client.send_control("Thing", object()) is False
    assert transport.written == []
    assert "Error sending message" in caplog.text


def test_send_while_disconnected_is_a_warning(caplog):
    from dybclient.connection import ConnectionState, DYBClient

    client = DYBClient()
    with caplog.at_level(logging.WARNING):
        assert client.send_rudder(0.5) is False
    assert client.get_state() is ConnectionState.DISCONNECTED
    assert "not connected" in caplog.text


def test_disconnect_aborts_transport_and_emits_once():
    from dybclient.connection import ConnectionState

    client, transport = _client()
    events = []
    client.on("disconnected", lambda: events.append("disconnected"))

    client.disconnect()
    client.disconnect()

    assert transport.aborted is True
    assert events == ["disconnected"]
    assert client.state is ConnectionState.DISCONNECTED
    assert client.send_rudder(0.1) is False


def test_inbound_chunks_are_dispatched():
    client, _ = _client()
    messages = []
    compass = []
    client.on("message", messages.append)
    client.on("compassDisplay", compass.append)

    client._protocol.data_received(b'1{"AP_display":{"t":"S","v":"090.E.')
    assert messages == []
    client._protocol.data_received(b'COG"}}\n1garbage\n1{"X":{"t":"I","v":3}}\n')

    assert compass == ["090.E.COG"]
    assert [list(m) for m in messages] == [["AP_display"], ["X"]]
    assert client.is_connected()


def test_unrecognised_tag_does_not_hide_sibling_keys():
    client, _ = _client()
    messages = []
    compass = []
    client.on("message", messages.append)
    client.on("compassDisplay", compass.append)

    client._protocol.data_received(
        b'1{"AP_display":{"t":"S","v":"270.NW.HDG"},"Future":{"t":"L","v":3}}\n'
        b'1{"BoatRuder":{"t":"F","v":0.5},"Broken":1}\n'
    )

    assert compass == ["270.NW.HDG"]
    assert [sorted(m) for m in messages] == [["AP_display", "Future"], ["BoatRuder"]]
    assert messages[0]["Future"].tag == "L"


@pytest.mark.asyncio
async def test_error_on_connected_session_schedules_reconnect():
    from dybclient.connection import ConnectionState

    client, _ = _client(reconnect_delay=30)
    events = []
    client.on("error", lambda exc: events.append(("error", type(exc).__name__)))
    client.on("disconnected", lambda: events.append(("disconnected",)))

    client._protocol.connection_lost(ConnectionResetError("reset by peer"))

    assert events == [("error", "ConnectionResetError"), ("disconnected",)]
    assert client.state is ConnectionState.DISCONNECTED
    assert client.reconnect_pending is True

    client.disconnect()
    assert client.reconnect_pending is False


def test_non_standard_key_is_sent_and_noted(caplog):
    client, transport = _client()
    with caplog.at_level(logging.DEBUG, logger="dybclient.connection"):
        assert client.send_control("Custom.Light", True) is True
        assert client.send_control("BoatRuder", 0.5) is True
    assert transport.written[0] == b'1{"Custom.Light":{"t":"B","v":true}}\x00'
    assert caplog.text.count("non-standard control key") == 1
