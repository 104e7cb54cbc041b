"""Link controller behaviour against a fake radio and stream."""
from __future__ import annotations

import queue

import pytest

from controlrc.link.config import SPP_UUID
from controlrc.link.controller import LinkController
from controlrc.link.errors import LinkFailure
from controlrc.link.events import ConnectionState
from controlrc.link.permissions import Capability, PermissionModel, StaticPermissions
from controlrc.tests.fakes import FakeRadio, drain


def test_radio_absent_reports_unavailable(link_config, events) -> None:
    radio = FakeRadio(available=False)
    ctrl = LinkController(link_config, radio, StaticPermissions())
    ctrl.subscribe(events)

    result = ctrl.connect()

    assert result.failure is LinkFailure.UNAVAILABLE
    assert ctrl.state is ConnectionState.DISCONNECTED
    assert not ctrl.is_available
    assert all(connected is False for connected, _ in drain(events))


def test_radio_powered_off_reports_disabled(link_config, events) -> None:
    ctrl = LinkController(link_config, FakeRadio(enabled=False), StaticPermissions())
    ctrl.subscribe(events)

    result = ctrl.connect()

    assert result.failure is LinkFailure.DISABLED
    assert not ctrl.is_enabled
    assert drain(events) == [(False, result.message)]


def test_missing_permission_checked_before_radio(link_config, radio, events) -> None:
    ctrl = LinkController(link_config, radio, StaticPermissions({Capability.CONNECT}))
    ctrl.subscribe(events)
    radio.available = False

    result = ctrl.connect()

    assert result.failure is LinkFailure.PERMISSION_DENIED
    assert result.detail == "scan"
    assert radio.calls == []


def test_peer_not_in_bonded_set(link_config, events) -> None:
    radio = FakeRadio(bonded=("OtherDevice",))
    ctrl = LinkController(link_config, radio, StaticPermissions())
    ctrl.subscribe(events)

    result = ctrl.connect()

    assert result.failure is LinkFailure.PEER_NOT_FOUND
    assert "ESP32-AUTO" in result.message
    assert "open_stream" not in radio.calls


def test_peer_name_must_match_exactly(link_config) -> None:
    radio = FakeRadio(bonded=("esp32-auto", "ESP32-AUTO-2"))
    ctrl = LinkController(link_config, radio, StaticPermissions())

    assert ctrl.connect().failure is LinkFailure.PEER_NOT_FOUND


def test_enumeration_without_permission_finds_nothing(link_config, radio) -> None:
    ctrl = LinkController(link_config, radio, StaticPermissions({Capability.SCAN}))

    assert ctrl.find_peer() is None
    assert radio.calls == []


def test_legacy_model_enumerates_with_location_only(link_config, radio) -> None:
    perms = StaticPermissions({Capability.LOCATION}, PermissionModel.LOCATION)
    ctrl = LinkController(link_config, radio, perms)

    assert ctrl.connect().ok


def test_successful_connect(controller, radio, events) -> None:
    result = controller.connect()

    assert result.ok
    assert controller.is_connected
    assert controller.state is ConnectionState.CONNECTED
    assert controller.peer.name == "ESP32-AUTO"
    assert radio.calls == ["bonded_peers", "cancel_discovery", "open_stream"]
    _, service_uuid, timeout = radio.open_args
    assert service_uuid == SPP_UUID
    assert timeout == controller.config.connect_timeout_s
    assert drain(events) == [(True, "connected to ESP32-AUTO")]


def test_cancel_discovery_failure_does_not_fail_connect(controller, radio) -> None:
    radio.cancel_error = RuntimeError("adapter busy")

    assert controller.connect().ok


def test_connect_while_connected_keeps_single_link(controller, radio) -> None:
    controller.connect()
    result = controller.connect()

    assert result.ok
    assert radio.calls.count("open_stream") == 1


def test_handshake_failure(controller, radio, events) -> None:
    radio.open_error = ConnectionRefusedError(111, "Connection refused")

    result = controller.connect()

    assert result.failure is LinkFailure.IO_FAILURE
    assert "Connection refused" in result.detail
    assert controller.state is ConnectionState.DISCONNECTED
    assert radio.handles == []
    assert drain(events) == [(False, result.message)]
    assert result.message.startswith("connection error:")


def test_half_built_link_is_released(controller, radio) -> None:
    radio.fail_output = True

    result = controller.connect()

    assert result.failure is LinkFailure.IO_FAILURE
    assert radio.handles[-1].closed
    assert not controller.is_connected
    assert controller.peer is None


def test_send_writes_single_byte_and_flushes(controller, radio) -> None:
    controller.connect()

    assert controller.send(b"F") is True
    assert bytes(radio.sink.written) == b"F"
    assert radio.sink.flushes == 1


def test_send_accepts_text(controller, radio) -> None:
    controller.connect()
    controller.send("L")

    assert bytes(radio.sink.written) == b"L"


def test_send_without_link_is_silent(controller, events) -> None:
    assert controller.send(b"F") is False
    assert events.empty()


def test_send_after_peer_drop(controller, radio, events) -> None:
    controller.connect()
    drain(events)
    radio.sink.fail_writes = True

    assert controller.send(b"S") is False
    assert controller.state is ConnectionState.DISCONNECTED
    assert radio.handles[-1].closed
    assert radio.sink.closed
    assert drain(events) == [(False, "connection lost")]

    # the link is gone; later sends are plain "not sent"
    assert controller.send(b"S") is False
    assert events.empty()


def test_send_on_dead_handle_reports_connection_lost(controller, radio, events) -> None:
    controller.connect()
    drain(events)
    radio.handles[-1].closed = True

    assert controller.send(b"F") is False
    assert drain(events) == [(False, "connection lost")]
    assert radio.sink.closed
    assert radio.sink.written == bytearray()
    assert controller.peer is None

    assert controller.send(b"F") is False
    assert events.empty()


def test_reconnect_releases_dead_link(controller, radio, events) -> None:
    controller.connect()
    first = radio.handles[-1]
    first.closed = True

    assert controller.connect().ok
    assert first.sink.closed
    assert len(radio.handles) == 2
    assert controller.send(b"F")
    assert bytes(radio.handles[-1].sink.written) == b"F"
    assert first.sink.written == bytearray()


def test_send_rejects_non_ascii_text(controller, radio) -> None:
    assert controller.send("\u00e9") is False

    controller.connect()
    with pytest.raises(ValueError):
        controller.send("\u00e9")
    assert radio.sink.written == bytearray()
    assert controller.is_connected


def test_disconnect_when_idle_still_notifies(controller, events) -> None:
    controller.disconnect()
    controller.disconnect()

    assert drain(events) == [(False, "disconnected"), (False, "disconnected")]
    assert controller.state is ConnectionState.DISCONNECTED


def test_disconnect_closes_sink_then_handle(controller, radio, events) -> None:
    controller.connect()
    drain(events)

    controller.disconnect()

    assert radio.sink.closed
    assert radio.handles[-1].closed
    assert drain(events) == [(False, "disconnected")]


def test_disconnect_swallows_close_errors(controller, radio, events) -> None:
    controller.connect()
    radio.sink.fail_close = True

    controller.disconnect()

    assert radio.handles[-1].closed
    assert not controller.is_connected
    assert drain(events)[-1] == (False, "disconnected")


def test_state_tracks_link_across_operations(controller, radio) -> None:
    def check() -> None:
        connected = controller.state is ConnectionState.CONNECTED
        assert connected == (controller.peer is not None)

    steps = [
        controller.connect,
        lambda: controller.send(b"F"),
        controller.disconnect,
        controller.disconnect,
        controller.connect,
        lambda: setattr(radio.sink, "fail_writes", True),
        lambda: controller.send(b"B"),
        controller.connect,
    ]
    for step in steps:
        step()
        check()
    assert controller.is_connected


def test_subscribe_replaces_previous_sink(controller, events) -> None:
    other: queue.Queue = queue.Queue()
    controller.subscribe(other)

    controller.disconnect()

    assert events.empty()
    assert drain(other) == [(False, "disconnected")]
