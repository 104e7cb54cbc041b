"""End-to-end over loopback TCP: controller + SimRadio against SimulatedPeer."""
from __future__ import annotations

import asyncio
import queue
import time

import pytest

from controlrc.link.config import LinkConfig
from controlrc.link.controller import LinkController
from controlrc.link.sim_peer import SimulatedPeer
from controlrc.session.commands import Control
from controlrc.session.coordinator import SessionCoordinator
from controlrc.tests.fakes import drain


def wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def peer():
    with SimulatedPeer(port=0) as p:
        yield p


def sim_config(peer: SimulatedPeer, **overrides) -> LinkConfig:
    return LinkConfig(transport="sim", sim_port=peer.address[1], connect_timeout_s=2.0, **overrides)


def test_commands_reach_simulated_peer(peer: SimulatedPeer) -> None:
    controller = LinkController.from_config(sim_config(peer))
    events: queue.Queue = queue.Queue()
    controller.subscribe(events)

    assert controller.connect().ok
    assert controller.send(b"F")
    assert controller.send("S")
    assert wait_for(lambda: bytes(peer.received) == b"FS")

    controller.disconnect()
    assert drain(events) == [(True, "connected to ESP32-AUTO"), (False, "disconnected")]


def test_peer_dropping_the_link_is_reported_once(peer: SimulatedPeer) -> None:
    controller = LinkController.from_config(sim_config(peer))
    events: queue.Queue = queue.Queue()
    controller.subscribe(events)

    assert controller.connect().ok
    assert controller.send(b"F")
    assert wait_for(lambda: bytes(peer.received) == b"F")

    peer.drop_clients()
    assert wait_for(lambda: not controller.is_connected)

    assert [controller.send(b"S") for _ in range(3)] == [False, False, False]
    assert drain(events) == [(True, "connected to ESP32-AUTO"), (False, "connection lost")]
    assert bytes(peer.received) == b"F"
    assert controller.peer is None


def test_connect_fails_when_peer_is_not_listening(peer: SimulatedPeer) -> None:
    config = sim_config(peer)
    peer.stop()
    controller = LinkController.from_config(config)
    events: queue.Queue = queue.Queue()
    controller.subscribe(events)

    result = controller.connect()

    assert not result.ok
    assert not controller.is_connected
    [(connected, message)] = drain(events)
    assert not connected
    assert message.startswith("connection error")


def test_session_drives_simulated_peer(peer: SimulatedPeer) -> None:
    async def scenario():
        async with SessionCoordinator(LinkController.from_config(sim_config(peer))) as session:
            await session.connect()
            await session.press(Control.LEFT, True)
            await session.press(Control.LEFT, False)
            await session.toggle_light()
            return session.view

    view = asyncio.run(scenario())

    assert view.light_on
    assert wait_for(lambda: bytes(peer.received) == b"LCN")
