"""Shared fixtures for link and session tests."""
from __future__ import annotations

import os
import queue
import tempfile

import pytest

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="controlrc-logs-"))

from controlrc.link.config import LinkConfig  # noqa: E402
from controlrc.link.controller import LinkController  # noqa: E402
from controlrc.link.permissions import StaticPermissions  # noqa: E402
from controlrc.tests.fakes import FakeRadio  # noqa: E402


@pytest.fixture
def link_config() -> LinkConfig:
    return LinkConfig(target_peer_name="ESP32-AUTO", transport="sim")


@pytest.fixture
def radio() -> FakeRadio:
    return FakeRadio()


@pytest.fixture
def events() -> "queue.Queue":
    return queue.Queue()


@pytest.fixture
def controller(link_config, radio, events) -> LinkController:
    ctrl = LinkController(link_config, radio, StaticPermissions())
    ctrl.subscribe(events)
    return ctrl
