"""Capability checks gating peer enumeration and connection.

Two permission models exist. Under ``CAPABILITIES`` connecting needs CONNECT
and SCAN and listing bonded peers needs CONNECT. Under the legacy
``LOCATION`` model connecting needs LOCATION and enumeration is always
allowed.
"""
from __future__ import annotations

import grp
import os
from enum import Enum
from typing import FrozenSet, Iterable, Set


class Capability(Enum):
    CONNECT = "connect"
    SCAN = "scan"
    LOCATION = "location"


class PermissionModel(Enum):
    CAPABILITIES = "capabilities"
    LOCATION = "location"


class PermissionChecker:
    def __init__(self, model: PermissionModel = PermissionModel.CAPABILITIES) -> None:
        self.model = model

    def has(self, capability: Capability) -> bool:
        raise NotImplementedError

    def required_for_connect(self) -> FrozenSet[Capability]:
        if self.model is PermissionModel.CAPABILITIES:
            return frozenset({Capability.CONNECT, Capability.SCAN})
        return frozenset({Capability.LOCATION})

    def missing_for_connect(self) -> Set[Capability]:
        return {cap for cap in self.required_for_connect() if not self.has(cap)}

    def can_connect(self) -> bool:
        return not self.missing_for_connect()

    def can_enumerate(self) -> bool:
        if self.model is PermissionModel.CAPABILITIES:
            return self.has(Capability.CONNECT)
        return True


class StaticPermissions(PermissionChecker):
    """Fixed grant set, for tests and explicit config overrides."""

    def __init__(
        self,
        granted: Iterable[Capability] = tuple(Capability),
        model: PermissionModel = PermissionModel.CAPABILITIES,
    ) -> None:
        super().__init__(model)
        self.granted = frozenset(granted)

    def has(self, capability: Capability) -> bool:
        return capability in self.granted


class HostPermissions(PermissionChecker):
    """BlueZ host: root or members of the bluetooth group may use the radio."""

    def __init__(self, model: PermissionModel = PermissionModel.CAPABILITIES, group: str = "bluetooth") -> None:
        super().__init__(model)
        self.group = group

    def _in_radio_group(self) -> bool:
        if os.geteuid() == 0:
            return True
        try:
            gid = grp.getgrnam(self.group).gr_gid
        except KeyError:
            return False
        return gid in os.getgroups() or gid == os.getegid()

    def has(self, capability: Capability) -> bool:
        if capability is Capability.LOCATION:
            return True
        return self._in_radio_group()


def make_permissions(model: str, granted=None) -> PermissionChecker:
    perm_model = PermissionModel(model)
    if granted is not None:
        return StaticPermissions({Capability(g) for g in granted}, perm_model)
    return HostPermissions(perm_model)
