# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/datastore/channel.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

from replboot.bootstrap.models import MemberRole, TopologySpec


class ChannelError(RuntimeError):
    """The member could not be reached or did not answer usefully."""


class CommandRejected(ChannelError):
    """The member answered, but refused the command."""

    def __init__(self, message: str, *, code: Optional[int] = None, code_name: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.code_name = code_name


@dataclass(frozen=True)
class MemberStatus:
    """What one member reports about itself and its replication config."""

    initialized: bool
    role: MemberRole = MemberRole.UNKNOWN
    set_name: Optional[str] = None
    hosts: Tuple[str, ...] = ()      # configured member hosts, as "host:port"


class AdminChannel(Protocol):
    """
    Remote administrative access to individual data-store members,
    addressed by member address.
    """

    port: int

    def ping(self, address: str) -> bool: ...
    def member_status(self, address: str) -> MemberStatus: ...
    def initiate(self, address: str, topology: TopologySpec, seed_ordinal: int) -> None: ...


def expected_hosts(topology: TopologySpec, port: int) -> Tuple[str, ...]:
    return tuple(f"{m.address}:{port}" for m in topology.members)
