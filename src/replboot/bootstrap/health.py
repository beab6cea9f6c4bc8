# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/health.py

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from replboot.datastore.channel import AdminChannel, ChannelError
from replboot.utils.clock import Clock, SystemClock

from .models import HealthState, MemberRole, TopologyHealth, TopologySpec

log = logging.getLogger("replboot")


class TopologyHealthChecker:
    """
    Classifies a topology from each member's self-reported role.
    Every call builds a complete new snapshot; nothing carries over.
    """

    def __init__(
        self,
        channel: AdminChannel,
        *,
        clock: Optional[Clock] = None,
        grace_seconds: float = 120.0,
    ):
        self.channel = channel
        self.clock = clock or SystemClock()
        self.grace = timedelta(seconds=grace_seconds)

    def check(self, topology: TopologySpec, initiated_at: Optional[datetime] = None) -> TopologyHealth:
        roles: Dict[int, MemberRole] = {}
        unreachable: List[int] = []
        uninitialized: List[int] = []

        for m in topology.members:
            try:
                status = self.channel.member_status(m.address)
            except ChannelError as e:
                log.debug("[health] %s unreachable: %s", m.address, e)
                roles[m.ordinal] = MemberRole.UNKNOWN
                unreachable.append(m.ordinal)
                continue
            if not status.initialized or status.set_name != topology.replication_set_id:
                roles[m.ordinal] = MemberRole.UNKNOWN
                uninitialized.append(m.ordinal)
            else:
                roles[m.ordinal] = status.role

        observed_at = self.clock.now()
        in_grace = initiated_at is not None and observed_at - initiated_at <= self.grace
        state, detail = self._classify(topology.size, roles, unreachable, uninitialized, in_grace)

        return TopologyHealth(
            state=state,
            roles=roles,
            observed_at=observed_at,
            unreachable=tuple(unreachable),
            detail=detail,
        )

    @staticmethod
    def _classify(
        n: int,
        roles: Dict[int, MemberRole],
        unreachable: List[int],
        uninitialized: List[int],
        in_grace: bool,
    ) -> tuple[HealthState, str]:
        reachable = n - len(unreachable)
        initialized = reachable - len(uninitialized)
        primaries = sum(1 for r in roles.values() if r == MemberRole.PRIMARY)
        serving = sum(1 for r in roles.values() if r.serving)
        majority = n // 2 + 1

        if reachable == 0:
            return HealthState.UNREACHABLE, "no member reachable"

        if initialized == 0:
            if unreachable:
                return HealthState.UNREACHABLE, f"members {unreachable} unreachable, none initialized"
            return HealthState.UNINITIALIZED, "no member has a replication config"

        if unreachable:
            if serving >= majority and primaries <= 1:
                return HealthState.DEGRADED, f"members {unreachable} unreachable, {serving}/{n} serving"
            return HealthState.UNREACHABLE, f"members {unreachable} unreachable, only {serving}/{n} serving"

        if primaries > 1:
            return HealthState.DEGRADED, f"{primaries} members claim primary"

        if primaries == 1 and serving == n:
            return HealthState.HEALTHY, f"1 primary, {n - 1} secondaries"

        if uninitialized:
            if in_grace:
                return HealthState.INITIALIZING, f"members {uninitialized} have not joined yet"
            return HealthState.DEGRADED, f"members {uninitialized} never joined"

        unsettled = sorted(o for o, r in roles.items() if not r.serving)
        if in_grace:
            return HealthState.CONVERGING, f"roles not settled (members {unsettled}, primaries={primaries})"
        return HealthState.DEGRADED, f"roles not settled after grace window (members {unsettled}, primaries={primaries})"
