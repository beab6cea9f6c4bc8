# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/initiator.py

from __future__ import annotations

import logging
import threading
from typing import Optional

from replboot.config.models import ProbeSettings
from replboot.datastore.channel import AdminChannel, ChannelError, CommandRejected, expected_hosts

from .models import (
    InitiationFailure,
    InitiationResult,
    InitiationStatus,
    TopologySpec,
)
from .probe import ReadinessProbe

log = logging.getLogger("replboot")

# Data store code for "this member already has a replication config".
ALREADY_INITIALIZED_CODE = 23


class TopologyInitiator:
    """
    Issues the one-time replication initialization against a seed member.

    Safe to call repeatedly: members that already carry the same topology
    yield ALREADY_INITIATED, members carrying a different one yield
    FAILED(CONFLICT) and nothing is sent.
    """

    def __init__(
        self,
        channel: AdminChannel,
        *,
        probe: Optional[ReadinessProbe] = None,
        reachability: Optional[ProbeSettings] = None,
    ):
        self.channel = channel
        self.probe = probe or ReadinessProbe()
        self.reachability = reachability or ProbeSettings(
            timeout_seconds=10.0, poll_interval_seconds=2.0, max_errors=3
        )

    # ------------------------------------------------------------------
    def select_seed(self, topology: TopologySpec, *, cancel: Optional[threading.Event] = None) -> Optional[int]:
        """Lowest ordinal whose data-plane port answers, or None. Every poll honours `cancel`."""
        for member in topology.members:
            result = self.probe.wait(
                lambda: self.channel.ping(member.address),
                timeout=self.reachability.timeout_seconds,
                poll_interval=self.reachability.poll_interval_seconds,
                description=f"{member.address} reachable",
                cancel=cancel,
            )
            if result.ready:
                return member.ordinal
            log.info("[initiator] %s not reachable (%s)", member.address, result.outcome.value)
        return None

    def initiate(self, topology: TopologySpec, seed_ordinal: int) -> InitiationResult:
        existing = self._existing(topology, seed_ordinal)
        if existing is not None:
            return existing

        seed = topology.member(seed_ordinal)
        try:
            seed_status = self.channel.member_status(seed.address)
        except ChannelError as e:
            return self._failed(seed_ordinal, InitiationFailure.UNREACHABLE, f"{seed.address}: {e}")
        if seed_status.initialized:
            # Raced with another writer between the sweep and now.
            return self._existing(topology, seed_ordinal) or self._failed(
                seed_ordinal, InitiationFailure.REJECTED, f"{seed.address} initialized concurrently"
            )

        log.info(
            "[initiator] initiating %s on %s with %d members",
            topology.replication_set_id, seed.address, topology.size,
        )
        try:
            self.channel.initiate(seed.address, topology, seed_ordinal)
        except CommandRejected as e:
            if e.code == ALREADY_INITIALIZED_CODE:
                again = self._existing(topology, seed_ordinal)
                if again is not None:
                    return again
            return self._failed(seed_ordinal, InitiationFailure.REJECTED, str(e))
        except ChannelError as e:
            return self._failed(seed_ordinal, InitiationFailure.UNREACHABLE, f"{seed.address}: {e}")

        return InitiationResult(
            InitiationStatus.INITIATED,
            seed_ordinal=seed_ordinal,
            message=f"initiated {topology.replication_set_id} on {seed.address}",
        )

    # ------------------------------------------------------------------
    def _existing(self, topology: TopologySpec, seed_ordinal: int) -> Optional[InitiationResult]:
        want_hosts = set(expected_hosts(topology, self.channel.port))
        for member in topology.members:
            try:
                status = self.channel.member_status(member.address)
            except ChannelError:
                continue
            if not status.initialized:
                continue

            if status.set_name == topology.replication_set_id and set(status.hosts) == want_hosts:
                return InitiationResult(
                    InitiationStatus.ALREADY_INITIATED,
                    seed_ordinal=seed_ordinal,
                    message=f"{member.address} already in {status.set_name}",
                )
            return self._failed(
                seed_ordinal,
                InitiationFailure.CONFLICT,
                (
                    f"{member.address} belongs to set '{status.set_name}' with members "
                    f"{sorted(status.hosts)}; wanted '{topology.replication_set_id}' with {sorted(want_hosts)}"
                ),
            )
        return None

    @staticmethod
    def _failed(seed_ordinal: int, reason: InitiationFailure, message: str) -> InitiationResult:
        return InitiationResult(InitiationStatus.FAILED, seed_ordinal=seed_ordinal, reason=reason, message=message)
