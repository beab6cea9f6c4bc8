# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/identity.py

from __future__ import annotations

from typing import Tuple

from replboot.config.models import ClusterSpec

from .models import MemberIdentity, TopologySpec


def stable_name(spec: ClusterSpec, ordinal: int) -> str:
    return f"{spec.member_prefix}-{ordinal}"


def member_address(spec: ClusterSpec, ordinal: int) -> str:
    """
    <prefix>-<ordinal>.<scope>[.<domain>]

    The headless Service is named after the scope, so inside the scope's
    namespace "member-0.test" is the pod's stable DNS name.
    """
    host = f"{stable_name(spec, ordinal)}.{spec.scope}"
    if spec.domain:
        host = f"{host}.{spec.domain}"
    return host


class MemberIdentityAllocator:
    """
    Ordinal-indexed identities. No I/O and no stored state: the same
    ClusterSpec always yields the same sequence, so a restarted run
    recomputes the topology instead of looking it up.
    """

    def allocate(self, spec: ClusterSpec) -> Tuple[MemberIdentity, ...]:
        if spec.members < 1:
            raise ValueError("a cluster needs at least one member")
        return tuple(
            MemberIdentity(
                ordinal=i,
                stable_name=stable_name(spec, i),
                address=member_address(spec, i),
            )
            for i in range(spec.members)
        )

    def topology(self, spec: ClusterSpec) -> TopologySpec:
        return TopologySpec(
            replication_set_id=spec.replication_set_id,
            members=self.allocate(spec),
        )
