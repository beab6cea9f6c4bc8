# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/kube/readiness.py

from __future__ import annotations

import logging

from replboot.bootstrap.identity import stable_name
from replboot.bootstrap.planner import claim_name
from replboot.config.models import ClusterSpec

from .kubectl import KubectlRunner

log = logging.getLogger("replboot")


def _scheduled(pod: dict) -> bool:
    for cond in pod.get("status", {}).get("conditions", []) or []:
        if cond.get("type") == "PodScheduled":
            return cond.get("status") == "True"
    return False


class KubeReadiness:
    """Side-effect-free readiness views used while awaiting infrastructure."""

    def __init__(self, kubectl: KubectlRunner):
        self.kubectl = kubectl

    def compute_ready(self, spec: ClusterSpec) -> bool:
        """All N member pods have been placed on a node."""
        pods = self.kubectl.list_items("pods", spec.scope, selector=f"app={spec.member_prefix}")
        by_name = {p.get("metadata", {}).get("name"): p for p in pods}
        wanted = [stable_name(spec, i) for i in range(spec.members)]
        scheduled = [n for n in wanted if n in by_name and _scheduled(by_name[n])]
        log.debug("[readiness] %s: %d/%d members scheduled", spec.scope, len(scheduled), spec.members)
        return len(scheduled) == spec.members

    def storage_bound(self, spec: ClusterSpec) -> bool:
        """All N member claims are Bound."""
        claims = self.kubectl.list_items("persistentvolumeclaims", spec.scope)
        phases = {c.get("metadata", {}).get("name"): c.get("status", {}).get("phase") for c in claims}
        bound = [i for i in range(spec.members) if phases.get(claim_name(spec, i)) == "Bound"]
        log.debug("[readiness] %s: %d/%d claims bound", spec.scope, len(bound), spec.members)
        return len(bound) == spec.members
