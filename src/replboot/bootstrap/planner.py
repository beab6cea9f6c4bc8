# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/planner.py

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set

from replboot.config.models import ClusterSpec, ResourceDescriptor

from ..observers.dispatcher import EventBus
from ..observers.events import PlanComputed, PlanFailed, new_ctx


class UnknownDependencyError(ValueError):
    pass


class CyclicDependencyError(ValueError):
    pass


class DuplicateResourceError(ValueError):
    pass


def claim_name(spec: ClusterSpec, ordinal: int) -> str:
    # Matches the claim a StatefulSet volumeClaimTemplate named "data" would make.
    return f"data-{spec.member_prefix}-{ordinal}"


def default_resources(spec: ClusterSpec) -> List[ResourceDescriptor]:
    """
    Fixed resource set for one replicated data store, in dependency order:
    namespace -> storage class -> claims/service -> (release) -> stateful workload.
    """
    scope = spec.scope
    ns = ResourceDescriptor(kind="Namespace", name=scope, scope=scope)
    sc = ResourceDescriptor(
        kind="StorageClass",
        name=spec.storage_class_name,
        scope=scope,
        spec={
            "compute_class": spec.sizing.compute_class,
            "provisioner": spec.sizing.storage_provisioner,
        },
        depends_on=(ns.ref,),
    )
    svc = ResourceDescriptor(
        kind="Service",
        name=scope,
        scope=scope,
        spec={"headless": True, "port": spec.data_port, "selector": {"app": spec.member_prefix}},
        depends_on=(ns.ref,),
    )
    claims = [
        ResourceDescriptor(
            kind="PersistentVolumeClaim",
            name=claim_name(spec, i),
            scope=scope,
            spec={"storage": spec.sizing.storage_size, "storage_class": spec.storage_class_name},
            depends_on=(sc.ref,),
        )
        for i in range(spec.members)
    ]

    workload_deps = [svc.ref] + [c.ref for c in claims]
    out = [ns, sc, svc, *claims]

    if spec.release is not None:
        rel = spec.release
        rel_spec = {"chart": rel.chart, "values": dict(rel.values)}
        if rel.version:
            rel_spec["version"] = rel.version
        out.append(
            ResourceDescriptor(
                kind="Release",
                name=rel.name,
                scope=scope,
                spec=rel_spec,
                depends_on=tuple(rel.depends_on) or (ns.ref,),
            )
        )

    workload = {
        "replicas": spec.members,
        "image": spec.image,
        "service_name": scope,
        "replica_set": spec.replication_set_id,
        "port": spec.data_port,
        "storage": spec.sizing.storage_size,
        "storage_class": spec.storage_class_name,
        "compute_class": spec.sizing.compute_class,
    }
    if spec.sizing.cpu:
        workload["cpu"] = spec.sizing.cpu
    if spec.sizing.memory:
        workload["memory"] = spec.sizing.memory

    out.append(
        ResourceDescriptor(
            kind="StatefulSet",
            name=spec.member_prefix,
            scope=scope,
            spec=workload,
            depends_on=tuple(workload_deps),
        )
    )
    return out


def _validate(resources: Sequence[ResourceDescriptor]) -> None:
    seen: Set[str] = set()
    for r in resources:
        if r.ref in seen:
            raise DuplicateResourceError(f"Resource '{r.ref}' is declared twice")
        seen.add(r.ref)
    for r in resources:
        for d in r.depends_on:
            if d not in seen:
                raise UnknownDependencyError(
                    f"Resource '{r.ref}' depends on unknown resource '{d}'"
                )


def plan_waves(
    resources: Sequence[ResourceDescriptor],
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> List[List[ResourceDescriptor]]:
    """
    Group resources into dependency waves (Kahn's algorithm, level by level).
    Everything in a wave is independent of everything else in it; wave k
    only depends on waves < k. Declaration order is kept inside a wave.
    Emits PlanComputed / PlanFailed if an EventBus is provided.
    """
    ctx = run_ctx or new_ctx(env="dev", scope=resources[0].scope if resources else "-")
    try:
        _validate(resources)

        by_ref: Dict[str, ResourceDescriptor] = {r.ref: r for r in resources}
        indeg: Dict[str, int] = {r.ref: len(set(r.depends_on)) for r in resources}
        order = [r.ref for r in resources]

        waves: List[List[ResourceDescriptor]] = []
        current = [ref for ref in order if indeg[ref] == 0]
        placed = 0

        while current:
            waves.append([by_ref[ref] for ref in current])
            placed += len(current)
            done = set(current)
            nxt: List[str] = []
            for ref in order:
                deps = set(by_ref[ref].depends_on)
                if indeg[ref] > 0 and deps & done:
                    indeg[ref] -= len(deps & done)
                    if indeg[ref] == 0:
                        nxt.append(ref)
            current = nxt

        if placed != len(resources):
            raise CyclicDependencyError("Cyclic dependency detected among resources")

        if bus:
            bus.emit(PlanComputed(waves=[[r.ref for r in w] for w in waves], **ctx))
        return waves

    except Exception as e:
        if bus:
            bus.emit(PlanFailed(error=str(e), **ctx))
        raise
