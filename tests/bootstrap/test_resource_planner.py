import pytest

from replboot.bootstrap.planner import (
    CyclicDependencyError,
    DuplicateResourceError,
    UnknownDependencyError,
    claim_name,
    default_resources,
    plan_waves,
)
from replboot.config.models import ClusterSpec, ReleaseRef, ResourceDescriptor
from replboot.observers.dispatcher import EventBus
from replboot.observers.events import PlanComputed, PlanFailed

from fakes import Capture


def _r(kind, name, *deps):
    return ResourceDescriptor(kind=kind, name=name, scope="test", depends_on=tuple(deps))


def test_waves_group_independent_resources_and_emit_event():
    ns = _r("Namespace", "test")
    sc = _r("StorageClass", "test-sc", "Namespace/test")
    svc = _r("Service", "test", "Namespace/test")
    sts = _r("StatefulSet", "member", "StorageClass/test-sc", "Service/test")
    cap = Capture()

    waves = plan_waves([sts, svc, sc, ns], bus=EventBus([cap]))

    assert [[r.ref for r in w] for w in waves] == [
        ["Namespace/test"],
        ["Service/test", "StorageClass/test-sc"],
        ["StatefulSet/member"],
    ]
    pc = cap.of(PlanComputed)[0]
    assert pc.waves[0] == ["Namespace/test"]


def test_unknown_dependency_raises_and_emits_failure():
    cap = Capture()
    with pytest.raises(UnknownDependencyError):
        plan_waves([_r("Service", "x", "Namespace/missing")], bus=EventBus([cap]))
    assert "unknown resource" in cap.of(PlanFailed)[0].error


def test_cycle_detected():
    a = _r("Service", "a", "Service/b")
    b = _r("Service", "b", "Service/a")
    cap = Capture()
    with pytest.raises(CyclicDependencyError):
        plan_waves([a, b], bus=EventBus([cap]))
    assert cap.of(PlanFailed)


def test_duplicate_declaration_rejected():
    with pytest.raises(DuplicateResourceError):
        plan_waves([_r("Namespace", "test"), _r("Namespace", "test")])


def test_default_resources_for_three_members():
    spec = ClusterSpec(members=3, scope="test")
    res = default_resources(spec)
    refs = [r.ref for r in res]

    assert refs[0] == "Namespace/test"
    assert "StorageClass/test-sc" in refs
    assert "Service/test" in refs
    assert [claim_name(spec, i) for i in range(3)] == ["data-member-0", "data-member-1", "data-member-2"]
    assert refs[-1] == "StatefulSet/member"

    waves = plan_waves(res)
    assert [r.ref for r in waves[-1]] == ["StatefulSet/member"]
    sts = res[-1]
    assert sts.spec["replicas"] == 3
    assert sts.spec["service_name"] == "test"
    assert "cpu" not in sts.spec


def test_default_resources_include_release_when_configured():
    spec = ClusterSpec(
        members=3,
        scope="test",
        release=ReleaseRef(name="exporter", chart="prometheus-community/prometheus-mongodb-exporter"),
    )
    rel = next(r for r in default_resources(spec) if r.kind == "Release")
    assert rel.depends_on == ("Namespace/test",)
    # unpinned version is not part of the comparison
    assert "version" not in rel.spec
