import pytest

from replboot.bootstrap.planner import default_resources
from replboot.bootstrap.provisioner import spec_mismatches
from replboot.config.models import ClusterSpec, ResourceDescriptor, ResourceSizing
from replboot.kube.manifests import COMPUTE_CLASS_LABEL, build_manifest, observed_spec


def _spec(**kw):
    return ClusterSpec(scope="test", members=3, **kw)


@pytest.mark.parametrize(
    "sizing",
    [ResourceSizing(), ResourceSizing(compute_class="highmem", storage_size="50Gi", cpu="500m", memory="2Gi")],
)
def test_freshly_created_objects_satisfy_their_descriptors(sizing):
    # what the provisioner reads back right after create must not look like a conflict
    for d in default_resources(_spec(sizing=sizing)):
        live = observed_spec(d.kind, build_manifest(d))
        assert spec_mismatches(d.spec, live) == [], d.ref


def test_namespaced_objects_carry_scope():
    by_kind = {d.kind: build_manifest(d) for d in default_resources(_spec())}
    assert "namespace" not in by_kind["Namespace"]["metadata"]
    assert "namespace" not in by_kind["StorageClass"]["metadata"]
    assert by_kind["Service"]["metadata"]["namespace"] == "test"
    assert by_kind["StatefulSet"]["metadata"]["namespace"] == "test"


def test_stateful_set_pins_members_to_compute_class_and_replica_set():
    sts = [d for d in default_resources(_spec(sizing=ResourceSizing(compute_class="highmem"))) if d.kind == "StatefulSet"][0]
    m = build_manifest(sts)
    pod = m["spec"]["template"]["spec"]

    assert m["spec"]["replicas"] == 3
    assert m["spec"]["serviceName"] == "test"
    assert pod["nodeSelector"] == {COMPUTE_CLASS_LABEL: "highmem"}
    assert "--replSet" in pod["containers"][0]["command"]
    assert m["spec"]["volumeClaimTemplates"][0]["metadata"]["name"] == "data"


def test_live_resize_is_visible_as_mismatch():
    pvc = [d for d in default_resources(_spec()) if d.kind == "PersistentVolumeClaim"][0]
    live_obj = build_manifest(pvc)
    live_obj["spec"]["resources"]["requests"]["storage"] = "5Gi"

    assert spec_mismatches(pvc.spec, observed_spec(pvc.kind, live_obj)) == ["storage: '5Gi' != '10Gi'"]


def test_unknown_kind_rejected():
    with pytest.raises(ValueError):
        build_manifest(ResourceDescriptor(kind="Ingress", name="x", scope="test"))
    with pytest.raises(ValueError):
        observed_spec("Ingress", {})
