# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/kube/manifests.py
"""
Kubernetes manifests for the resource kinds the bootstrap provisions, and
the reverse mapping from a live object back to the descriptor spec shape,
so the provisioner can compare desired and observed state key by key.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from replboot.config.models import ResourceDescriptor

MANAGED_BY = {"app.kubernetes.io/managed-by": "replboot"}
COMPUTE_CLASS_LABEL = "replboot.io/compute-class"
DATA_VOLUME = "data"

CLUSTER_SCOPED = {"Namespace", "StorageClass"}


def _meta(d: ResourceDescriptor, **labels: str) -> Dict[str, Any]:
    meta: Dict[str, Any] = {"name": d.name, "labels": {**MANAGED_BY, **labels}}
    if d.kind not in CLUSTER_SCOPED:
        meta["namespace"] = d.scope
    return meta


# ---------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------
def namespace(d: ResourceDescriptor) -> dict:
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": _meta(d)}


def storage_class(d: ResourceDescriptor) -> dict:
    s = d.spec
    return {
        "apiVersion": "storage.k8s.io/v1",
        "kind": "StorageClass",
        "metadata": _meta(d, **{COMPUTE_CLASS_LABEL: s.get("compute_class", "standard")}),
        "provisioner": s.get("provisioner", "rancher.io/local-path"),
        "volumeBindingMode": "WaitForFirstConsumer",
        "reclaimPolicy": "Retain",
    }


def service(d: ResourceDescriptor) -> dict:
    s = d.spec
    port = int(s.get("port", 27017))
    spec: Dict[str, Any] = {
        "selector": dict(s.get("selector", {})),
        "ports": [{"name": "data", "port": port, "targetPort": port}],
        # members must resolve before they are ready, or nobody can initiate them
        "publishNotReadyAddresses": True,
    }
    if s.get("headless", True):
        spec["clusterIP"] = "None"
    return {"apiVersion": "v1", "kind": "Service", "metadata": _meta(d), "spec": spec}


def persistent_volume_claim(d: ResourceDescriptor) -> dict:
    s = d.spec
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": _meta(d),
        "spec": {
            "accessModes": ["ReadWriteOnce"],
            "storageClassName": s.get("storage_class"),
            "resources": {"requests": {"storage": s.get("storage", "10Gi")}},
        },
    }


def stateful_set(d: ResourceDescriptor) -> dict:
    s = d.spec
    port = int(s.get("port", 27017))
    labels = {"app": d.name}

    container: Dict[str, Any] = {
        "name": s.get("container", "mongod"),
        "image": s["image"],
        "command": [
            "mongod",
            "--replSet", s["replica_set"],
            "--bind_ip_all",
            "--port", str(port),
        ],
        "ports": [{"name": "data", "containerPort": port}],
        "volumeMounts": [{"name": DATA_VOLUME, "mountPath": "/data/db"}],
    }
    requests = {k: s[k] for k in ("cpu", "memory") if s.get(k)}
    if requests:
        container["resources"] = {"requests": requests}

    return {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": _meta(d),
        "spec": {
            "serviceName": s["service_name"],
            "replicas": int(s["replicas"]),
            "podManagementPolicy": "Parallel",
            "selector": {"matchLabels": labels},
            "template": {
                "metadata": {"labels": labels},
                "spec": {
                    "nodeSelector": {COMPUTE_CLASS_LABEL: s.get("compute_class", "standard")},
                    "containers": [container],
                },
            },
            # pre-created claims are adopted by name: data-<set>-<ordinal>
            "volumeClaimTemplates": [
                {
                    "metadata": {"name": DATA_VOLUME},
                    "spec": {
                        "accessModes": ["ReadWriteOnce"],
                        "storageClassName": s.get("storage_class"),
                        "resources": {"requests": {"storage": s.get("storage", "10Gi")}},
                    },
                }
            ],
        },
    }


BUILDERS: Dict[str, Callable[[ResourceDescriptor], dict]] = {
    "Namespace": namespace,
    "StorageClass": storage_class,
    "Service": service,
    "PersistentVolumeClaim": persistent_volume_claim,
    "StatefulSet": stateful_set,
}


def build_manifest(d: ResourceDescriptor) -> dict:
    try:
        builder = BUILDERS[d.kind]
    except KeyError:
        raise ValueError(f"no manifest builder for kind '{d.kind}'") from None
    return builder(d)


# ---------------------------------------------------------------------
# Live object -> descriptor spec
# ---------------------------------------------------------------------
def _flag_value(argv: list, flag: str) -> Optional[str]:
    if flag in argv:
        idx = argv.index(flag)
        if idx + 1 < len(argv):
            return argv[idx + 1]
    return None


def observed_spec(kind: str, obj: dict) -> Dict[str, Any]:
    meta = obj.get("metadata", {})
    spec = obj.get("spec", {})

    if kind == "Namespace":
        return {}

    if kind == "StorageClass":
        return {
            "compute_class": meta.get("labels", {}).get(COMPUTE_CLASS_LABEL),
            "provisioner": obj.get("provisioner"),
        }

    if kind == "Service":
        ports = spec.get("ports") or [{}]
        return {
            "headless": spec.get("clusterIP") == "None",
            "port": ports[0].get("port"),
            "selector": spec.get("selector") or {},
        }

    if kind == "PersistentVolumeClaim":
        return {
            "storage": spec.get("resources", {}).get("requests", {}).get("storage"),
            "storage_class": spec.get("storageClassName"),
        }

    if kind == "StatefulSet":
        pod = spec.get("template", {}).get("spec", {})
        containers = pod.get("containers") or [{}]
        c = containers[0]
        command = list(c.get("command") or []) + list(c.get("args") or [])
        ports = c.get("ports") or [{}]
        claims = spec.get("volumeClaimTemplates") or [{}]
        claim_spec = claims[0].get("spec", {})
        requests = c.get("resources", {}).get("requests", {})

        out: Dict[str, Any] = {
            "replicas": spec.get("replicas"),
            "image": c.get("image"),
            "service_name": spec.get("serviceName"),
            "replica_set": _flag_value(command, "--replSet"),
            "port": ports[0].get("containerPort"),
            "storage": claim_spec.get("resources", {}).get("requests", {}).get("storage"),
            "storage_class": claim_spec.get("storageClassName"),
            "compute_class": pod.get("nodeSelector", {}).get(COMPUTE_CLASS_LABEL),
            "container": c.get("name"),
        }
        for key in ("cpu", "memory"):
            if key in requests:
                out[key] = requests[key]
        return out

    raise ValueError(f"cannot interpret live object of kind '{kind}'")
