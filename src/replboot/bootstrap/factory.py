# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/factory.py

from __future__ import annotations

import logging
from typing import Optional

from replboot.config.models import BootstrapConfig
from replboot.datastore.channel import AdminChannel
from replboot.datastore.mongo import MongoShellChannel
from replboot.helm.cli_runner import HelmCliRunner
from replboot.kube.backend import KubeResourceBackend
from replboot.kube.kubectl import KubectlRunner
from replboot.kube.readiness import KubeReadiness
from replboot.utils.clock import Clock, SystemClock
from replboot.utils.ssh_runner import SSHRunner, connect_ssh

from ..observers.dispatcher import EventBus
from .health import TopologyHealthChecker
from .initiator import TopologyInitiator
from .orchestrator import BootstrapOrchestrator
from .probe import ReadinessProbe
from .provisioner import ResourceProvisioner

log = logging.getLogger("replboot")


def build_kubectl(cfg: BootstrapConfig, ssh: Optional[SSHRunner] = None) -> KubectlRunner:
    kube = cfg.kube
    if ssh is None and kube.ssh is not None:
        ssh = connect_ssh(kube.ssh)
    return KubectlRunner(context=kube.context, kubeconfig=kube.kubeconfig, ssh=ssh)


def build_backend(cfg: BootstrapConfig, kubectl: KubectlRunner) -> KubeResourceBackend:
    helm = HelmCliRunner(
        kube_context=cfg.kube.context,
        kubeconfig=cfg.kube.kubeconfig,
        ssh=kubectl.ssh,
    )
    return KubeResourceBackend(kubectl, helm)


def build_channel(cfg: BootstrapConfig, kubectl: KubectlRunner) -> MongoShellChannel:
    return MongoShellChannel(kubectl, settings=cfg.mongo, port=cfg.cluster.data_port)


def build_orchestrator(
    cfg: BootstrapConfig,
    bus: Optional[EventBus] = None,
    *,
    kubectl: Optional[KubectlRunner] = None,
    channel: Optional[AdminChannel] = None,
    clock: Optional[Clock] = None,
) -> BootstrapOrchestrator:
    """Production collaborators for one cluster, assembled from config."""
    clock = clock or SystemClock()
    policies = cfg.policies
    kubectl = kubectl or build_kubectl(cfg)
    channel = channel or build_channel(cfg, kubectl)

    reach = policies.reachability_probe
    initiator = TopologyInitiator(
        channel,
        probe=ReadinessProbe.from_settings(reach, clock=clock),
        reachability=reach,
    )

    log.debug("[factory] orchestrator for %s (kubectl via %s)", cfg.cluster.scope, "ssh" if kubectl.ssh else "local")
    return BootstrapOrchestrator(
        provisioner=ResourceProvisioner(build_backend(cfg, kubectl), max_workers=policies.max_workers),
        readiness=KubeReadiness(kubectl),
        initiator=initiator,
        health_checker=TopologyHealthChecker(
            channel, clock=clock, grace_seconds=policies.converging_grace_seconds
        ),
        policies=policies,
        clock=clock,
        bus=bus,
        env=cfg.environment,
    )
