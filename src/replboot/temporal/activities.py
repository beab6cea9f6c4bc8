# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/temporal/activities.py

from __future__ import annotations

import logging
from pathlib import Path

from temporalio import activity

from replboot.bootstrap.factory import build_kubectl, build_orchestrator
from replboot.bootstrap.lease import ScopeLease
from replboot.bootstrap.models import BootstrapRun
from replboot.config.loader import load_config
from replboot.observers.dispatcher import EventBus
from replboot.observers.jsonfile import JsonFileObserver, audit_path
from replboot.observers.logger import LoggerObserver

from .models import BootstrapRequest, BootstrapStatus

log = logging.getLogger("replboot")


def to_status(run: BootstrapRun) -> BootstrapStatus:
    err = run.error
    return BootstrapStatus(
        scope=run.spec.scope,
        run_id=run.run_id,
        phase=run.phase.value,
        succeeded=run.succeeded,
        failed_phase=err.phase.value if err else None,
        error_kind=err.kind.value if err else None,
        error=err.message if err else None,
        rerun_is_safe=err.kind.rerun_is_safe if err else None,
        summary=run.summary(),
    )


@activity.defn
def activity_bootstrap(req: BootstrapRequest) -> BootstrapStatus:
    """One complete orchestrator run. Blocking; runs in the worker's thread pool."""
    cfg = load_config(req.config_path)
    run_id = req.run_id or activity.info().workflow_run_id

    audit_dir = Path(req.audit_dir) if req.audit_dir else cfg.audit.directory
    bus = EventBus([
        LoggerObserver(log),
        JsonFileObserver(audit_path(audit_dir, cfg.cluster.scope, run_id)),
    ])

    with ScopeLease(cfg.cluster.scope, cfg.audit.lease_directory):
        with build_kubectl(cfg) as kubectl:
            orch = build_orchestrator(cfg, bus, kubectl=kubectl)
            run = orch.run(cfg.cluster, resources=cfg.declared_resources(), run_id=run_id)

    return to_status(run)
