# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/cli/temporal_start.py

from __future__ import annotations

from replboot.temporal.client import get_temporal_client
from replboot.temporal.settings import TemporalSettings
from replboot.temporal.models import BootstrapRequest


async def start_bootstrap_workflow(req: BootstrapRequest, scope: str) -> str:
    from replboot.temporal.workflows import ReplicaBootstrapWorkflow, workflow_id_for

    settings = TemporalSettings.from_env()
    client = await get_temporal_client(settings)

    # raises WorkflowAlreadyStartedError while a run for this scope is open
    handle = await client.start_workflow(
        ReplicaBootstrapWorkflow.run,
        req,
        id=workflow_id_for(scope),
        task_queue=settings.task_queue,
    )

    return f"{handle.id} / {handle.run_id}"
