# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/temporal/workflows.py

from __future__ import annotations

from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

from .models import BootstrapRequest, BootstrapStatus

# activities are imported via workflow.unsafe.imports_passed_through
# to avoid workflow sandbox issues
with workflow.unsafe.imports_passed_through():
    from .activities import activity_bootstrap


def workflow_id_for(scope: str) -> str:
    """One workflow id per scope, so a second bootstrap of a scope is refused while one runs."""
    return f"bootstrap-{scope}"


@workflow.defn
class ReplicaBootstrapWorkflow:
    def __init__(self) -> None:
        self._status = BootstrapStatus(scope="", run_id="", phase="Pending")

    @workflow.query
    def status(self) -> BootstrapStatus:
        return self._status

    @workflow.run
    async def run(self, req: BootstrapRequest) -> BootstrapStatus:
        self._status.phase = "Running"

        # the orchestrator owns retries; a failed run is final
        self._status = await workflow.execute_activity(
            activity_bootstrap,
            req,
            start_to_close_timeout=timedelta(hours=2),
            retry_policy=RetryPolicy(maximum_attempts=1),
        )
        return self._status
