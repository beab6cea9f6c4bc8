# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/temporal/worker.py

from __future__ import annotations

import asyncio
import concurrent.futures
from typing import Optional

from temporalio.worker import Worker

from .activities import activity_bootstrap
from .client import get_temporal_client
from .settings import TemporalSettings
from .workflows import ReplicaBootstrapWorkflow


async def main(max_workers: Optional[int] = None) -> None:
    settings = TemporalSettings.from_env()
    threads = max_workers or settings.activity_threads
    client = await get_temporal_client(settings)

    # activity_bootstrap blocks on kubectl/helm/mongosh for the whole run
    with concurrent.futures.ThreadPoolExecutor(max_workers=threads) as activity_executor:
        worker = Worker(
            client,
            task_queue=settings.task_queue,
            workflows=[ReplicaBootstrapWorkflow],
            activities=[activity_bootstrap],
            activity_executor=activity_executor,
            max_concurrent_activities=threads,
        )
        print(
            f"[replboot-worker] polling {settings.task_queue} on {settings.address} "
            f"(namespace {settings.namespace}, {threads} bootstrap threads)"
        )

        await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
