# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/temporal/settings.py

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class TemporalSettings:
    """Where `replboot submit` and the worker find Temporal."""

    address: str = "localhost:7233"
    namespace: str = "default"
    task_queue: str = "replboot.bootstrap"
    activity_threads: int = 4    # concurrent bootstraps per worker

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "TemporalSettings":
        env = os.environ if env is None else env
        return cls(
            address=env.get("TEMPORAL_ADDRESS", cls.address),
            namespace=env.get("TEMPORAL_NAMESPACE", cls.namespace),
            task_queue=env.get("REPLBOOT_TASK_QUEUE", cls.task_queue),
            activity_threads=int(env.get("REPLBOOT_ACTIVITY_THREADS", cls.activity_threads)),
        )
