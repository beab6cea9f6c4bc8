# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/temporal/models.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass
class BootstrapRequest:
    # where to find the cluster definition (read on the worker host)
    config_path: str
    run_id: Optional[str] = None
    audit_dir: Optional[str] = None


@dataclass
class BootstrapStatus:
    scope: str
    run_id: str
    phase: str                      # final phase: "Done" | "Failed" | in-flight phase
    succeeded: bool = False
    failed_phase: Optional[str] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None
    rerun_is_safe: Optional[bool] = None
    summary: str = ""
