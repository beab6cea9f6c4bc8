# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
from enum import Enum
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single bootstrap run
    env: str          # dev/staging/prod
    scope: str        # cluster scope (namespace) the run owns

    def dict(self) -> Dict[str, Any]:
        d = asdict(self)
        for k, v in d.items():
            if isinstance(v, Enum):
                d[k] = v.value
        return d


def new_ctx(env: str, scope: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "env": env,
        "scope": scope,
    }


# ---------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RunStarted(BaseEvent):
    members: int


@dataclass(frozen=True)
class PhaseEntered(BaseEvent):
    phase: str


@dataclass(frozen=True)
class PhaseRetry(BaseEvent):
    phase: str
    attempt: int
    delay_s: float
    reason: str


@dataclass(frozen=True)
class PhaseFailed(BaseEvent):
    phase: str
    kind: str
    attempts: int
    error: str


@dataclass(frozen=True)
class RunSummary(BaseEvent):
    status: str       # "Done" | "Failed"
    phase: str        # phase the run ended in (failing phase on failure)
    duration_ms: int
    error: Optional[str] = None


# ---------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    waves: List[List[str]]


@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str


@dataclass(frozen=True)
class ResourceEnsured(BaseEvent):
    kind: str
    name: str
    state: str
    created: bool
    failure: Optional[str] = None
    message: Optional[str] = None


# ---------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ProbeFinished(BaseEvent):
    name: str
    outcome: str
    polls: int
    elapsed_s: float
    round: int
    error: Optional[str] = None


# ---------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class TopologyPlanned(BaseEvent):
    replication_set_id: str
    addresses: List[str]


@dataclass(frozen=True)
class SeedSelected(BaseEvent):
    ordinal: Optional[int]
    attempt: int


@dataclass(frozen=True)
class InitiationFinished(BaseEvent):
    status: str
    seed_ordinal: Optional[int]
    reason: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class HealthObserved(BaseEvent):
    state: str
    roles: Dict[int, str]
    unreachable: List[int]
    detail: str = ""
