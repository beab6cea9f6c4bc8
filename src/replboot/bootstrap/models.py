# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from replboot.config.models import ClusterSpec

from .errors import ErrorKind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------
class ResourceState(str, Enum):
    REQUESTED = "Requested"
    EXISTS = "Exists"
    FAILED = "Failed"


class FailureKind(str, Enum):
    CONFLICT = "conflict"       # exists with an incompatible spec
    TRANSIENT = "transient"     # control plane error, worth retrying
    INVALID = "invalid"         # descriptor cannot be provisioned at all


@dataclass(frozen=True)
class ProvisionedResource:
    kind: str
    name: str
    scope: str
    state: ResourceState
    failure: Optional[FailureKind] = None
    message: Optional[str] = None
    created: bool = False        # True only on the call that created it

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.kind, self.name, self.scope)

    @property
    def ok(self) -> bool:
        return self.state == ResourceState.EXISTS


# ---------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------
class ProbeOutcome(str, Enum):
    READY = "Ready"
    TIMED_OUT = "TimedOut"
    PROBE_ERROR = "ProbeError"


@dataclass(frozen=True)
class ProbeResult:
    outcome: ProbeOutcome
    polls: int
    elapsed_seconds: float
    error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.outcome == ProbeOutcome.READY


# ---------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class MemberIdentity:
    ordinal: int
    stable_name: str
    address: str


@dataclass(frozen=True)
class TopologySpec:
    replication_set_id: str
    members: Tuple[MemberIdentity, ...]

    def member(self, ordinal: int) -> MemberIdentity:
        return self.members[ordinal]

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def addresses(self) -> List[str]:
        return [m.address for m in self.members]


class InitiationStatus(str, Enum):
    INITIATED = "Initiated"
    ALREADY_INITIATED = "AlreadyInitiated"
    FAILED = "Failed"


class InitiationFailure(str, Enum):
    UNREACHABLE = "unreachable"   # seed could not be contacted
    CONFLICT = "conflict"         # members already belong to a different topology
    REJECTED = "rejected"         # data store refused the command, may pass later


@dataclass(frozen=True)
class InitiationResult:
    status: InitiationStatus
    seed_ordinal: Optional[int] = None
    reason: Optional[InitiationFailure] = None
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status in (InitiationStatus.INITIATED, InitiationStatus.ALREADY_INITIATED)

    @property
    def retryable(self) -> bool:
        return self.status == InitiationStatus.FAILED and self.reason != InitiationFailure.CONFLICT


class HealthState(str, Enum):
    UNINITIALIZED = "Uninitialized"
    INITIALIZING = "Initializing"
    CONVERGING = "Converging"
    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    UNREACHABLE = "Unreachable"


class MemberRole(str, Enum):
    PRIMARY = "Primary"
    SECONDARY = "Secondary"
    STARTUP = "Startup"
    RECOVERING = "Recovering"
    ARBITER = "Arbiter"
    UNKNOWN = "Unknown"

    @property
    def serving(self) -> bool:
        return self in (MemberRole.PRIMARY, MemberRole.SECONDARY)


@dataclass(frozen=True)
class TopologyHealth:
    state: HealthState
    roles: Mapping[int, MemberRole]
    observed_at: datetime
    unreachable: Tuple[int, ...] = ()
    detail: str = ""

    @property
    def primary(self) -> Optional[int]:
        primaries = [o for o, r in self.roles.items() if r == MemberRole.PRIMARY]
        return primaries[0] if len(primaries) == 1 else None


# ---------------------------------------------------------------------
# Bootstrap run
# ---------------------------------------------------------------------
class Phase(str, Enum):
    PROVISIONING = "Provisioning"
    AWAITING_READINESS = "AwaitingReadiness"
    ALLOCATING_IDENTITIES = "AllocatingIdentities"
    INITIATING = "Initiating"
    VERIFYING_HEALTH = "VerifyingHealth"
    DONE = "Done"
    FAILED = "Failed"

    @property
    def terminal(self) -> bool:
        return self in (Phase.DONE, Phase.FAILED)


# Linear order, no skipping.
PHASE_ORDER: Tuple[Phase, ...] = (
    Phase.PROVISIONING,
    Phase.AWAITING_READINESS,
    Phase.ALLOCATING_IDENTITIES,
    Phase.INITIATING,
    Phase.VERIFYING_HEALTH,
    Phase.DONE,
)


def next_phase(phase: Phase) -> Phase:
    idx = PHASE_ORDER.index(phase)
    return PHASE_ORDER[idx + 1]


@dataclass(frozen=True)
class RunError:
    phase: Phase
    kind: ErrorKind
    message: str
    attempts: int


@dataclass(frozen=True)
class Transition:
    source: Phase
    target: Phase
    at: datetime


@dataclass
class BootstrapRun:
    """
    State of one bootstrap invocation. Discarded (or kept as an audit
    record) once it reaches Done or Failed; it is never driven again.
    """

    spec: ClusterSpec
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    phase: Phase = Phase.PROVISIONING
    attempts: Dict[Phase, int] = field(default_factory=dict)
    error: Optional[RunError] = None
    history: List[Transition] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    resources: List[ProvisionedResource] = field(default_factory=list)
    topology: Optional[TopologySpec] = None
    initiation: Optional[InitiationResult] = None
    initiated_at: Optional[datetime] = None
    health: Optional[TopologyHealth] = None

    @property
    def terminal(self) -> bool:
        return self.phase.terminal

    @property
    def succeeded(self) -> bool:
        return self.phase == Phase.DONE

    def bump(self, phase: Optional[Phase] = None) -> int:
        phase = phase or self.phase
        self.attempts[phase] = self.attempts.get(phase, 0) + 1
        return self.attempts[phase]

    def advance(self, target: Phase, at: Optional[datetime] = None) -> None:
        if self.terminal:
            raise ValueError(f"run {self.run_id} is already {self.phase.value}")
        if target != Phase.FAILED and target != next_phase(self.phase):
            raise ValueError(f"illegal transition {self.phase.value} -> {target.value}")
        at = at or utcnow()
        self.history.append(Transition(self.phase, target, at))
        self.phase = target
        if target.terminal:
            self.finished_at = at

    def fail(self, kind: ErrorKind, message: str, at: Optional[datetime] = None) -> None:
        failed_in = self.phase
        self.error = RunError(
            phase=failed_in,
            kind=kind,
            message=message,
            attempts=self.attempts.get(failed_in, 0),
        )
        self.advance(Phase.FAILED, at=at)

    def summary(self) -> str:
        if self.succeeded:
            primary = self.health.primary if self.health else None
            return f"{self.spec.scope}: Done (members={self.spec.members} primary={primary})"
        if self.error:
            e = self.error
            return (
                f"{self.spec.scope}: phase {e.phase.value} failed "
                f"({e.kind.value}, attempts={e.attempts}): {e.message}"
            )
        return f"{self.spec.scope}: {self.phase.value}"
