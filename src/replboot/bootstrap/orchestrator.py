# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/orchestrator.py

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from replboot.config.models import ClusterSpec, PhasePolicies, ResourceDescriptor, RetryPolicy
from replboot.utils.clock import Clock, SystemClock

from ..observers.dispatcher import EventBus
from ..observers.events import (
    HealthObserved,
    InitiationFinished,
    PhaseEntered,
    PhaseFailed,
    PhaseRetry,
    ProbeFinished,
    ResourceEnsured,
    RunStarted,
    RunSummary,
    SeedSelected,
    TopologyPlanned,
    new_ctx,
)
from .errors import (
    BootstrapCancelled,
    BootstrapError,
    ConflictError,
    ErrorKind,
    InvalidRequestError,
    PhaseTimeoutError,
    ProbeError,
    RetryableInfraError,
    TerminalRunError,
    UnreachableError,
)
from .health import TopologyHealthChecker
from .identity import MemberIdentityAllocator
from .initiator import TopologyInitiator
from .models import (
    BootstrapRun,
    FailureKind,
    HealthState,
    InitiationFailure,
    Phase,
    ProbeOutcome,
    ProvisionedResource,
    next_phase,
)
from .planner import default_resources, plan_waves
from .probe import ReadinessProbe
from .provisioner import ResourceProvisioner

log = logging.getLogger("replboot")


class ReadinessSource(Protocol):
    """Read-only views of the control plane used by AwaitingReadiness."""

    def compute_ready(self, spec: ClusterSpec) -> bool: ...
    def storage_bound(self, spec: ClusterSpec) -> bool: ...


Handler = Callable[[BootstrapRun, dict, Optional[threading.Event], Optional[Sequence[ResourceDescriptor]]], None]


class BootstrapOrchestrator:
    """
    Drives one BootstrapRun through

        Provisioning -> AwaitingReadiness -> AllocatingIdentities
                     -> Initiating -> VerifyingHealth -> Done

    one phase at a time. Each handler retries in place under its own
    policy and either returns (advance) or raises a BootstrapError
    (the run goes to Failed). No phase is ever skipped or re-entered.
    """

    def __init__(
        self,
        *,
        provisioner: ResourceProvisioner,
        readiness: ReadinessSource,
        initiator: TopologyInitiator,
        health_checker: TopologyHealthChecker,
        allocator: Optional[MemberIdentityAllocator] = None,
        policies: Optional[PhasePolicies] = None,
        clock: Optional[Clock] = None,
        bus: Optional[EventBus] = None,
        env: str = "dev",
    ):
        self.provisioner = provisioner
        self.readiness = readiness
        self.initiator = initiator
        self.health_checker = health_checker
        self.allocator = allocator or MemberIdentityAllocator()
        self.policies = policies or PhasePolicies()
        self.clock = clock or SystemClock()
        self.bus = bus or EventBus()
        self.env = env

        self._handlers: Dict[Phase, Handler] = {
            Phase.PROVISIONING: self._provision,
            Phase.AWAITING_READINESS: self._await_readiness,
            Phase.ALLOCATING_IDENTITIES: self._allocate,
            Phase.INITIATING: self._initiate,
            Phase.VERIFYING_HEALTH: self._verify_health,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(
        self,
        spec: ClusterSpec,
        *,
        resources: Optional[Sequence[ResourceDescriptor]] = None,
        cancel: Optional[threading.Event] = None,
        run_id: Optional[str] = None,
    ) -> BootstrapRun:
        run = BootstrapRun(spec=spec, started_at=self.clock.now())
        if run_id:
            run.run_id = run_id
        return self.execute(run, resources=resources, cancel=cancel)

    def execute(
        self,
        run: BootstrapRun,
        *,
        resources: Optional[Sequence[ResourceDescriptor]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> BootstrapRun:
        """Drive `run` until it is Done or Failed."""
        if run.terminal:
            raise TerminalRunError(
                f"run {run.run_id} already ended in {run.phase.value}; start a new run"
            )

        ctx = new_ctx(env=self.env, scope=run.spec.scope, run_id=run.run_id)
        started = self.clock.monotonic()
        self.bus.emit(RunStarted(members=run.spec.members, **ctx))
        log.info("[bootstrap] %s: starting run %s (%d members)", run.spec.scope, run.run_id, run.spec.members)

        while not run.terminal:
            phase = run.phase
            try:
                self._check_cancel(cancel, f"before {phase.value}")
                self.bus.emit(PhaseEntered(phase=phase.value, **ctx))
                log.info("[bootstrap] %s: entering %s", run.spec.scope, phase.value)
                self._handlers[phase](run, ctx, cancel, resources)
                run.advance(next_phase(phase), at=self.clock.now())
            except BootstrapError as e:
                self._fail(run, ctx, e.kind, str(e))
            except Exception as e:
                log.exception("[bootstrap] %s: unexpected error in %s", run.spec.scope, phase.value)
                self._fail(run, ctx, ErrorKind.INTERNAL, f"{e.__class__.__name__}: {e}")

        duration_ms = int((self.clock.monotonic() - started) * 1000)
        self.bus.emit(
            RunSummary(
                status=run.phase.value,
                phase=run.error.phase.value if run.error else run.phase.value,
                duration_ms=duration_ms,
                error=run.error.message if run.error else None,
                **ctx,
            )
        )
        log.info("[bootstrap] %s", run.summary())
        return run

    # ------------------------------------------------------------------
    # Phase handlers
    # ------------------------------------------------------------------
    def _provision(self, run, ctx, cancel, resources) -> None:
        descriptors: List[ResourceDescriptor] = (
            list(resources) if resources is not None else default_resources(run.spec)
        )
        try:
            waves = plan_waves(descriptors, bus=self.bus, run_ctx=ctx)
        except ValueError as e:
            raise InvalidRequestError(f"resource plan rejected: {e}") from e

        policy = self.policies.provisioning
        ledger: Dict[tuple, ProvisionedResource] = {}

        for wave_no, wave in enumerate(waves, start=1):
            pending = list(wave)
            attempt = 0
            while True:
                self._check_cancel(cancel, f"provisioning wave {wave_no}")
                attempt += 1
                run.bump()

                outcomes = self.provisioner.ensure_wave(pending)
                for r in outcomes:
                    ledger[r.key] = r
                    self.bus.emit(
                        ResourceEnsured(
                            kind=r.kind,
                            name=r.name,
                            state=r.state.value,
                            created=r.created,
                            failure=r.failure.value if r.failure else None,
                            message=r.message,
                            **ctx,
                        )
                    )
                run.resources = list(ledger.values())

                failed = [r for r in outcomes if not r.ok]
                if not failed:
                    break

                conflicts = [r for r in failed if r.failure == FailureKind.CONFLICT]
                if conflicts:
                    raise ConflictError("; ".join(f"{r.kind}/{r.name}: {r.message}" for r in conflicts))
                invalid = [r for r in failed if r.failure == FailureKind.INVALID]
                if invalid:
                    raise InvalidRequestError("; ".join(f"{r.kind}/{r.name}: {r.message}" for r in invalid))

                reason = "; ".join(f"{r.kind}/{r.name}: {r.message}" for r in failed)
                if attempt >= policy.max_attempts:
                    raise RetryableInfraError(
                        f"wave {wave_no} still failing after {attempt} attempts: {reason}"
                    )

                failed_keys = {r.key for r in failed}
                pending = [d for d in pending if d.key in failed_keys]
                self._backoff(run, ctx, cancel, policy, attempt, reason)

    def _await_readiness(self, run, ctx, cancel, resources) -> None:
        spec = run.spec
        settings = self.policies.readiness
        rounds = self.policies.readiness_rounds
        probe = ReadinessProbe.from_settings(settings, clock=self.clock, cancel=cancel)

        checks = (
            ("compute", f"{spec.members} members schedulable", lambda: self.readiness.compute_ready(spec)),
            ("storage", f"{spec.members} claims bound", lambda: self.readiness.storage_bound(spec)),
        )

        waiting_on = ""
        for round_no in range(1, rounds + 1):
            run.bump()
            waiting_on = ""
            for name, description, predicate in checks:
                result = probe.wait(
                    predicate,
                    timeout=settings.timeout_seconds,
                    poll_interval=settings.poll_interval_seconds,
                    description=description,
                )
                self.bus.emit(
                    ProbeFinished(
                        name=name,
                        outcome=result.outcome.value,
                        polls=result.polls,
                        elapsed_s=round(result.elapsed_seconds, 3),
                        round=round_no,
                        error=result.error,
                        **ctx,
                    )
                )
                if result.outcome == ProbeOutcome.PROBE_ERROR:
                    raise ProbeError(f"cannot tell whether {description}: {result.error}")
                if not result.ready:
                    waiting_on = description
                    break

            if not waiting_on:
                return

            if round_no < rounds:
                self.bus.emit(
                    PhaseRetry(
                        phase=run.phase.value,
                        attempt=round_no,
                        delay_s=0.0,
                        reason=f"timed out waiting for {waiting_on}",
                        **ctx,
                    )
                )

        raise PhaseTimeoutError(
            f"{waiting_on} not observed within {rounds} rounds of {settings.timeout_seconds:g}s"
        )

    def _allocate(self, run, ctx, cancel, resources) -> None:
        run.bump()
        try:
            topology = self.allocator.topology(run.spec)
        except ValueError as e:
            raise InvalidRequestError(str(e)) from e
        run.topology = topology
        self.bus.emit(
            TopologyPlanned(
                replication_set_id=topology.replication_set_id,
                addresses=topology.addresses,
                **ctx,
            )
        )

    def _initiate(self, run, ctx, cancel, resources) -> None:
        topology = run.topology
        reach_policy = self.policies.reachability
        init_policy = self.policies.initiation
        unreachable_attempts = 0
        rejected_attempts = 0

        while True:
            self._check_cancel(cancel, "initiation")
            attempt = run.bump()

            seed = self.initiator.select_seed(topology, cancel=cancel)
            self.bus.emit(SeedSelected(ordinal=seed, attempt=attempt, **ctx))

            if seed is None:
                unreachable_attempts += 1
                reason = "no member reachable"
                if unreachable_attempts >= reach_policy.max_attempts:
                    raise UnreachableError(
                        f"no member of {topology.replication_set_id} became reachable "
                        f"after {unreachable_attempts} attempts"
                    )
                self._backoff(run, ctx, cancel, reach_policy, unreachable_attempts, reason)
                continue

            result = self.initiator.initiate(topology, seed)
            run.initiation = result
            self.bus.emit(
                InitiationFinished(
                    status=result.status.value,
                    seed_ordinal=result.seed_ordinal,
                    reason=result.reason.value if result.reason else None,
                    message=result.message,
                    **ctx,
                )
            )

            if result.succeeded:
                run.initiated_at = self.clock.now()
                return

            if result.reason == InitiationFailure.CONFLICT:
                raise ConflictError(result.message)

            if result.reason == InitiationFailure.UNREACHABLE:
                unreachable_attempts += 1
                if unreachable_attempts >= reach_policy.max_attempts:
                    raise UnreachableError(
                        f"seed unreachable after {unreachable_attempts} attempts: {result.message}"
                    )
                self._backoff(run, ctx, cancel, reach_policy, unreachable_attempts, result.message)
            else:
                rejected_attempts += 1
                if rejected_attempts >= init_policy.max_attempts:
                    raise RetryableInfraError(
                        f"initiation rejected {rejected_attempts} times: {result.message}"
                    )
                self._backoff(run, ctx, cancel, init_policy, rejected_attempts, result.message)

    def _verify_health(self, run, ctx, cancel, resources) -> None:
        topology = run.topology
        settings = self.policies.health
        limit = self.policies.unreachable_limit

        start = self.clock.monotonic()
        deadline = start + settings.timeout_seconds
        interval = settings.poll_interval_seconds
        unreachable_streak = 0

        while True:
            self._check_cancel(cancel, "health verification")
            run.bump()

            health = self.health_checker.check(topology, initiated_at=run.initiated_at)
            run.health = health
            self.bus.emit(
                HealthObserved(
                    state=health.state.value,
                    roles={o: r.value for o, r in health.roles.items()},
                    unreachable=list(health.unreachable),
                    detail=health.detail,
                    **ctx,
                )
            )

            if health.state == HealthState.HEALTHY:
                return

            if health.state == HealthState.UNREACHABLE:
                unreachable_streak += 1
                if unreachable_streak >= limit:
                    raise UnreachableError(
                        f"topology unreachable on {unreachable_streak} consecutive checks: {health.detail}"
                    )
            else:
                unreachable_streak = 0

            now = self.clock.monotonic()
            if now >= deadline:
                raise PhaseTimeoutError(
                    f"topology not healthy within {settings.timeout_seconds:g}s "
                    f"(last state {health.state.value}: {health.detail})"
                )

            self.clock.sleep(min(interval, deadline - now))
            interval = interval * settings.backoff
            if settings.max_poll_interval_seconds is not None:
                interval = min(interval, settings.max_poll_interval_seconds)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _backoff(
        self,
        run: BootstrapRun,
        ctx: dict,
        cancel: Optional[threading.Event],
        policy: RetryPolicy,
        attempt: int,
        reason: str,
    ) -> None:
        delay = policy.delay_for(attempt)
        self._check_cancel(cancel, f"retry of {run.phase.value}")
        self.bus.emit(PhaseRetry(phase=run.phase.value, attempt=attempt, delay_s=delay, reason=reason, **ctx))
        log.warning(
            "[bootstrap] %s: %s attempt %d failed, retrying in %.1fs: %s",
            run.spec.scope, run.phase.value, attempt, delay, reason,
        )
        self.clock.sleep(delay)

    @staticmethod
    def _check_cancel(cancel: Optional[threading.Event], where: str) -> None:
        if cancel is not None and cancel.is_set():
            raise BootstrapCancelled(f"cancelled {where}")

    def _fail(self, run: BootstrapRun, ctx: dict, kind: ErrorKind, message: str) -> None:
        phase = run.phase
        run.fail(kind, message, at=self.clock.now())
        self.bus.emit(
            PhaseFailed(
                phase=phase.value,
                kind=kind.value,
                attempts=run.error.attempts,
                error=message,
                **ctx,
            )
        )
        log.error("[bootstrap] %s: %s failed (%s): %s", run.spec.scope, phase.value, kind.value, message)
