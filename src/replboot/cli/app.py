# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/cli/app.py
from __future__ import annotations

import asyncio
import signal
import threading
from typing import Optional

import typer
import yaml
from pydantic import ValidationError
from temporalio.exceptions import WorkflowAlreadyStartedError

from replboot.bootstrap.factory import build_backend, build_channel, build_kubectl, build_orchestrator
from replboot.bootstrap.health import TopologyHealthChecker
from replboot.bootstrap.identity import MemberIdentityAllocator
from replboot.bootstrap.lease import LeaseHeldError, ScopeLease
from replboot.bootstrap.models import HealthState
from replboot.bootstrap.planner import plan_waves
from replboot.bootstrap.provisioner import ResourceTeardown
from replboot.config.loader import load_config
from replboot.config.models import BootstrapConfig

from replboot.logging.log import init_logging
from replboot.observers.console import ConsoleObserver
from replboot.observers.dispatcher import EventBus
from replboot.observers.logger import LoggerObserver
from replboot.observers.jsonfile import JsonFileObserver, audit_path

from replboot.temporal.models import BootstrapRequest
from replboot.cli.temporal_start import start_bootstrap_workflow

# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="replboot: bootstrap a replicated data store on Kubernetes")

ConfigOpt = typer.Option(..., "--config", "-c", help="Cluster definition YAML")


def _load(config: str) -> BootstrapConfig:
    try:
        return load_config(config)
    except (OSError, yaml.YAMLError, ValidationError, ValueError) as e:
        typer.secho(f"Invalid config {config}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)


# ------------------------------------------------------------------------------
# Bootstrap
# ------------------------------------------------------------------------------

@app.command()
def bootstrap(
    config: str = ConfigOpt,
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Provision, initiate and verify one replicated data store."""
    cfg = _load(config)
    scope = cfg.cluster.scope

    logger, run_id, log_path = init_logging(base_dir=cfg.audit.directory, scope=scope, verbose=verbose)
    audit = audit_path(cfg.audit.directory, scope, run_id)

    typer.echo("")
    typer.secho("replboot bootstrap started", bold=True)
    typer.echo(f"  Scope    : {scope} ({cfg.cluster.members} members)")
    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {log_path}")
    typer.echo(f"  Audit    : {audit}")
    typer.echo("")

    bus = EventBus([ConsoleObserver(), LoggerObserver(logger), JsonFileObserver(audit)])

    cancel = threading.Event()

    def _on_sigint(signum, frame):
        typer.secho("\nCancelling after the current step (no rollback)...", fg=typer.colors.YELLOW)
        cancel.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        with ScopeLease(scope, cfg.audit.lease_directory):
            with build_kubectl(cfg) as kubectl:
                orch = build_orchestrator(cfg, bus, kubectl=kubectl)
                run = orch.run(cfg.cluster, resources=cfg.declared_resources(), cancel=cancel, run_id=run_id)
    except LeaseHeldError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(3)
    finally:
        signal.signal(signal.SIGINT, previous)

    typer.echo("")
    if run.succeeded:
        typer.secho(run.summary(), fg=typer.colors.GREEN, bold=True)
        return

    err = run.error
    typer.secho(
        f"phase {err.phase.value} failed ({err.kind.value}): {err.message}",
        fg=typer.colors.RED,
        bold=True,
    )
    if err.kind.rerun_is_safe:
        typer.echo("Re-running the bootstrap is safe; completed steps are recognised and skipped.")
    else:
        typer.echo("Operator action needed before re-running: fix the conflicting or invalid state above.")
    raise typer.Exit(1)


# ------------------------------------------------------------------------------
# Read-only helpers
# ------------------------------------------------------------------------------

@app.command()
def plan(config: str = ConfigOpt):
    """Print the provisioning waves."""
    cfg = _load(config)
    try:
        waves = plan_waves(cfg.declared_resources())
    except ValueError as e:
        typer.secho(f"Invalid resource plan: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)

    for i, wave in enumerate(waves, start=1):
        typer.echo(f"wave {i}: " + ", ".join(r.ref for r in wave))


@app.command()
def identities(config: str = ConfigOpt):
    """Print ordinal, stable name and address of every member."""
    cfg = _load(config)
    for m in MemberIdentityAllocator().allocate(cfg.cluster):
        typer.echo(f"{m.ordinal}\t{m.stable_name}\t{m.address}")


@app.command()
def health(config: str = ConfigOpt):
    """One topology health snapshot. Exit code 0 only when Healthy."""
    cfg = _load(config)
    with build_kubectl(cfg) as kubectl:
        checker = TopologyHealthChecker(
            build_channel(cfg, kubectl),
            grace_seconds=cfg.policies.converging_grace_seconds,
        )
        snapshot = checker.check(MemberIdentityAllocator().topology(cfg.cluster))

    color = typer.colors.GREEN if snapshot.state == HealthState.HEALTHY else typer.colors.YELLOW
    typer.secho(f"{cfg.cluster.scope}: {snapshot.state.value} ({snapshot.detail})", fg=color, bold=True)
    for ordinal, role in sorted(snapshot.roles.items()):
        typer.echo(f"  {ordinal}\t{role.value}")
    if snapshot.state != HealthState.HEALTHY:
        raise typer.Exit(1)


# ------------------------------------------------------------------------------
# Teardown
# ------------------------------------------------------------------------------

@app.command()
def teardown(
    config: str = ConfigOpt,
    yes: bool = typer.Option(False, "--yes", help="Do not ask for confirmation"),
):
    """Delete the declared resources in reverse dependency order."""
    cfg = _load(config)
    if not yes:
        typer.confirm(f"Delete all bootstrap resources of scope '{cfg.cluster.scope}'?", abort=True)

    try:
        with ScopeLease(cfg.cluster.scope, cfg.audit.lease_directory):
            with build_kubectl(cfg) as kubectl:
                deleted, absent = ResourceTeardown(build_backend(cfg, kubectl)).teardown(cfg.declared_resources())
    except LeaseHeldError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(3)

    for ref in deleted:
        typer.echo(f"deleted  {ref}")
    for ref in absent:
        typer.echo(f"absent   {ref}")


# ------------------------------------------------------------------------------
# Durable execution
# ------------------------------------------------------------------------------

@app.command()
def submit(
    config: str = ConfigOpt,
    audit_dir: Optional[str] = typer.Option(None, "--audit-dir"),
):
    """Start the bootstrap as a Temporal workflow (one per scope)."""
    cfg = _load(config)
    req = BootstrapRequest(config_path=config, audit_dir=audit_dir)
    try:
        ref = asyncio.run(start_bootstrap_workflow(req, cfg.cluster.scope))
    except WorkflowAlreadyStartedError:
        typer.secho(f"A bootstrap of scope '{cfg.cluster.scope}' is already running", fg=typer.colors.RED, err=True)
        raise typer.Exit(3)
    typer.echo(f"Started workflow: {ref}")


@app.command()
def worker(
    max_workers: Optional[int] = typer.Option(None, "--max-workers", help="Defaults to REPLBOOT_ACTIVITY_THREADS or 4"),
):
    """Run the Temporal worker."""
    from replboot.temporal.worker import main

    asyncio.run(main(max_workers=max_workers))


if __name__ == "__main__":
    app()
