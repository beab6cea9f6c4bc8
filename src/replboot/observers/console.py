# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/observers/console.py
import typer

from .events import BaseEvent

_COLORS = {
    "PhaseFailed": typer.colors.RED,
    "RunSummary": typer.colors.BRIGHT_WHITE,
    "PhaseRetry": typer.colors.YELLOW,
}


class ConsoleObserver:
    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        k = event.__class__.__name__
        line = (
            f"[{d['ts']}] {k} scope={d['scope']} data={{"
            + ", ".join(f"{x}={y}" for x, y in d.items() if x not in ("ts", "run_id", "env", "scope"))
            + "}"
        )
        typer.secho(line, fg=_COLORS.get(k))
