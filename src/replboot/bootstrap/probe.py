# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/probe.py

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from replboot.config.models import ProbeSettings
from replboot.utils.clock import Clock, SystemClock

from .errors import BootstrapCancelled
from .models import ProbeOutcome, ProbeResult

log = logging.getLogger("replboot")


class ReadinessProbe:
    """
    Polls a side-effect-free predicate until it holds or a deadline passes.

    - Expiry is an outcome (TIMED_OUT), not an exception.
    - A predicate that raises counts as "not ready yet"; more than
      `max_errors` consecutive raises ends the wait with PROBE_ERROR.
    - The interval may grow by `backoff` per poll, capped at `max_interval`.
    - The last sleep is clamped to the deadline, so expiry is reported at
      the deadline rather than one interval past it.
    """

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        max_errors: int = 5,
        backoff: float = 1.0,
        max_interval: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.clock = clock or SystemClock()
        self.max_errors = max_errors
        self.backoff = backoff
        self.max_interval = max_interval
        self.cancel = cancel

    @classmethod
    def from_settings(
        cls,
        settings: ProbeSettings,
        *,
        clock: Optional[Clock] = None,
        cancel: Optional[threading.Event] = None,
    ) -> "ReadinessProbe":
        return cls(
            clock=clock,
            max_errors=settings.max_errors,
            backoff=settings.backoff,
            max_interval=settings.max_poll_interval_seconds,
            cancel=cancel,
        )

    def wait(
        self,
        predicate: Callable[[], bool],
        *,
        timeout: float,
        poll_interval: float,
        description: str = "condition",
        cancel: Optional[threading.Event] = None,
    ) -> ProbeResult:
        cancel = cancel if cancel is not None else self.cancel
        start = self.clock.monotonic()
        deadline = start + timeout
        interval = poll_interval
        polls = 0
        errors = 0
        last_error: Optional[str] = None

        while True:
            if cancel is not None and cancel.is_set():
                raise BootstrapCancelled(f"cancelled while waiting for {description}")

            polls += 1
            try:
                if predicate():
                    elapsed = self.clock.monotonic() - start
                    log.debug("[probe] %s ready after %d polls (%.1fs)", description, polls, elapsed)
                    return ProbeResult(ProbeOutcome.READY, polls, elapsed)
                errors = 0
            except BootstrapCancelled:
                raise
            except Exception as exc:
                errors += 1
                last_error = f"{exc.__class__.__name__}: {exc}"
                log.debug("[probe] %s query failed (%d/%d): %s", description, errors, self.max_errors, last_error)
                if errors > self.max_errors:
                    return ProbeResult(
                        ProbeOutcome.PROBE_ERROR,
                        polls,
                        self.clock.monotonic() - start,
                        error=last_error,
                    )

            now = self.clock.monotonic()
            if now >= deadline:
                log.debug("[probe] %s not ready within %.1fs", description, timeout)
                return ProbeResult(ProbeOutcome.TIMED_OUT, polls, now - start, error=last_error)

            self.clock.sleep(min(interval, deadline - now))
            interval = interval * self.backoff
            if self.max_interval is not None:
                interval = min(interval, self.max_interval)
