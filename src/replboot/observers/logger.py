# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/observers/logger.py

from __future__ import annotations

import logging

from .events import BaseEvent

_LEVELS = {
    "PhaseFailed": logging.ERROR,
    "PlanFailed": logging.ERROR,
    "PhaseRetry": logging.WARNING,
    "ResourceEnsured": logging.DEBUG,
    "ProbeFinished": logging.DEBUG,
}


class LoggerObserver:
    """Mirrors events into the run log; empty fields and the timestamp are left out."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        etype = event.__class__.__name__
        fields = ", ".join(
            f"{k}={v}" for k, v in event.dict().items() if k != "ts" and v not in (None, "", [], {})
        )
        self.logger.log(_LEVELS.get(etype, logging.INFO), "[EVENT] %s: %s", etype, fields)
