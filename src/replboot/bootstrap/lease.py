# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/lease.py

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

log = logging.getLogger("replboot")


class LeaseHeldError(RuntimeError):
    def __init__(self, scope: str, path: Path, holder: str = ""):
        msg = f"scope '{scope}' is already being bootstrapped (lock {path})"
        if holder:
            msg += f": {holder}"
        super().__init__(msg)
        self.scope = scope
        self.path = path


class ScopeLease:
    """
    One bootstrap per scope on this host.

    The lock file is created exclusively; a stale file left by a killed
    process must be removed by hand.
    """

    def __init__(self, scope: str, directory: Path):
        self.scope = scope
        self.path = Path(directory) / f"{scope}.lock"
        self._held = False

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise LeaseHeldError(self.scope, self.path, self._holder()) from None
        with os.fdopen(fd, "w") as f:
            f.write(f"pid={os.getpid()} since={datetime.now(timezone.utc).isoformat()}\n")
        self._held = True
        log.debug("[lease] acquired %s", self.path)

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            log.warning("[lease] %s vanished before release", self.path)
        self._held = False
        log.debug("[lease] released %s", self.path)

    def _holder(self) -> str:
        try:
            return self.path.read_text().strip()
        except OSError:
            return ""

    def __enter__(self) -> "ScopeLease":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
