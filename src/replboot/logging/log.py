# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/logging/log.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

FILE_FORMAT = "%(asctime)s | %(levelname)-7s | %(threadName)-12s | %(message)s"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def init_logging(
    *,
    base_dir: Path | None = None,
    scope: str | None = None,
    name: str = "replboot",
    verbose: bool = False,
    run_id: str | None = None,
) -> tuple[logging.Logger, str, Path]:
    """
    Per-run logging for one bootstrap.

    The file gets the full DEBUG trace, including the provisioner's worker
    threads; the console gets INFO (DEBUG with verbose). Files are named
    like the audit log, ``<scope>-<ts>-<run_id>.log``, so the two sort
    together. Returns (logger, run_id, log_path).
    """
    run_id = run_id or str(uuid.uuid4())
    base_dir = Path(base_dir) if base_dir is not None else Path.home() / ".replboot" / "logs"
    base_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    log_path = base_dir / f"{scope or name}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for old in list(logger.handlers):
        old.close()
        logger.removeHandler(old)
    logger.propagate = False

    fh = logging.FileHandler(log_path)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.debug("run %s of %s logging to %s", run_id, scope or "-", log_path)
    return logger, run_id, log_path
