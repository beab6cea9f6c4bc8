# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/observers/jsonfile.py

from __future__ import annotations
import json
from datetime import datetime, timezone
from pathlib import Path
from .interface import Observer
from .events import BaseEvent


def audit_path(directory: str | Path, scope: str, run_id: str) -> Path:
    """Audit logs are keyed by scope and start time: <scope>-<ts>-<run_id>.jsonl"""
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return Path(directory) / f"{scope}-{ts}-{run_id}.jsonl"


class JsonFileObserver(Observer):
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def notify(self, event: BaseEvent) -> None:
        with self.path.open("a") as f:
            json.dump({"type": event.__class__.__name__, **event.dict()}, f, default=str)
            f.write("\n")
