# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/observers/interface.py

from __future__ import annotations

from typing import Protocol

from .events import BaseEvent


class Observer(Protocol):
    """Receives every bootstrap event. Called on the emitting thread; must return quickly."""

    def notify(self, event: BaseEvent) -> None: ...
