# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/temporal/client.py

from __future__ import annotations

import logging
from typing import Optional

from temporalio.client import Client

from .settings import TemporalSettings

log = logging.getLogger("replboot")


async def get_temporal_client(settings: Optional[TemporalSettings] = None) -> Client:
    settings = settings or TemporalSettings.from_env()
    log.debug("[temporal] connecting to %s (namespace %s)", settings.address, settings.namespace)
    return await Client.connect(settings.address, namespace=settings.namespace)
