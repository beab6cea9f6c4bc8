# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/config/loader.py

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import BootstrapConfig

log = logging.getLogger("replboot")

SECRETS_ENV = "REPLBOOT_SECRETS_FILE"
SECRETS_NAME = "secrets.yaml"


def _overlay(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    """
    New dict with *extra* laid over *base*. Nested mappings merge key by
    key; empty values in *extra* (None, "") leave *base* alone.
    """
    out = dict(base)
    for key, value in extra.items():
        if isinstance(out.get(key), dict) and isinstance(value, dict):
            out[key] = _overlay(out[key], value)
        elif value not in (None, ""):
            out[key] = value
    return out


def _secrets_path(config_path: Path) -> Optional[Path]:
    """$REPLBOOT_SECRETS_FILE when set, else secrets.yaml beside the config."""
    explicit = os.environ.get(SECRETS_ENV)
    if explicit:
        p = Path(explicit)
        if not p.is_file():
            log.warning("%s=%s does not exist, ignoring it", SECRETS_ENV, explicit)
            return None
        return p

    sibling = config_path.parent / SECRETS_NAME
    return sibling if sibling.is_file() else None


def _read(path: Path) -> Dict[str, Any]:
    data = yaml.safe_load(os.path.expandvars(path.read_text()))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: str | Path) -> BootstrapConfig:
    """
    Read a cluster definition.

    ``${VAR}`` references are expanded from the environment. Credentials
    (data-store admin user, SSH password) can be kept out of the definition
    in a secrets file with the same layout, which is laid over it before
    validation.
    """
    path = Path(path)
    data = _read(path)

    secrets = _secrets_path(path)
    if secrets is not None:
        log.debug("[config] overlaying secrets from %s", secrets)
        data = _overlay(data, _read(secrets))

    cfg = BootstrapConfig.model_validate(data)
    log.debug("[config] %s: scope=%s members=%d env=%s", path, cfg.cluster.scope, cfg.cluster.members, cfg.environment)
    return cfg
