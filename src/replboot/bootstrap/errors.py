# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/errors.py

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    RETRYABLE_INFRA = "retryable_infra"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    PROBE = "probe"
    INVALID = "invalid"
    CANCELLED = "cancelled"
    INTERNAL = "internal"

    @property
    def rerun_is_safe(self) -> bool:
        """A fresh run may succeed without an operator changing anything."""
        return self not in (ErrorKind.CONFLICT, ErrorKind.INVALID)


class BootstrapError(RuntimeError):
    """Base class for classified bootstrap failures."""

    kind: ErrorKind = ErrorKind.INTERNAL


class RetryableInfraError(BootstrapError):
    """Transient control-plane failure; raised once the retry budget is spent."""

    kind = ErrorKind.RETRYABLE_INFRA


class ConflictError(BootstrapError):
    """Live state disagrees with what was asked for. Never retried."""

    kind = ErrorKind.CONFLICT


class InvalidRequestError(BootstrapError):
    kind = ErrorKind.INVALID


class PhaseTimeoutError(BootstrapError, TimeoutError):
    kind = ErrorKind.TIMEOUT


class UnreachableError(BootstrapError):
    kind = ErrorKind.UNREACHABLE


class ProbeError(BootstrapError):
    """A readiness condition could not be evaluated at all."""

    kind = ErrorKind.PROBE


class BootstrapCancelled(BootstrapError):
    kind = ErrorKind.CANCELLED


class TerminalRunError(BootstrapError):
    """Raised when something tries to drive a run that already finished."""

    kind = ErrorKind.INVALID
