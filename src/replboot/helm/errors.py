# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/helm/errors.py
class HelmError(RuntimeError):
    """Base class for Helm-related failures."""


class ReleaseNotFound(HelmError):
    """The named release is not installed in the namespace."""
