# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/kube/backend.py

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from replboot.bootstrap.provisioner import AlreadyExistsError, UnsupportedResourceError
from replboot.config.models import ResourceDescriptor
from replboot.helm.cli_runner import HelmCliRunner

from .kubectl import KubectlError, KubectlRunner
from .manifests import BUILDERS, CLUSTER_SCOPED, build_manifest, observed_spec

log = logging.getLogger("replboot")

RELEASE = "Release"

# "<chart>-<semver>", where the version may carry a prerelease or build suffix
_CHART_VERSION = re.compile(r"^(?P<name>.+?)-(?P<version>v?\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.+-]+)?)$")


class KubeResourceBackend:
    """
    ResourceBackend over kubectl (manifest kinds) and helm (Release).
    Errors other than not-found / already-exists propagate; the
    provisioner classifies them as transient.
    """

    def __init__(self, kubectl: KubectlRunner, helm: Optional[HelmCliRunner] = None):
        self.kubectl = kubectl
        self.helm = helm

    def _check(self, d: ResourceDescriptor) -> None:
        if d.kind == RELEASE:
            if self.helm is None:
                raise UnsupportedResourceError(f"{d.ref}: no chart installer configured")
            return
        if d.kind not in BUILDERS:
            raise UnsupportedResourceError(f"{d.ref}: unsupported kind '{d.kind}'")

    @staticmethod
    def _namespace(d: ResourceDescriptor) -> Optional[str]:
        return None if d.kind in CLUSTER_SCOPED else d.scope

    # ------------------------------------------------------------------
    def describe(self, d: ResourceDescriptor) -> Optional[Dict[str, Any]]:
        self._check(d)
        if d.kind == RELEASE:
            return self._describe_release(d)

        obj = self.kubectl.get_object(d.kind, d.name, self._namespace(d))
        if obj is None:
            return None
        return observed_spec(d.kind, obj)

    def create(self, d: ResourceDescriptor) -> None:
        self._check(d)
        if d.kind == RELEASE:
            self.helm.upgrade_install(
                d.name,
                d.spec["chart"],
                d.scope,
                version=d.spec.get("version"),
                values=d.spec.get("values") or {},
            )
            return

        try:
            self.kubectl.apply_objects([build_manifest(d)], create_only=True)
        except KubectlError as e:
            if e.already_exists:
                raise AlreadyExistsError(str(e)) from e
            raise

    def delete(self, d: ResourceDescriptor) -> bool:
        self._check(d)
        if d.kind == RELEASE:
            return self.helm.uninstall(d.name, d.scope)
        return self.kubectl.delete_object(d.kind, d.name, self._namespace(d))

    # ------------------------------------------------------------------
    def _describe_release(self, d: ResourceDescriptor) -> Optional[Dict[str, Any]]:
        entry = self.helm.status(d.name, d.scope)
        if entry is None:
            return None

        chart_name, version = _split_chart(str(entry.get("chart", "")), d.spec.get("version"))
        # desired chart may carry a repo prefix
        wanted = str(d.spec.get("chart", ""))
        chart = wanted if wanted.rsplit("/", 1)[-1] == chart_name else chart_name

        return {
            "chart": chart,
            "version": version,
            "values": self.helm.get_values(d.name, d.scope),
            "status": entry.get("status"),
        }


def _split_chart(reported: str, desired_version: Optional[str] = None) -> tuple[str, str]:
    """Split helm's "<chart>-<version>" into its parts."""
    if desired_version and reported.endswith(f"-{desired_version}"):
        return reported[: -len(desired_version) - 1], desired_version
    m = _CHART_VERSION.match(reported)
    if m is None:
        return reported, ""
    return m.group("name"), m.group("version")
