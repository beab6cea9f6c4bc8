# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/helm/cli_runner.py

from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
import tempfile
import uuid
from typing import Any, Dict, List, Optional

import yaml

from replboot.utils.ssh_runner import SSHRunner

from .errors import HelmError, ReleaseNotFound

log = logging.getLogger("replboot")


class HelmCliRunner:
    """
    A pragmatic wrapper around the `helm` CLI.
    - Only the verbs the bootstrap needs: list/status, get values,
      'upgrade --install', 'uninstall'.
    - Runs locally, or on a controller host when given an SSHRunner.
    - Testable by mocking subprocess.run.
    """

    def __init__(
        self,
        kube_context: str | None = None,
        kubeconfig: str | None = None,
        env: dict[str, str] | None = None,
        ssh: Optional[SSHRunner] = None,
    ):
        self.kube_context = kube_context
        self.kubeconfig = kubeconfig
        self.env = env or {}
        self.ssh = ssh

    # ------------------------- internal helpers -------------------------

    def _base(self) -> list[str]:
        cmd = ["helm"]
        if self.kube_context:
            cmd += ["--kube-context", self.kube_context]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        return cmd

    def _run(self, argv: List[str], allow_rc: set[int] | None = None) -> subprocess.CompletedProcess:
        allow_rc = allow_rc or {0}
        log.debug("[helm] %s", " ".join(argv))

        if self.ssh is not None:
            rc, out, err = self.ssh.run(shlex.join(argv), sudo=True)
            cp = subprocess.CompletedProcess(argv, rc, out, err)
        else:
            cp = subprocess.run(
                argv,
                check=False,
                text=True,
                capture_output=True,
                env={**os.environ, **self.env} if self.env else None,
            )

        if cp.returncode not in allow_rc:
            stderr = getattr(cp, "stderr", "") or ""
            if "not found" in stderr:
                raise ReleaseNotFound(stderr.strip())
            raise HelmError(f"helm failed (rc={cp.returncode}) for {argv!r}\n{stderr}")
        return cp

    def _write_values(self, values: Dict[str, Any]) -> Optional[str]:
        """Values as a file helm can read (remote over SSH), or None when empty."""
        if not values:
            return None
        content = yaml.safe_dump(values)
        if self.ssh is not None:
            remote = f"/tmp/.replboot-values.{uuid.uuid4().hex}.yaml"
            self.ssh.put_text(content, remote)
            return remote
        with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as tf:
            tf.write(content)
        return tf.name

    def _drop_values(self, path: Optional[str]) -> None:
        if path is None:
            return
        if self.ssh is not None:
            self.ssh.run(f"rm -f {shlex.quote(path)}", sudo=True)
        elif os.path.exists(path):
            os.unlink(path)

    # ------------------------- public methods -------------------------

    def status(self, name: str, namespace: str) -> Optional[dict]:
        """
        The `helm list` entry for one release ({"name", "chart", "status",
        ...}, where chart is "<chart>-<version>"), or None if not installed.
        """
        argv = self._base() + ["list", "-n", namespace, "--filter", f"^{name}$", "-o", "json"]
        cp = self._run(argv)
        entries = json.loads(cp.stdout or "[]") or []
        for entry in entries:
            if entry.get("name") == name:
                return entry
        return None

    def get_values(self, name: str, namespace: str) -> Dict[str, Any]:
        """User-supplied values of an installed release."""
        argv = self._base() + ["get", "values", name, "-n", namespace, "-o", "json"]
        cp = self._run(argv)
        return json.loads(cp.stdout or "null") or {}

    def upgrade_install(
        self,
        name: str,
        chart: str,
        namespace: str,
        *,
        version: Optional[str] = None,
        values: Optional[Dict[str, Any]] = None,
        wait: bool = False,
        timeout_seconds: int = 600,
    ) -> None:
        argv = self._base() + ["upgrade", "--install", name, chart, "-n", namespace]
        values_file = self._write_values(values or {})
        if values_file:
            argv += ["-f", values_file]
        if version:
            argv += ["--version", version]
        if wait:
            argv += ["--wait", "--timeout", f"{timeout_seconds}s"]
        try:
            self._run(argv)
        finally:
            self._drop_values(values_file)

    def uninstall(self, name: str, namespace: str) -> bool:
        """True if the release was removed, False if it was not installed."""
        argv = self._base() + ["uninstall", name, "-n", namespace]
        try:
            self._run(argv)
        except ReleaseNotFound:
            return False
        return True
