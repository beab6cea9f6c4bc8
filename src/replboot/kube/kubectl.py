# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/kube/kubectl.py

from __future__ import annotations

import json
import logging
import shlex
import subprocess
import uuid
from typing import Iterable, List, Optional

import yaml

from replboot.utils.ssh_runner import SSHRunner

log = logging.getLogger("replboot")


class KubectlError(RuntimeError):
    def __init__(self, message: str, *, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr

    @property
    def not_found(self) -> bool:
        return "NotFound" in self.stderr or "not found" in self.stderr

    @property
    def already_exists(self) -> bool:
        return "AlreadyExists" in self.stderr or "already exists" in self.stderr


class KubectlRunner:
    """
    kubectl, either on this machine or on a controller host over SSH.
    Testable by mocking subprocess.run (local) or passing a fake SSHRunner.
    """

    def __init__(
        self,
        *,
        context: Optional[str] = None,
        kubeconfig: Optional[str] = None,
        ssh: Optional[SSHRunner] = None,
        timeout: int = 60,
    ):
        self.context = context
        self.kubeconfig = kubeconfig
        self.ssh = ssh
        self.timeout = timeout

    def close(self) -> None:
        if self.ssh is not None:
            self.ssh.close()

    def __enter__(self) -> "KubectlRunner":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------- internal helpers -------------------------

    def _base(self) -> List[str]:
        cmd = ["kubectl"]
        if self.context:
            cmd += ["--context", self.context]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        return cmd

    def _run(self, args: List[str], *, stdin: Optional[str] = None) -> tuple[int, str, str]:
        """Returns (rc, stdout, stderr); never raises on a non-zero rc."""
        argv = self._base() + args

        if self.ssh is not None:
            if stdin is None:
                return self.ssh.run(shlex.join(argv), sudo=True, timeout=self.timeout)
            # one upload per call; concurrent callers share the controller
            remote = f"/tmp/.replboot-kubectl.{uuid.uuid4().hex}.yaml"
            self.ssh.put_text(stdin, remote)
            argv = [remote if a == "-" else a for a in argv]
            try:
                return self.ssh.run(shlex.join(argv), sudo=True, timeout=self.timeout)
            finally:
                self.ssh.run(f"rm -f {shlex.quote(remote)}", sudo=True)

        log.debug("[kubectl] %s", " ".join(argv))
        try:
            cp = subprocess.run(
                argv,
                input=stdin,
                check=False,
                text=True,
                capture_output=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise KubectlError(f"kubectl timed out after {self.timeout}s: {' '.join(args)}") from e
        return cp.returncode, cp.stdout or "", cp.stderr or ""

    @staticmethod
    def _ns(namespace: Optional[str]) -> List[str]:
        return ["-n", namespace] if namespace else []

    # ------------------------- reads -------------------------

    def get_object(self, kind: str, name: str, namespace: Optional[str] = None) -> Optional[dict]:
        """The live object, or None when it does not exist."""
        rc, out, err = self._run(["get", kind.lower(), name, "-o", "json"] + self._ns(namespace))
        if rc != 0:
            e = KubectlError(f"kubectl get {kind}/{name} failed: {err.strip() or out.strip()}", stderr=err)
            if e.not_found:
                return None
            raise e
        if not out.strip():
            raise KubectlError(f"kubectl get {kind}/{name} returned empty output")
        return json.loads(out)

    def list_items(
        self,
        kind: str,
        namespace: Optional[str] = None,
        *,
        selector: Optional[str] = None,
    ) -> List[dict]:
        args = ["get", kind.lower(), "-o", "json"] + self._ns(namespace)
        if selector:
            args += ["-l", selector]
        rc, out, err = self._run(args)
        if rc != 0:
            raise KubectlError(f"kubectl get {kind} failed: {err.strip() or out.strip()}", stderr=err)
        return json.loads(out or "{}").get("items", [])

    # ------------------------- writes -------------------------

    def apply_objects(self, objects: Iterable[dict], *, create_only: bool = False) -> None:
        """
        Apply manifests. With create_only the objects are created and an
        existing object is an error (KubectlError.already_exists).
        """
        objects = list(objects)
        if not objects:
            return

        manifest = yaml.safe_dump_all(objects, sort_keys=False)
        verb = "create" if create_only else "apply"
        rc, out, err = self._run([verb, "-f", "-"], stdin=manifest)
        refs = ", ".join(f"{o.get('kind')}/{o.get('metadata', {}).get('name')}" for o in objects)
        if rc != 0:
            raise KubectlError(f"kubectl {verb} failed for {refs}: {err.strip() or out.strip()}", stderr=err)
        log.debug("[kubectl] %s %s", verb, refs)

    def delete_object(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        """True if something was deleted, False if it was already gone."""
        rc, out, err = self._run(
            ["delete", kind.lower(), name, "--ignore-not-found", "--wait=false", "-o", "name"]
            + self._ns(namespace)
        )
        if rc != 0:
            raise KubectlError(f"kubectl delete {kind}/{name} failed: {err.strip() or out.strip()}", stderr=err)
        return bool(out.strip())

    def exec_in_pod(
        self,
        pod: str,
        namespace: str,
        command: List[str],
        *,
        container: Optional[str] = None,
    ) -> tuple[int, str, str]:
        args = ["exec", pod] + self._ns(namespace)
        if container:
            args += ["-c", container]
        return self._run(args + ["--"] + command)
