# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/utils/ssh_runner.py

from __future__ import annotations

import logging
import shlex
import uuid
from typing import Optional

import paramiko

from replboot.config.models import SSHSettings
from replboot.utils.retry import retry

log = logging.getLogger("replboot")


class SSHRunner:
    """Runs shell commands on a controller host that has kubectl/helm."""

    def __init__(self, client: paramiko.SSHClient):
        self.client = client

    def run(
        self,
        cmd: str,
        *,
        sudo: bool = False,
        timeout: Optional[int] = None,
    ) -> tuple[int, str, str]:
        if sudo:
            cmd = f"sudo -H -E bash -c {shlex.quote(cmd)}"

        log.debug("[ssh] %s", cmd)
        stdin, stdout, stderr = self.client.exec_command(cmd, timeout=timeout)
        out = stdout.read().decode()
        err = stderr.read().decode()
        rc = stdout.channel.recv_exit_status()
        return rc, out, err

    def put_text(self, content: str, remote_path: str, *, sudo: bool = False) -> None:
        if sudo:
            tmp = f"/tmp/.replboot.tmp.{uuid.uuid4().hex}"
            self.put_text(content, tmp)
            self.run(f"mv {shlex.quote(tmp)} {shlex.quote(remote_path)}", sudo=True)
            return

        sftp = self.client.open_sftp()
        try:
            with sftp.open(remote_path, "w") as f:
                f.write(content)
        finally:
            sftp.close()

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "SSHRunner":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _load_pkey(path: str):
    for key_cls in (paramiko.RSAKey, paramiko.Ed25519Key, paramiko.ECDSAKey):
        try:
            return key_cls.from_private_key_file(path)
        except paramiko.SSHException:
            continue
    return None


@retry(
    retries=3,
    delay=2.0,
    backoff=2.0,
    retry_on=(paramiko.SSHException, OSError),
    on_retry=lambda attempt, exc: log.warning("[ssh] connect attempt %d failed: %s", attempt, exc),
)
def connect_ssh(settings: SSHSettings, *, connect_timeout: float = 20.0) -> SSHRunner:
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    pkey = _load_pkey(settings.key_path) if settings.key_path else None

    client.connect(
        hostname=settings.host,
        port=settings.port,
        username=settings.username,
        password=settings.password if not pkey else None,
        pkey=pkey,
        timeout=connect_timeout,
        allow_agent=True,
        look_for_keys=True,
    )
    log.debug("[ssh] connected to %s@%s:%d", settings.username, settings.host, settings.port)
    return SSHRunner(client)
