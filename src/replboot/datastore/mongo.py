# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/datastore/mongo.py

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from replboot.bootstrap.models import MemberRole, TopologySpec
from replboot.config.models import MongoSettings
from replboot.kube.kubectl import KubectlError, KubectlRunner

from .channel import ChannelError, CommandRejected, MemberStatus

log = logging.getLogger("replboot")

NOT_YET_INITIALIZED_CODE = 94

# replSetGetStatus.myState -> role
_ROLES = {
    0: MemberRole.STARTUP,      # STARTUP
    1: MemberRole.PRIMARY,
    2: MemberRole.SECONDARY,
    3: MemberRole.RECOVERING,
    5: MemberRole.STARTUP,      # STARTUP2
    7: MemberRole.ARBITER,
    9: MemberRole.RECOVERING,   # ROLLBACK
}

# Every script prints one EJSON line: {"ok": 1, ...} or the error fields.
_WRAP = """
let out;
try {{ out = {expr}; }}
catch (e) {{ out = {{ok: 0, code: e.code, codeName: e.codeName, errmsg: e.message}}; }}
print(EJSON.stringify(out, {{relaxed: true}}));
"""

_STATUS_EXPR = """(function () {
  const s = db.adminCommand({replSetGetStatus: 1});
  let c = null;
  try { c = db.adminCommand({replSetGetConfig: 1}).config; } catch (e) {}
  return {ok: 1, status: s, config: c};
})()"""


def build_initiate_document(topology: TopologySpec, port: int, seed_ordinal: int) -> Dict[str, Any]:
    """
    replSetInitiate config. Member _id is the ordinal; the seed gets a
    higher priority so it is the one elected Primary.
    """
    return {
        "_id": topology.replication_set_id,
        "members": [
            {
                "_id": m.ordinal,
                "host": f"{m.address}:{port}",
                "priority": 2 if m.ordinal == seed_ordinal else 1,
            }
            for m in topology.members
        ],
    }


def pod_for(address: str) -> tuple[str, str]:
    """'member-0.test[.domain]' -> ('member-0', 'test')"""
    parts = address.split(".")
    if len(parts) < 2:
        raise ChannelError(f"cannot derive pod and namespace from address '{address}'")
    return parts[0], parts[1]


class MongoShellChannel:
    """
    AdminChannel that runs mongosh inside each member's own pod and talks
    to the member through its stable address (direct connection, so an
    uninitialized member answers too).
    """

    def __init__(
        self,
        kubectl: KubectlRunner,
        *,
        settings: Optional[MongoSettings] = None,
        port: int = 27017,
        server_timeout_ms: int = 5000,
    ):
        self.kubectl = kubectl
        self.settings = settings or MongoSettings()
        self.port = port
        self.server_timeout_ms = server_timeout_ms

    # ------------------------------------------------------------------
    def _uri(self, address: str) -> str:
        return (
            f"mongodb://{address}:{self.port}/admin"
            f"?directConnection=true&serverSelectionTimeoutMS={self.server_timeout_ms}"
        )

    def _eval(self, address: str, expr: str) -> Dict[str, Any]:
        pod, namespace = pod_for(address)
        s = self.settings
        cmd: List[str] = [s.shell, self._uri(address), "--quiet"]
        if s.username:
            cmd += ["-u", s.username, "-p", s.password or "", "--authenticationDatabase", "admin"]
        cmd += ["--eval", _WRAP.format(expr=expr)]

        try:
            rc, out, err = self.kubectl.exec_in_pod(pod, namespace, cmd, container=s.container)
        except KubectlError as e:
            raise ChannelError(f"{address}: {e}") from e
        if rc != 0:
            raise ChannelError(f"{address}: {s.shell} exited {rc}: {(err or out).strip()}")

        lines = [ln for ln in out.splitlines() if ln.strip()]
        if not lines:
            raise ChannelError(f"{address}: empty reply")
        try:
            return json.loads(lines[-1])
        except json.JSONDecodeError as e:
            raise ChannelError(f"{address}: unreadable reply {lines[-1]!r}") from e

    @staticmethod
    def _rejected(reply: Dict[str, Any]) -> CommandRejected:
        return CommandRejected(
            reply.get("errmsg") or "command failed",
            code=reply.get("code"),
            code_name=reply.get("codeName"),
        )

    # ------------------------------------------------------------------
    def ping(self, address: str) -> bool:
        reply = self._eval(address, "db.adminCommand({ping: 1})")
        return bool(reply.get("ok"))

    def member_status(self, address: str) -> MemberStatus:
        reply = self._eval(address, _STATUS_EXPR)
        if not reply.get("ok"):
            if reply.get("code") == NOT_YET_INITIALIZED_CODE:
                return MemberStatus(initialized=False)
            raise self._rejected(reply)

        status = reply.get("status") or {}
        config = reply.get("config") or {}
        if config.get("members"):
            hosts = tuple(m.get("host") for m in config["members"])
        else:
            hosts = tuple(m.get("name") for m in status.get("members", []))

        return MemberStatus(
            initialized=True,
            role=_ROLES.get(status.get("myState"), MemberRole.UNKNOWN),
            set_name=status.get("set") or config.get("_id"),
            hosts=hosts,
        )

    def initiate(self, address: str, topology: TopologySpec, seed_ordinal: int) -> None:
        doc = build_initiate_document(topology, self.port, seed_ordinal)
        reply = self._eval(address, f"db.adminCommand({{replSetInitiate: {json.dumps(doc)}}})")
        if not reply.get("ok"):
            raise self._rejected(reply)
        log.info("[mongo] replSetInitiate accepted by %s", address)
