# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/config/models.py

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

log = logging.getLogger("replboot")

_DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


# ---------------------------------------------------------------------
# Cluster definition
# ---------------------------------------------------------------------
class ResourceSizing(BaseModel):
    model_config = ConfigDict(frozen=True)

    compute_class: str = "standard"     # node pool / instance class label
    storage_size: str = "10Gi"          # per-member claim size
    storage_provisioner: str = "rancher.io/local-path"
    cpu: Optional[str] = None
    memory: Optional[str] = None


class ReleaseRef(BaseModel):
    """A chart release installed as part of provisioning."""

    model_config = ConfigDict(frozen=True)

    name: str
    chart: str
    version: Optional[str] = None
    values: Dict[str, Any] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list)


class ClusterSpec(BaseModel):
    """
    Desired shape of one replicated data store.
    Frozen: a bootstrap run never sees it change.
    """

    model_config = ConfigDict(frozen=True)

    members: int = Field(3, ge=1)
    scope: str
    sizing: ResourceSizing = ResourceSizing()
    credential_ref: Optional[str] = None

    replication_set_id: str = "rs0"
    member_prefix: str = "member"
    data_port: int = Field(27017, ge=1, le=65535)
    storage_class: Optional[str] = None   # None -> "<scope>-sc"
    domain: Optional[str] = None          # appended to member addresses when set
    image: str = "mongo:7.0"
    release: Optional[ReleaseRef] = None

    @field_validator("scope", "member_prefix")
    @classmethod
    def _dns_label(cls, v: str) -> str:
        if not _DNS_LABEL.match(v) or len(v) > 63:
            raise ValueError(f"'{v}' is not a valid DNS label")
        return v

    @model_validator(mode="after")
    def _warn_even_members(self) -> "ClusterSpec":
        if self.members > 1 and self.members % 2 == 0:
            log.warning(
                "cluster %s: %d members gives no extra fault tolerance over %d",
                self.scope, self.members, self.members - 1,
            )
        return self

    @property
    def storage_class_name(self) -> str:
        return self.storage_class or f"{self.scope}-sc"

    @property
    def quorum(self) -> int:
        return self.members // 2 + 1


class ResourceDescriptor(BaseModel):
    """
    One infrastructure resource the bootstrap must ensure.

    `spec` holds the fields that must match for an existing resource to be
    accepted; `depends_on` lists "Kind/name" refs that must exist first.
    """

    model_config = ConfigDict(frozen=True)

    kind: str
    name: str
    scope: str
    spec: Dict[str, Any] = Field(default_factory=dict)
    depends_on: Tuple[str, ...] = ()

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.kind, self.name, self.scope)

    @property
    def ref(self) -> str:
        return f"{self.kind}/{self.name}"


# ---------------------------------------------------------------------
# Retry / polling policy
# ---------------------------------------------------------------------
class RetryPolicy(BaseModel):
    max_attempts: int = Field(5, ge=1)
    base_delay_seconds: float = Field(2.0, ge=0)
    multiplier: float = Field(2.0, ge=1)
    max_delay_seconds: float = Field(60.0, ge=0)

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number `attempt` (1-based)."""
        delay = self.base_delay_seconds * (self.multiplier ** max(attempt - 1, 0))
        return min(delay, self.max_delay_seconds)


class ProbeSettings(BaseModel):
    timeout_seconds: float = Field(600.0, gt=0)
    poll_interval_seconds: float = Field(5.0, gt=0)
    backoff: float = Field(1.0, ge=1)
    max_poll_interval_seconds: Optional[float] = None
    max_errors: int = Field(5, ge=0)


class PhasePolicies(BaseModel):
    provisioning: RetryPolicy = RetryPolicy()
    readiness: ProbeSettings = ProbeSettings()
    readiness_rounds: int = Field(3, ge=1)
    initiation: RetryPolicy = RetryPolicy(max_attempts=5, base_delay_seconds=5.0)
    reachability: RetryPolicy = RetryPolicy(max_attempts=10, base_delay_seconds=3.0, max_delay_seconds=30.0)
    reachability_probe: ProbeSettings = ProbeSettings(timeout_seconds=10.0, poll_interval_seconds=2.0, max_errors=3)
    health: ProbeSettings = ProbeSettings(timeout_seconds=300.0, poll_interval_seconds=5.0)
    unreachable_limit: int = Field(3, ge=1)
    converging_grace_seconds: float = Field(120.0, ge=0)
    max_workers: int = Field(4, ge=1)


# ---------------------------------------------------------------------
# Collaborator settings
# ---------------------------------------------------------------------
class SSHSettings(BaseModel):
    host: str
    username: str = "ubuntu"
    port: int = 22
    key_path: Optional[str] = None
    password: Optional[str] = None


class KubeSettings(BaseModel):
    context: Optional[str] = None
    kubeconfig: Optional[str] = None
    ssh: Optional[SSHSettings] = None     # run kubectl/helm on a controller host


class MongoSettings(BaseModel):
    container: str = "mongod"
    shell: str = "mongosh"
    username: Optional[str] = None
    password: Optional[str] = None


class AuditSettings(BaseModel):
    directory: Path = Path.home() / ".replboot" / "logs"
    lease_directory: Path = Path.home() / ".replboot" / "leases"


class BootstrapConfig(BaseModel):
    environment: Literal["dev", "staging", "prod"] = "dev"
    cluster: ClusterSpec
    resources: List[ResourceDescriptor] = Field(default_factory=list)
    policies: PhasePolicies = PhasePolicies()
    kube: KubeSettings = KubeSettings()
    mongo: MongoSettings = MongoSettings()
    audit: AuditSettings = AuditSettings()

    def declared_resources(self) -> List[ResourceDescriptor]:
        """
        Resources to ensure, in declaration order.
        Falls back to the default set for the cluster when none are configured.
        """
        if self.resources:
            return list(self.resources)
        from replboot.bootstrap.planner import default_resources

        return default_resources(self.cluster)
