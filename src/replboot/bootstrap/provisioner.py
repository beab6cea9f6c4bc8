# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/bootstrap/provisioner.py

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from replboot.config.models import ResourceDescriptor

from .models import FailureKind, ProvisionedResource, ResourceState
from .planner import plan_waves

log = logging.getLogger("replboot")


class AlreadyExistsError(RuntimeError):
    """Backend lost a create race: someone else made the resource first."""


class UnsupportedResourceError(ValueError):
    pass


class ResourceBackend(Protocol):
    """
    Control-plane adapter. `describe` returns the live resource's spec in
    the same shape as ResourceDescriptor.spec, or None when it is absent.
    """

    def describe(self, descriptor: ResourceDescriptor) -> Optional[Dict[str, Any]]: ...
    def create(self, descriptor: ResourceDescriptor) -> None: ...
    def delete(self, descriptor: ResourceDescriptor) -> bool: ...


def spec_mismatches(desired: Mapping[str, Any], live: Mapping[str, Any], prefix: str = "") -> List[str]:
    """
    Paths where `live` does not satisfy `desired`. Desired must be a subset
    of live; nested mappings are compared recursively.
    """
    out: List[str] = []
    for key, want in desired.items():
        path = f"{prefix}{key}"
        if key not in live:
            out.append(f"{path}: missing (want {want!r})")
            continue
        have = live[key]
        if isinstance(want, Mapping) and isinstance(have, Mapping):
            out.extend(spec_mismatches(want, have, prefix=f"{path}."))
        elif want != have:
            out.append(f"{path}: {have!r} != {want!r}")
    return out


class ResourceProvisioner:
    """
    Ensure-semantics over a ResourceBackend.

    - absent                     -> create, Exists (created=True)
    - present, compatible        -> Exists, no side effects
    - present, incompatible      -> Failed(CONFLICT), live resource untouched
    - control plane error        -> Failed(TRANSIENT)
    - backend cannot handle kind -> Failed(INVALID)

    Ordering is the caller's concern.
    """

    def __init__(self, backend: ResourceBackend, *, max_workers: int = 4):
        self.backend = backend
        self.max_workers = max_workers
        self._ledger: Dict[Tuple[str, str, str], ProvisionedResource] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    def ensure(self, descriptor: ResourceDescriptor) -> ProvisionedResource:
        result = self._ensure(descriptor)
        with self._lock:
            self._ledger[descriptor.key] = result
        log.debug("[provisioner] %s -> %s %s", descriptor.ref, result.state.value, result.message or "")
        return result

    def ensure_wave(self, descriptors: Sequence[ResourceDescriptor]) -> List[ProvisionedResource]:
        """Ensure independent descriptors concurrently; results keep input order."""
        if len(descriptors) <= 1 or self.max_workers <= 1:
            return [self.ensure(d) for d in descriptors]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(descriptors))) as pool:
            return list(pool.map(self.ensure, descriptors))

    def provisioned(self) -> List[ProvisionedResource]:
        with self._lock:
            return list(self._ledger.values())

    # ------------------------------------------------------------------
    def _ensure(self, d: ResourceDescriptor) -> ProvisionedResource:
        try:
            live = self.backend.describe(d)
        except UnsupportedResourceError as e:
            return self._failed(d, FailureKind.INVALID, str(e))
        except Exception as e:
            return self._failed(d, FailureKind.TRANSIENT, f"describe failed: {e}")

        if live is not None:
            return self._compare(d, live)

        try:
            self.backend.create(d)
        except AlreadyExistsError:
            # Lost a race; judge whatever won.
            try:
                live = self.backend.describe(d)
            except Exception as e:
                return self._failed(d, FailureKind.TRANSIENT, f"describe after create race failed: {e}")
            if live is None:
                return self._failed(d, FailureKind.TRANSIENT, "reported as existing but not found")
            return self._compare(d, live)
        except UnsupportedResourceError as e:
            return self._failed(d, FailureKind.INVALID, str(e))
        except Exception as e:
            return self._failed(d, FailureKind.TRANSIENT, f"create failed: {e}")

        return ProvisionedResource(d.kind, d.name, d.scope, ResourceState.EXISTS, created=True)

    def _compare(self, d: ResourceDescriptor, live: Mapping[str, Any]) -> ProvisionedResource:
        diffs = spec_mismatches(d.spec, live)
        if diffs:
            return self._failed(d, FailureKind.CONFLICT, "incompatible existing resource: " + "; ".join(diffs))
        return ProvisionedResource(d.kind, d.name, d.scope, ResourceState.EXISTS)

    @staticmethod
    def _failed(d: ResourceDescriptor, kind: FailureKind, message: str) -> ProvisionedResource:
        return ProvisionedResource(d.kind, d.name, d.scope, ResourceState.FAILED, failure=kind, message=message)


class ResourceTeardown:
    """
    Deletes resources in reverse dependency order. Already-deleted
    resources are not an error. The bootstrap never calls this.
    """

    def __init__(self, backend: ResourceBackend):
        self.backend = backend

    def teardown(self, descriptors: Sequence[ResourceDescriptor]) -> Tuple[List[str], List[str]]:
        deleted: List[str] = []
        absent: List[str] = []
        for wave in reversed(plan_waves(descriptors)):
            for d in reversed(wave):
                if self.backend.delete(d):
                    log.info("[teardown] deleted %s", d.ref)
                    deleted.append(d.ref)
                else:
                    log.info("[teardown] %s already absent", d.ref)
                    absent.append(d.ref)
        return deleted, absent
