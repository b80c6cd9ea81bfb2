"""Reconciliation of the primary service.

Compares a desired NormalizedDocument with the last-known remote state and
issues at most one create or update. The diff only looks at fields the
desired document declares, so server-populated fields (uri, conditions,
generation, ...) never cause an update. Free-form maps are compared whole,
minus the ignore-set of control-plane annotations.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..controlplane.protocol import ServicePlane
from ..core import FREEFORM_MAPS, IGNORED_ANNOTATIONS
from ..exceptions import RemoteRejected
from ..logger import logger
from ..schemas.state import (
    ApplyResult,
    FieldChange,
    NormalizedDocument,
    RemoteState,
    ResourceState,
)

def _is_empty(value: Any) -> bool:
    # proto3 omits default scalars, so a missing remote field equals its zero value
    if isinstance(value, (dict, list)):
        return not value
    return value is None or value == "" or value is False or (type(value) is int and value == 0)


class ReconcileEngine:
    """Drives a service through ABSENT/CREATING/UPDATING/READY/FAILED."""

    def __init__(
        self,
        plane: ServicePlane,
        ignored_annotations: Iterable[str] = IGNORED_ANNOTATIONS,
    ) -> None:
        self.plane = plane
        self.ignored = frozenset(ignored_annotations)

    def _filtered(self, value: Any) -> dict[str, Any]:
        if not isinstance(value, dict):
            return {}
        return {k: v for k, v in value.items() if k not in self.ignored}

    def _walk(
        self, desired: Any, remote: Any, path: str, changes: list[FieldChange]
    ) -> None:
        key = path.rsplit(".", 1)[-1]

        if isinstance(desired, dict) and key in FREEFORM_MAPS:
            want, have = self._filtered(desired), self._filtered(remote)
            if want != have:
                changes.append(FieldChange(path=path, desired=want, remote=have))
            return

        if remote is None and _is_empty(desired):
            return

        if isinstance(desired, dict):
            if not isinstance(remote, dict):
                changes.append(FieldChange(path=path, desired=desired, remote=remote))
                return
            for k, v in desired.items():
                self._walk(v, remote.get(k), f"{path}.{k}" if path else k, changes)
            return

        if isinstance(desired, list):
            if not isinstance(remote, list) or len(remote) != len(desired):
                changes.append(FieldChange(path=path, desired=desired, remote=remote))
                return
            for i, (want, have) in enumerate(zip(desired, remote)):
                self._walk(want, have, f"{path}[{i}]", changes)
            return

        if desired != remote:
            changes.append(FieldChange(path=path, desired=desired, remote=remote))

    def diff(
        self, desired: NormalizedDocument, remote: RemoteState
    ) -> list[FieldChange]:
        """Returns the field-level changes needed to bring remote to desired."""
        changes: list[FieldChange] = []
        self._walk(desired.body, remote.body, "", changes)
        return changes

    def plan(
        self, desired: NormalizedDocument, remote: RemoteState | None
    ) -> ApplyResult:
        """Decides create/update/noop without touching the control plane."""
        if remote is None:
            return ApplyResult(
                action="create",
                state=ResourceState.ABSENT,
                transitions=[ResourceState.ABSENT],
            )
        changes = self.diff(desired, remote)
        return ApplyResult(
            action="update" if changes else "noop",
            state=remote.state,
            transitions=[remote.state],
            changes=changes,
            remote_state=remote,
        )

    def apply(
        self, desired: NormalizedDocument, remote: RemoteState | None
    ) -> ApplyResult:
        """
        Applies desired state against the last-known remote state.

        Remote rejections are not retried; they leave the result FAILED and
        are carried on ``ApplyResult.error``.
        """
        result = self.plan(desired, remote)
        name = desired.service.path

        if result.action == "noop":
            logger.info(f"Service {name} is up to date")
            return result

        if result.action == "create":
            pending, call = ResourceState.CREATING, self.plane.create_service
        else:
            pending, call = ResourceState.UPDATING, self.plane.update_service
            logger.info(
                f"Service {name} differs in {len(result.changes)} field(s): "
                + ", ".join(c.path for c in result.changes)
            )
        result.transitions.append(pending)

        try:
            body = call(desired)
        except RemoteRejected as e:
            logger.error(f"Failed to {result.action} service {name}: {e.reason}")
            result.state = ResourceState.FAILED
            result.transitions.append(ResourceState.FAILED)
            result.error = e
            return result

        result.state = ResourceState.READY
        result.transitions.append(ResourceState.READY)
        result.remote_state = RemoteState(body=body, state=ResourceState.READY)
        return result
