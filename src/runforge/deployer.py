"""Runs one reconcile pass: service first, then its dependent bindings.

Domain mappings and invoker bindings only need the service's resolved
identity, so once the service is READY they are applied in parallel, each
reported on its own. A FAILED service blocks all of them. Nothing is rolled
back: work finished before a deadline or a sibling failure stays applied.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass

from pydantic import BaseModel, Field

from .builders import spec as spec_builder
from .controlplane.protocol import AccessPlane, DomainPlane, ServicePlane
from .core import DEFAULT_CONCURRENCY
from .exceptions import RemoteRejected
from .logger import logger
from .reconcile.access import AccessPolicyBinder
from .reconcile.domains import DomainBinder, DomainPlan
from .reconcile.engine import ReconcileEngine
from .schemas.bindings import BindingChange, DomainBinding, IamBinding
from .schemas.desired import DesiredState
from .schemas.service import ServiceRef
from .schemas.state import (
    ApplyResult,
    DeployReport,
    NormalizedDocument,
    RemoteState,
    ResourceOutcome,
    ResourceState,
)


class DeployPlan(BaseModel):
    document: NormalizedDocument
    service: ApplyResult
    domains: DomainPlan = Field(default_factory=DomainPlan)
    bindings: list[BindingChange] = Field(default_factory=list)


@dataclass(frozen=True)
class _Task:
    kind: str
    key: str
    action: str
    run: Callable[[float | None], object]


class Deployer:
    def __init__(
        self,
        services: ServicePlane,
        domains: DomainPlane,
        access: AccessPlane,
        concurrency: int = DEFAULT_CONCURRENCY,
        deadline: float | None = None,
        keyed_by: str = "index",
    ) -> None:
        self.services = services
        self.domains = domains
        self.access = access
        self.engine = ReconcileEngine(services)
        self.concurrency = max(1, concurrency)
        self.deadline = deadline
        self.keyed_by = keyed_by

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _read_service(self, ref: ServiceRef) -> RemoteState | None:
        body = self.services.get_service(ref)
        return RemoteState(body=body) if body is not None else None

    def _desired_bindings(self, desired: DesiredState, ref: ServiceRef) -> list[IamBinding]:
        binder = AccessPolicyBinder(ref, keyed_by=self.keyed_by)
        bindings = binder.reconcile_bindings(desired.members)
        binder.validate(bindings)
        return bindings

    def _binding_changes(
        self,
        wanted: list[IamBinding],
        ref: ServiceRef,
        previous_members: Sequence[str] | None,
    ) -> list[BindingChange]:
        binder = AccessPolicyBinder(ref, keyed_by=self.keyed_by)
        if previous_members is None:
            current = self.access.get_invokers(ref, binder.role)
            previous_members = binder.align(current, [b.member for b in wanted])
        return binder.diff_bindings(binder.reconcile_bindings(previous_members), wanted)

    def plan(
        self, desired: DesiredState, previous_members: Sequence[str] | None = None
    ) -> DeployPlan:
        """Computes every change a deploy would make without applying any."""
        document = spec_builder.build(desired.service)
        ref = document.service
        wanted = self._desired_bindings(desired, ref)
        remote = self._read_service(ref)
        result = DeployPlan(document=document, service=self.engine.plan(document, remote))

        if remote is None:
            # Nothing can be bound to a service that does not exist yet
            existing: dict[str, DomainBinding] = {}
            previous_members = previous_members or []
        else:
            existing = self.domains.list_domain_mappings(ref)

        binder = DomainBinder(ref, desired.domain_settings)
        result.domains = binder.reconcile_domains(desired.domains, existing)
        result.bindings = self._binding_changes(wanted, ref, previous_members)
        return result

    # ------------------------------------------------------------------
    # Applying
    # ------------------------------------------------------------------

    def deploy(
        self, desired: DesiredState, previous_members: Sequence[str] | None = None
    ) -> DeployReport:
        """
        Applies the desired state.

        ValidationError and ConfigError are raised before any remote call.
        Remote rejections are reported per resource in the returned report.
        """
        started = time.monotonic()
        document = spec_builder.build(desired.service)
        ref = document.service
        wanted = self._desired_bindings(desired, ref)
        report = DeployReport()

        try:
            remote = self._read_service(ref)
        except RemoteRejected as e:
            logger.error(f"Could not read service {ref.path}: {e.reason}")
            report.service = ApplyResult(
                action="read",
                state=ResourceState.FAILED,
                transitions=[ResourceState.FAILED],
                error=e,
            )
            return report

        report.service = self.engine.apply(document, remote)
        if not report.service.ok:
            logger.warning(
                f"Service {ref.name} is {report.service.state.value}; "
                "skipping domain and invoker bindings"
            )
            return report

        tasks: list[_Task] = []
        tasks.extend(self._domain_tasks(desired, ref, report))
        tasks.extend(self._binding_tasks(wanted, ref, previous_members, report))
        self._run(tasks, report, started)
        return report

    def _domain_tasks(
        self, desired: DesiredState, ref: ServiceRef, report: DeployReport
    ) -> list[_Task]:
        try:
            existing = self.domains.list_domain_mappings(ref)
        except RemoteRejected as e:
            report.domains.append(
                ResourceOutcome(
                    kind="domain", key="*", action="list", status="failed", detail=e.reason
                )
            )
            return []

        plan = DomainBinder(ref, desired.domain_settings).reconcile_domains(
            desired.domains, existing
        )
        tasks = [
            _Task(
                kind="domain",
                key=name,
                action="create",
                run=lambda timeout, b=binding: self.domains.create_domain_mapping(
                    b, timeout=timeout
                ),
            )
            for name, binding in plan.to_create.items()
        ]
        tasks.extend(
            _Task(
                kind="domain",
                key=name,
                action="delete",
                run=lambda timeout, n=name: self.domains.delete_domain_mapping(
                    ref, n, timeout=timeout
                ),
            )
            for name in sorted(plan.to_delete)
        )
        return tasks

    def _binding_tasks(
        self,
        wanted: list[IamBinding],
        ref: ServiceRef,
        previous_members: Sequence[str] | None,
        report: DeployReport,
    ) -> list[_Task]:
        try:
            changes = self._binding_changes(wanted, ref, previous_members)
        except RemoteRejected as e:
            report.bindings.append(
                ResourceOutcome(
                    kind="iam", key="*", action="read", status="failed", detail=e.reason
                )
            )
            return []

        role = AccessPolicyBinder(ref).role
        # A member that moved to another index must keep its grant
        keep = {b.member for b in wanted}

        def apply_change(change: BindingChange, timeout: float | None) -> None:
            if change.after is not None:
                self.access.add_invoker(ref, role, change.after, timeout=timeout)
            if change.before is not None and change.before not in keep:
                self.access.remove_invoker(ref, role, change.before, timeout=timeout)

        return [
            _Task(
                kind="iam",
                key=str(change.index),
                action=change.action,
                run=lambda timeout, c=change: apply_change(c, timeout),
            )
            for change in changes
        ]

    def _remaining(self, started: float) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - (time.monotonic() - started))

    def _run(self, tasks: list[_Task], report: DeployReport, started: float) -> None:
        if not tasks:
            return

        def record(task: _Task, status: str, detail: str | None = None) -> None:
            outcome = ResourceOutcome(
                kind=task.kind, key=task.key, action=task.action, status=status, detail=detail
            )
            target = report.domains if task.kind == "domain" else report.bindings
            target.append(outcome)

        def settle(future: Future[object], task: _Task) -> None:
            try:
                future.result()
            except RemoteRejected as e:
                logger.warning(f"Failed to {task.action} {task.kind} {task.key}: {e.reason}")
                record(task, "failed", e.reason)
            else:
                record(task, "applied")

        def start(task: _Task) -> object:
            # Remote calls carry whatever is left of the deadline as their timeout
            timeout = self._remaining(started)
            if timeout == 0.0:
                raise RemoteRejected("deadline exceeded before start", task.key)
            return task.run(timeout)

        executor = ThreadPoolExecutor(max_workers=self.concurrency)
        futures: dict[Future[object], _Task] = {
            executor.submit(start, task): task for task in tasks
        }
        try:
            for future in as_completed(futures, timeout=self._remaining(started)):
                settle(future, futures.pop(future))
        except FuturesTimeout:
            logger.error(f"Deadline exceeded with {len(futures)} binding(s) outstanding")
            for future, task in futures.items():
                if future.cancel():
                    record(task, "cancelled", "deadline exceeded before start")
                elif future.done():
                    settle(future, task)
                else:
                    # Already sent; it may still land before its own timeout
                    record(task, "unknown", "deadline exceeded while in flight")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
