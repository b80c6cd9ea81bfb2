"""Invoker bindings, one per member.

By default a binding's identity is its position in the member list, so
removing an early member shows up as updates to every later index plus a
delete of the last one. ``keyed_by="member"`` switches to value identity,
where only the removed member is deleted.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..core import INVOKER_ROLE, MEMBER_KINDS, SPECIAL_MEMBERS
from ..exceptions import ValidationError
from ..schemas.bindings import BindingChange, IamBinding
from ..schemas.service import ServiceRef

KEYED_BY = ("index", "member")


class AccessPolicyBinder:
    def __init__(
        self, service: ServiceRef, role: str = INVOKER_ROLE, keyed_by: str = "index"
    ) -> None:
        if keyed_by not in KEYED_BY:
            raise ValueError(f"keyed_by must be one of {KEYED_BY}, got {keyed_by!r}")
        self.service = service
        self.role = role
        self.keyed_by = keyed_by

    def reconcile_bindings(self, members: Sequence[str]) -> list[IamBinding]:
        return [
            IamBinding(index=i, member=m, service=self.service, role=self.role)
            for i, m in enumerate(members)
        ]

    @staticmethod
    def validate(bindings: Sequence[IamBinding]) -> None:
        """Raises ValidationError for a member the IAM API would refuse."""
        for binding in bindings:
            kind, ident = binding.categorized_member
            if kind == "special":
                valid = binding.member in SPECIAL_MEMBERS
            else:
                valid = kind in MEMBER_KINDS and bool(ident)
            if not valid:
                raise ValidationError(
                    f"Invoker {binding.index} has an unsupported member: {binding.member!r}"
                )

    @staticmethod
    def align(current: Sequence[str], desired: Sequence[str]) -> list[str]:
        """
        Orders members read from a policy after the desired list.

        A policy keeps members in its own order, so the positions it reports
        say nothing about the positions a caller asked for. Members already
        granted are listed in desired order, followed by the ones that are
        no longer wanted.
        """
        held = set(current)
        wanted = set(desired)
        return [m for m in desired if m in held] + [m for m in current if m not in wanted]

    def diff_bindings(
        self, previous: Sequence[IamBinding], desired: Sequence[IamBinding]
    ) -> list[BindingChange]:
        if self.keyed_by == "member":
            return self._diff_by_member(previous, desired)
        return self._diff_by_index(previous, desired)

    @staticmethod
    def _diff_by_index(
        previous: Sequence[IamBinding], desired: Sequence[IamBinding]
    ) -> list[BindingChange]:
        changes = []
        for i in range(max(len(previous), len(desired))):
            before = previous[i].member if i < len(previous) else None
            after = desired[i].member if i < len(desired) else None
            if before == after:
                continue
            if before is None:
                action = "create"
            elif after is None:
                action = "delete"
            else:
                action = "update"
            changes.append(BindingChange(action=action, index=i, before=before, after=after))
        return changes

    @staticmethod
    def _diff_by_member(
        previous: Sequence[IamBinding], desired: Sequence[IamBinding]
    ) -> list[BindingChange]:
        had = {b.member: b.index for b in previous}
        want = {b.member: b.index for b in desired}
        changes = [
            BindingChange(action="create", index=want[m], after=m)
            for m in want
            if m not in had
        ]
        changes.extend(
            BindingChange(action="delete", index=had[m], before=m)
            for m in had
            if m not in want
        )
        return changes
