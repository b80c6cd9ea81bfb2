"""Domain mapping reconciliation.

Domains are independent child resources keyed by domain name. A domain
present on both sides is left alone: changing the route of an existing
mapping requires removing it from the set and adding it back.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from pydantic import BaseModel, Field

from ..schemas.bindings import DomainBinding, DomainSettings
from ..schemas.service import ServiceRef


class DomainPlan(BaseModel):
    to_create: dict[str, DomainBinding] = Field(default_factory=dict)
    to_delete: set[str] = Field(default_factory=set)

    @property
    def empty(self) -> bool:
        return not self.to_create and not self.to_delete


class DomainBinder:
    def __init__(self, service: ServiceRef, settings: DomainSettings | None = None) -> None:
        # Identity is captured once; bindings never re-resolve it
        self.service = service
        self.settings = settings or DomainSettings()

    def binding_for(self, domain_name: str) -> DomainBinding:
        return DomainBinding(
            domain_name=domain_name,
            route_name=self.service.name,
            service=self.service,
            labels=dict(self.settings.labels),
            annotations=dict(self.settings.annotations),
            force_override=self.settings.force_override,
            certificate_mode=self.settings.certificate_mode,
        )

    def reconcile_domains(
        self,
        desired: Iterable[str],
        existing: Mapping[str, DomainBinding],
    ) -> DomainPlan:
        """
        Set difference of desired domains against existing mappings.
        Returns the bindings to create and the domain names to delete.
        """
        wanted = set(desired)
        have = set(existing)
        return DomainPlan(
            to_create={d: self.binding_for(d) for d in sorted(wanted - have)},
            to_delete=have - wanted,
        )
