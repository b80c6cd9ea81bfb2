"""Protocols for the remote control plane.

The reconcile core only talks to these three seams. The GCP adapters in
this package implement them; tests substitute mocks. Binding calls take an
optional ``timeout`` in seconds so a deploy deadline reaches the wire.
"""

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..schemas.bindings import DomainBinding
    from ..schemas.service import ServiceRef
    from ..schemas.state import NormalizedDocument


class ServicePlane(Protocol):
    """Create/read/update of the primary service, keyed by name+location+project."""

    def get_service(self, ref: "ServiceRef") -> dict[str, Any] | None: ...

    def create_service(self, document: "NormalizedDocument") -> dict[str, Any]: ...

    def update_service(self, document: "NormalizedDocument") -> dict[str, Any]: ...


class DomainPlane(Protocol):
    """Domain mappings, keyed by domain name."""

    def list_domain_mappings(self, ref: "ServiceRef") -> dict[str, "DomainBinding"]: ...

    def create_domain_mapping(
        self, binding: "DomainBinding", timeout: float | None = None
    ) -> dict[str, Any]: ...

    def delete_domain_mapping(
        self, ref: "ServiceRef", domain_name: str, timeout: float | None = None
    ) -> None: ...


class AccessPlane(Protocol):
    """Invoker grants on the service IAM policy."""

    def get_invokers(self, ref: "ServiceRef", role: str) -> list[str]: ...

    def add_invoker(
        self, ref: "ServiceRef", role: str, member: str, timeout: float | None = None
    ) -> None: ...

    def remove_invoker(
        self, ref: "ServiceRef", role: str, member: str, timeout: float | None = None
    ) -> None: ...
