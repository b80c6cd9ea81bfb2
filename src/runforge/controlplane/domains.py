"""Cloud Run domain mappings (v1 API, regional endpoint)."""

from __future__ import annotations

from typing import Any

from ..clients import get_domains_client, get_timed_http
from ..core import DEFAULT_CERTIFICATE_MODE
from ..logger import logger
from ..schemas.bindings import DomainBinding
from ..schemas.service import ServiceRef
from .errors import translate_errors

API_VERSION = "domains.cloudrun.com/v1"


def _execute(request: Any, timeout: float | None) -> Any:
    if timeout is None:
        return request.execute()
    return request.execute(http=get_timed_http(timeout))


def to_body(binding: DomainBinding) -> dict[str, Any]:
    return {
        "apiVersion": API_VERSION,
        "kind": "DomainMapping",
        "metadata": {
            "name": binding.domain_name,
            "namespace": binding.service.project,
            "labels": binding.labels,
            "annotations": binding.annotations,
        },
        "spec": {
            "routeName": binding.route_name,
            "forceOverride": binding.force_override,
            "certificateMode": binding.certificate_mode,
        },
    }


def from_body(item: dict[str, Any], ref: ServiceRef) -> DomainBinding:
    metadata = item.get("metadata", {})
    spec = item.get("spec", {})
    return DomainBinding(
        domain_name=metadata["name"],
        route_name=spec.get("routeName", ""),
        service=ref,
        labels=metadata.get("labels") or {},
        annotations=metadata.get("annotations") or {},
        force_override=spec.get("forceOverride", False),
        certificate_mode=spec.get("certificateMode", DEFAULT_CERTIFICATE_MODE),
    )


class CloudRunDomains:
    def list_domain_mappings(self, ref: ServiceRef) -> dict[str, DomainBinding]:
        """Returns the mappings routed to this service, keyed by domain."""
        client = get_domains_client(ref.location)
        with translate_errors(f"namespaces/{ref.project}/domainmappings"):
            response = (
                client.namespaces()
                .domainmappings()
                .list(parent=f"namespaces/{ref.project}")
                .execute()
            )

        mappings = {}
        for item in response.get("items", []):
            if item.get("spec", {}).get("routeName") != ref.name:
                continue
            binding = from_body(item, ref)
            mappings[binding.domain_name] = binding
        return mappings

    def create_domain_mapping(
        self, binding: DomainBinding, timeout: float | None = None
    ) -> dict[str, Any]:
        ref = binding.service
        client = get_domains_client(ref.location)
        with translate_errors(binding.domain_name):
            request = client.namespaces().domainmappings().create(
                parent=f"namespaces/{ref.project}", body=to_body(binding)
            )
            response = _execute(request, timeout)
        logger.info(f"Domain mapping created: {binding.domain_name} -> {ref.name}")
        return response  # type: ignore[no-any-return]

    def delete_domain_mapping(
        self, ref: ServiceRef, domain_name: str, timeout: float | None = None
    ) -> None:
        client = get_domains_client(ref.location)
        with translate_errors(domain_name):
            request = client.namespaces().domainmappings().delete(
                name=f"namespaces/{ref.project}/domainmappings/{domain_name}"
            )
            _execute(request, timeout)
        logger.info(f"Domain mapping deleted: {domain_name}")
