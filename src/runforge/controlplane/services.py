"""Cloud Run v2 service adapter."""

from __future__ import annotations

import json
from typing import Any

from google.api_core.exceptions import NotFound
from google.cloud import run_v2

from ..clients import get_services_client
from ..logger import logger
from ..schemas.service import ServiceRef
from ..schemas.state import NormalizedDocument
from .errors import translate_errors


def to_body(service: run_v2.Service) -> dict[str, Any]:
    """Service message -> dict using proto field names and enum names."""
    return json.loads(  # type: ignore[no-any-return]
        run_v2.Service.to_json(
            service,
            preserving_proto_field_name=True,
            use_integers_for_enums=False,
        )
    )


def to_message(document: NormalizedDocument) -> run_v2.Service:
    return run_v2.Service.from_json(
        json.dumps(document.body), ignore_unknown_fields=True
    )


class CloudRunServices:
    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def get_service(self, ref: ServiceRef) -> dict[str, Any] | None:
        client = get_services_client()
        with translate_errors(ref.path):
            try:
                service = client.get_service(name=ref.path, timeout=self.timeout)
            except NotFound:
                logger.debug(f"Service {ref.path} does not exist yet")
                return None
        return to_body(service)

    def create_service(self, document: NormalizedDocument) -> dict[str, Any]:
        client = get_services_client()
        ref = document.service
        with translate_errors(ref.path):
            operation = client.create_service(
                parent=ref.parent,
                service=to_message(document),
                service_id=ref.name,
                timeout=self.timeout,
            )
            response = operation.result(timeout=self.timeout)
        logger.info(f"Service created: {response.uri}")
        return to_body(response)

    def update_service(self, document: NormalizedDocument) -> dict[str, Any]:
        client = get_services_client()
        ref = document.service
        service = to_message(document)
        service.name = ref.path
        with translate_errors(ref.path):
            operation = client.update_service(service=service, timeout=self.timeout)
            response = operation.result(timeout=self.timeout)
        logger.info(f"Service updated: {response.uri}")
        return to_body(response)
