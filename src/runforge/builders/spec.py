"""Translates a desired ServiceSpec into a normalized Cloud Run v2 document.

The document uses the v2 ``Service`` proto field names so it can be sent
with ``run_v2.Service.from_json`` and compared against what the control
plane returns. Sequences keep the caller's order because the remote side
diffs containers, ports, env and mounts by index.
"""

from __future__ import annotations

from typing import Any

from ..exceptions import ConfigError, ValidationError
from ..schemas.service import (
    CloudSqlVolume,
    ContainerSpec,
    EmptyDirVolume,
    GcsVolume,
    GrpcProbe,
    HttpGetProbe,
    NfsVolume,
    SecretVolume,
    ServiceSpec,
    TcpSocketProbe,
)
from ..schemas.state import NormalizedDocument
from ..schemas.traffic import RoutingTable
from . import traffic

REQUEST_KEYS = frozenset({"cpu", "memory"})


def _compact(d: dict[str, Any]) -> dict[str, Any]:
    """Drops keys whose value is None."""
    return {k: v for k, v in d.items() if v is not None}


def _probe(probe: Any) -> dict[str, Any] | None:
    if probe is None:
        return None
    doc = _compact(
        {
            "initial_delay_seconds": probe.initial_delay_seconds,
            "timeout_seconds": probe.timeout_seconds,
            "period_seconds": probe.period_seconds,
            "failure_threshold": probe.failure_threshold,
        }
    )
    if isinstance(probe, HttpGetProbe):
        doc["http_get"] = _compact(
            {
                "path": probe.path,
                "port": probe.port,
                "http_headers": [h.model_dump() for h in probe.http_headers] or None,
            }
        )
    elif isinstance(probe, TcpSocketProbe):
        doc["tcp_socket"] = _compact({"port": probe.port})
    elif isinstance(probe, GrpcProbe):
        doc["grpc"] = _compact({"port": probe.port, "service": probe.service})
    return doc


def _env(container: ContainerSpec) -> list[dict[str, Any]]:
    env: list[dict[str, Any]] = [
        {"name": e.name, "value": e.value} for e in container.env_vars
    ]
    for s in container.env_secret_vars:
        env.append(
            {
                "name": s.name,
                "value_source": {
                    "secret_key_ref": {"secret": s.secret, "version": s.version}
                },
            }
        )
    return env


def _container(container: ContainerSpec) -> dict[str, Any]:
    unknown = set(container.resource_requests) - REQUEST_KEYS
    if unknown:
        raise ValidationError(
            f"Unsupported resource requests for {container.image}: {sorted(unknown)}"
        )

    # The v2 API has no request field; requests are validated only.
    resources = _compact(
        {
            "limits": dict(container.resource_limits) or None,
            "cpu_idle": container.cpu_idle,
            "startup_cpu_boost": container.startup_cpu_boost,
        }
    )

    return _compact(
        {
            "name": container.name,
            "image": container.image,
            "command": list(container.command) or None,
            "args": list(container.args) or None,
            "working_dir": container.working_dir,
            "ports": [
                _compact({"name": p.name, "container_port": p.container_port})
                for p in container.ports
            ]
            or None,
            "resources": resources or None,
            "env": _env(container) or None,
            "volume_mounts": [
                {"name": m.name, "mount_path": m.mount_path}
                for m in container.volume_mounts
            ]
            or None,
            "startup_probe": _probe(container.startup_probe),
            "liveness_probe": _probe(container.liveness_probe),
        }
    )


def _volume(volume: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {"name": volume.name}
    if isinstance(volume, SecretVolume):
        doc["secret"] = _compact(
            {
                "secret": volume.secret,
                "items": [_compact(i.model_dump()) for i in volume.items] or None,
                "default_mode": volume.default_mode,
            }
        )
    elif isinstance(volume, CloudSqlVolume):
        doc["cloud_sql_instance"] = {"instances": list(volume.instances)}
    elif isinstance(volume, EmptyDirVolume):
        doc["empty_dir"] = _compact(
            {"medium": volume.medium, "size_limit": volume.size_limit}
        )
    elif isinstance(volume, GcsVolume):
        doc["gcs"] = {"bucket": volume.bucket, "read_only": volume.read_only}
    elif isinstance(volume, NfsVolume):
        doc["nfs"] = {
            "server": volume.server,
            "path": volume.path,
            "read_only": volume.read_only,
        }
    return doc


def _revision_name(desired: ServiceSpec, table: RoutingTable) -> str | None:
    if desired.generate_revision_name:
        return None
    first = table.entries[0]
    if first.revision_name is None:
        raise ConfigError(
            f"Service {desired.name}: revision name generation is disabled "
            "but the first traffic entry names no revision"
        )
    return f"{desired.name}-{first.revision_name}"


def build(desired: ServiceSpec) -> NormalizedDocument:
    """
    Builds the normalized v2 service document for a desired ServiceSpec.
    Pure: no remote calls are made.
    """
    if not desired.containers:
        raise ValidationError(f"Service {desired.name} has no containers")

    if not desired.generate_revision_name and not desired.traffic:
        raise ConfigError(
            f"Service {desired.name}: revision name generation is disabled "
            "and the traffic split is empty"
        )

    table = traffic.plan(desired.traffic)

    scaling = _compact(
        {
            "min_instance_count": desired.min_instances,
            "max_instance_count": desired.max_instances,
        }
    )
    vpc_access = (
        _compact(desired.vpc_access.model_dump()) if desired.vpc_access else None
    )

    template = _compact(
        {
            "revision": _revision_name(desired, table),
            "labels": dict(desired.template_labels),
            "annotations": dict(desired.template_annotations),
            "scaling": scaling or None,
            "vpc_access": vpc_access or None,
            "timeout": (
                f"{desired.timeout_seconds}s"
                if desired.timeout_seconds is not None
                else None
            ),
            "service_account": desired.service_account,
            "execution_environment": desired.execution_environment,
            "encryption_key": desired.encryption_key,
            "max_instance_request_concurrency": desired.concurrency,
            "session_affinity": desired.session_affinity,
            "containers": [_container(c) for c in desired.containers],
            "volumes": [_volume(v) for v in desired.volumes] or None,
        }
    )

    body = _compact(
        {
            "description": desired.description,
            "labels": dict(desired.labels),
            "annotations": dict(desired.annotations),
            "ingress": desired.ingress,
            "launch_stage": desired.launch_stage,
            "template": template,
            "traffic": traffic.to_targets(table),
        }
    )

    return NormalizedDocument(service=desired.ref, body=body)
