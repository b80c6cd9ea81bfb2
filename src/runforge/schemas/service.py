from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator

from ..core import DEFAULT_INGRESS, DEFAULT_LAUNCH_STAGE
from .traffic import TrafficEntry


class ServiceRef(BaseModel):
    """Resolved identity of a service; held by child bindings as a back-reference."""

    name: str
    location: str
    project: str

    @property
    def parent(self) -> str:
        return f"projects/{self.project}/locations/{self.location}"

    @property
    def path(self) -> str:
        return f"{self.parent}/services/{self.name}"


class PortSpec(BaseModel):
    name: str | None = Field(default=None, description="http1 or h2c")
    container_port: int = Field(default=8080, ge=1, le=65535)


class NameValue(BaseModel):
    name: str
    value: str = ""


class NameSecretRef(BaseModel):
    name: str
    secret: str
    version: str = "latest"


class MountSpec(BaseModel):
    name: str
    mount_path: str


class _ProbeTiming(BaseModel):
    failure_threshold: int | None = None
    initial_delay_seconds: int | None = None
    timeout_seconds: int | None = None
    period_seconds: int | None = None


class HttpGetProbe(_ProbeTiming):
    kind: Literal["http_get"] = "http_get"
    path: str = "/"
    port: int | None = None
    http_headers: list[NameValue] = Field(default_factory=list)


class TcpSocketProbe(_ProbeTiming):
    kind: Literal["tcp_socket"] = "tcp_socket"
    port: int | None = None


class GrpcProbe(_ProbeTiming):
    kind: Literal["grpc"] = "grpc"
    port: int | None = None
    service: str | None = None


ProbeSpec = Annotated[
    HttpGetProbe | TcpSocketProbe | GrpcProbe, Field(discriminator="kind")
]


class ContainerSpec(BaseModel):
    name: str | None = None
    image: str = Field(min_length=1)
    command: list[str] = Field(default_factory=list)
    args: list[str] = Field(default_factory=list)
    working_dir: str | None = None
    ports: list[PortSpec] = Field(default_factory=list)
    resource_limits: dict[str, str] = Field(
        default_factory=dict, description="e.g. {'cpu': '1', 'memory': '512Mi'}"
    )
    resource_requests: dict[str, str] = Field(default_factory=dict)
    cpu_idle: bool | None = None
    startup_cpu_boost: bool | None = None
    startup_probe: ProbeSpec | None = None
    liveness_probe: ProbeSpec | None = None
    env_vars: list[NameValue] = Field(default_factory=list)
    env_secret_vars: list[NameSecretRef] = Field(default_factory=list)
    volume_mounts: list[MountSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _liveness_probe_kind(self) -> "ContainerSpec":
        if isinstance(self.liveness_probe, TcpSocketProbe):
            raise ValueError("tcp_socket probes are only valid as startup probes")
        return self


class SecretItem(BaseModel):
    path: str
    version: str = "latest"
    mode: int | None = None


class SecretVolume(BaseModel):
    kind: Literal["secret"] = "secret"
    name: str
    secret: str
    items: list[SecretItem] = Field(default_factory=list)
    default_mode: int | None = None


class CloudSqlVolume(BaseModel):
    kind: Literal["cloud_sql_instance"] = "cloud_sql_instance"
    name: str
    instances: list[str] = Field(default_factory=list)


class EmptyDirVolume(BaseModel):
    kind: Literal["empty_dir"] = "empty_dir"
    name: str
    medium: str = Field(default="MEMORY", description="MEMORY")
    size_limit: str | None = None


class GcsVolume(BaseModel):
    kind: Literal["gcs"] = "gcs"
    name: str
    bucket: str
    read_only: bool = False


class NfsVolume(BaseModel):
    kind: Literal["nfs"] = "nfs"
    name: str
    server: str
    path: str
    read_only: bool = False


VolumeSpec = Annotated[
    SecretVolume | CloudSqlVolume | EmptyDirVolume | GcsVolume | NfsVolume,
    Field(discriminator="kind"),
]


class VpcAccess(BaseModel):
    connector: str | None = None
    egress: str | None = Field(
        default=None, description="ALL_TRAFFIC or PRIVATE_RANGES_ONLY"
    )


def _default_traffic() -> list[TrafficEntry]:
    return [TrafficEntry(percent=100, latest_revision=True)]


class ServiceSpec(BaseModel):
    name: str = Field(min_length=1)
    location: str
    project: str
    description: str | None = None
    concurrency: int | None = Field(
        default=None, description="Max concurrent requests per instance"
    )
    timeout_seconds: int | None = None
    service_account: str | None = None
    containers: list[ContainerSpec] = Field(default_factory=list)
    volumes: list[VolumeSpec] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    template_labels: dict[str, str] = Field(default_factory=dict)
    template_annotations: dict[str, str] = Field(default_factory=dict)
    ingress: str = DEFAULT_INGRESS
    launch_stage: str = DEFAULT_LAUNCH_STAGE
    min_instances: int | None = Field(default=None, ge=0)
    max_instances: int | None = Field(default=None, ge=0)
    execution_environment: str | None = Field(
        default=None, description="EXECUTION_ENVIRONMENT_GEN1 or _GEN2"
    )
    encryption_key: str | None = None
    session_affinity: bool | None = None
    vpc_access: VpcAccess | None = None
    generate_revision_name: bool = True
    traffic: list[TrafficEntry] = Field(default_factory=_default_traffic)

    @property
    def ref(self) -> ServiceRef:
        return ServiceRef(name=self.name, location=self.location, project=self.project)
