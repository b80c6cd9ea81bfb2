from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .service import ServiceRef


class ResourceState(str, Enum):
    ABSENT = "ABSENT"
    CREATING = "CREATING"
    UPDATING = "UPDATING"
    READY = "READY"
    FAILED = "FAILED"


class NormalizedDocument(BaseModel):
    """A service body in Cloud Run v2 field names, keyed by its identity."""

    service: ServiceRef
    body: dict[str, Any] = Field(default_factory=dict)


class RemoteState(BaseModel):
    body: dict[str, Any] = Field(default_factory=dict)
    state: ResourceState = ResourceState.READY


class FieldChange(BaseModel):
    path: str
    desired: Any = None
    remote: Any = None


class ApplyResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    action: str = Field(description="create, update or noop")
    state: ResourceState
    transitions: list[ResourceState] = Field(default_factory=list)
    changes: list[FieldChange] = Field(default_factory=list)
    remote_state: RemoteState | None = None
    error: Exception | None = None

    @field_serializer("error")
    def _serialize_error(self, error: Exception | None) -> str | None:
        return str(error) if error is not None else None

    @property
    def ok(self) -> bool:
        return self.state == ResourceState.READY


class ResourceOutcome(BaseModel):
    """Result of one dependent binding operation."""

    kind: str = Field(description="domain or iam")
    key: str
    action: str
    status: str = Field(description="applied, failed, cancelled or unknown")
    detail: str | None = None


class DeployReport(BaseModel):
    service: ApplyResult | None = None
    domains: list[ResourceOutcome] = Field(default_factory=list)
    bindings: list[ResourceOutcome] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        if self.service is None or not self.service.ok:
            return False
        return all(
            o.status == "applied" for o in [*self.domains, *self.bindings]
        )
