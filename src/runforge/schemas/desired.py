from pathlib import Path

import pydantic
from pydantic import BaseModel, Field

from ..exceptions import ValidationError
from .bindings import DomainSettings
from .service import ServiceSpec


class DesiredState(BaseModel):
    """Everything one deploy reconciles: service, domains and invokers."""

    service: ServiceSpec
    domains: set[str] = Field(default_factory=set)
    domain_settings: DomainSettings = Field(default_factory=DomainSettings)
    members: list[str] = Field(
        default_factory=list, description="Principals granted roles/run.invoker"
    )

    @classmethod
    def from_json(cls, raw: str | bytes) -> "DesiredState":
        try:
            return cls.model_validate_json(raw)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid desired state: {e}") from e

    @classmethod
    def from_file(cls, path: str | Path) -> "DesiredState":
        return cls.from_json(Path(path).read_bytes())
