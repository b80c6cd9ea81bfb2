from pydantic import BaseModel, Field

from ..core import DEFAULT_CERTIFICATE_MODE, INVOKER_ROLE
from .service import ServiceRef


class DomainSettings(BaseModel):
    """Settings shared by every domain mapping of a service."""

    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    force_override: bool = False
    certificate_mode: str = Field(
        default=DEFAULT_CERTIFICATE_MODE, description="AUTOMATIC or NONE"
    )


class DomainBinding(BaseModel):
    domain_name: str
    route_name: str
    service: ServiceRef
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    force_override: bool = False
    certificate_mode: str = DEFAULT_CERTIFICATE_MODE


class IamBinding(BaseModel):
    index: int
    member: str
    service: ServiceRef
    role: str = INVOKER_ROLE

    @property
    def categorized_member(self) -> tuple[str, str]:
        # "user:a@b.com" -> ("user", "a@b.com"); "allUsers" -> ("special", "allUsers")
        if ":" in self.member:
            kind, _, ident = self.member.partition(":")
            return kind, ident
        return "special", self.member


class BindingChange(BaseModel):
    action: str = Field(description="create, update or delete")
    index: int
    before: str | None = None
    after: str | None = None
