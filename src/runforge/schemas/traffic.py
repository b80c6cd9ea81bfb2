from pydantic import BaseModel, Field


class TrafficEntry(BaseModel):
    percent: int = Field(default=100, ge=0, le=100)
    latest_revision: bool | None = None
    revision_name: str | None = None
    tag: str | None = None


class RoutingTable(BaseModel):
    """Validated traffic split; percentages sum to 100."""

    entries: list[TrafficEntry] = Field(default_factory=list)

    @property
    def total_percent(self) -> int:
        return sum(e.percent for e in self.entries)
