"""Traffic split planning.

Resolves the user's traffic entries into a validated routing table and
converts that table into Cloud Run v2 ``TrafficTarget`` documents.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pydantic

from ..core import TRAFFIC_LATEST, TRAFFIC_REVISION
from ..exceptions import ValidationError
from ..schemas.traffic import RoutingTable, TrafficEntry


def _resolve(entry: TrafficEntry | dict[str, Any]) -> TrafficEntry:
    if isinstance(entry, dict):
        try:
            entry = TrafficEntry.model_validate(entry)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid traffic entry {entry}: {e}") from e
    # Latest-revision routing wins over any supplied name
    revision_name = None if entry.latest_revision else entry.revision_name
    return TrafficEntry(
        percent=entry.percent,
        latest_revision=entry.latest_revision,
        revision_name=revision_name,
        tag=entry.tag,
    )


def plan(entries: Iterable[TrafficEntry | dict[str, Any]]) -> RoutingTable:
    """
    Resolves traffic entries into a routing table.

    Raises ValidationError when the percentages do not sum to 100, when a
    tag is used twice, or when an entry of a multi-entry split names
    neither the latest revision nor a specific revision. A lone untargeted
    entry is accepted and routes to the latest revision.
    """
    resolved = [_resolve(e) for e in entries]
    table = RoutingTable(entries=resolved)

    if table.total_percent != 100:
        raise ValidationError(
            f"Traffic percentages must sum to 100, got {table.total_percent}"
        )

    if len(resolved) > 1:
        for i, entry in enumerate(resolved):
            if not entry.latest_revision and entry.revision_name is None:
                raise ValidationError(
                    f"Traffic entry {i} needs latest_revision=true or a revision_name"
                )

    tags = [e.tag for e in resolved if e.tag is not None]
    if len(tags) != len(set(tags)):
        raise ValidationError(f"Traffic tags must be unique: {tags}")

    return table


def to_targets(table: RoutingTable) -> list[dict[str, Any]]:
    """Converts a routing table into v2 TrafficTarget dicts, order preserved."""
    targets = []
    for entry in table.entries:
        target: dict[str, Any] = {"percent": entry.percent}
        if entry.revision_name is not None:
            target["type"] = TRAFFIC_REVISION
            target["revision"] = entry.revision_name
        else:
            target["type"] = TRAFFIC_LATEST
        if entry.tag is not None:
            target["tag"] = entry.tag
        targets.append(target)
    return targets
