"""Exception hierarchy for runforge."""

from __future__ import annotations


class RunforgeError(Exception):
    """Base exception for all runforge errors."""


class ValidationError(RunforgeError):
    """Desired state is malformed (bad traffic split, no containers, ...).

    Raised before any remote call is made.
    """


class ConfigError(RunforgeError):
    """A derived field cannot be resolved from the desired state.

    Example: a fixed revision name was requested but the traffic split
    does not name a revision.
    """


class RemoteRejected(RunforgeError):
    """The control plane refused a request (quota, bad reference, permission).

    Attributes:
        reason: Human-readable reason reported by the control plane.
        resource: The resource the request targeted, when known.
    """

    def __init__(self, reason: str, resource: str | None = None) -> None:
        self.reason = reason
        self.resource = resource
        target = f" ({resource})" if resource else ""
        super().__init__(f"Remote rejected request{target}: {reason}")
