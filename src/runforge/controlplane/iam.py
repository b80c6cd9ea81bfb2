"""Invoker grants on a Cloud Run service's IAM policy.

Every change is a read-modify-write of the whole policy. Concurrent writers
race on the policy etag; the losing write fails with ABORTED and is retried.
"""

from __future__ import annotations

from typing import Any

from google.iam.v1 import iam_policy_pb2
from tenacity import retry

from ..clients import get_services_client
from ..core import ETAG_RETRY_CONFIG
from ..logger import logger
from ..schemas.service import ServiceRef
from .errors import translate_errors


def _get_policy(ref: ServiceRef, timeout: float | None = None) -> Any:
    client = get_services_client()
    request = iam_policy_pb2.GetIamPolicyRequest(resource=ref.path)
    return client.get_iam_policy(request=request, timeout=timeout)


def _set_policy(ref: ServiceRef, policy: Any, timeout: float | None = None) -> None:
    client = get_services_client()
    request = iam_policy_pb2.SetIamPolicyRequest(resource=ref.path, policy=policy)
    client.set_iam_policy(request=request, timeout=timeout)


@retry(**ETAG_RETRY_CONFIG)  # type: ignore[call-overload, untyped-decorator]
def _grant(ref: ServiceRef, role: str, member: str, timeout: float | None = None) -> bool:
    policy = _get_policy(ref, timeout)
    for binding in policy.bindings:
        if binding.role == role:
            if member in binding.members:
                return False
            binding.members.append(member)
            break
    else:
        policy.bindings.add(role=role, members=[member])
    _set_policy(ref, policy, timeout)
    return True


@retry(**ETAG_RETRY_CONFIG)  # type: ignore[call-overload, untyped-decorator]
def _revoke(ref: ServiceRef, role: str, member: str, timeout: float | None = None) -> bool:
    policy = _get_policy(ref, timeout)
    for binding in policy.bindings:
        if binding.role == role and member in binding.members:
            binding.members.remove(member)
            if not binding.members:
                policy.bindings.remove(binding)
            _set_policy(ref, policy, timeout)
            return True
    return False


class CloudRunAccess:
    def get_invokers(self, ref: ServiceRef, role: str) -> list[str]:
        with translate_errors(ref.path):
            policy = _get_policy(ref)
        for binding in policy.bindings:
            if binding.role == role:
                return list(binding.members)
        return []

    def add_invoker(
        self, ref: ServiceRef, role: str, member: str, timeout: float | None = None
    ) -> None:
        with translate_errors(f"{ref.path} {role} {member}"):
            changed = _grant(ref, role, member, timeout)
        if changed:
            logger.info(f"Granted {role} to {member} on {ref.name}")
        else:
            logger.debug(f"{member} already holds {role} on {ref.name}")

    def remove_invoker(
        self, ref: ServiceRef, role: str, member: str, timeout: float | None = None
    ) -> None:
        with translate_errors(f"{ref.path} {role} {member}"):
            changed = _revoke(ref, role, member, timeout)
        if changed:
            logger.info(f"Revoked {role} from {member} on {ref.name}")
