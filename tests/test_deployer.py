import threading

import pytest

from runforge.builders.spec import build
from runforge.deployer import Deployer
from runforge.exceptions import RemoteRejected, ValidationError
from runforge.schemas.bindings import DomainBinding
from runforge.schemas.desired import DesiredState
from runforge.schemas.state import ResourceState

ROLE = "roles/run.invoker"


@pytest.fixture
def domains(mocker):
    plane = mocker.Mock()
    plane.list_domain_mappings.return_value = {}
    return plane


@pytest.fixture
def access(mocker):
    plane = mocker.Mock()
    plane.get_invokers.return_value = []
    return plane


def _outcomes(outcomes):
    return sorted((o.kind, o.key, o.action, o.status) for o in outcomes)


def test_deploy_creates_service_then_bindings(service_spec, echo_plane, domains, access):
    ref = service_spec.ref
    domains.list_domain_mappings.return_value = {
        "old.example.com": DomainBinding(
            domain_name="old.example.com", route_name="api", service=ref
        )
    }
    desired = DesiredState(
        service=service_spec,
        domains={"api.example.com"},
        members=["user:u1@example.com"],
    )

    report = Deployer(echo_plane, domains, access).deploy(desired)

    assert report.ok
    assert report.service.action == "create"
    assert _outcomes(report.domains) == [
        ("domain", "api.example.com", "create", "applied"),
        ("domain", "old.example.com", "delete", "applied"),
    ]
    assert _outcomes(report.bindings) == [("iam", "0", "create", "applied")]

    created = domains.create_domain_mapping.call_args[0][0]
    assert created.domain_name == "api.example.com"
    assert created.route_name == "api"
    domains.delete_domain_mapping.assert_called_once_with(ref, "old.example.com", timeout=None)
    access.add_invoker.assert_called_once_with(ref, ROLE, "user:u1@example.com", timeout=None)


def test_failed_service_blocks_dependents(service_spec, mocker, domains, access):
    services = mocker.Mock()
    services.get_service.return_value = None
    services.create_service.side_effect = RemoteRejected("invalid image reference")
    desired = DesiredState(service=service_spec, domains={"a.com"}, members=["user:u1"])

    report = Deployer(services, domains, access).deploy(desired)

    assert not report.ok
    assert report.service.state == ResourceState.FAILED
    assert report.domains == []
    assert report.bindings == []
    domains.list_domain_mappings.assert_not_called()
    access.get_invokers.assert_not_called()
    access.add_invoker.assert_not_called()


def test_unreadable_service_blocks_dependents(service_spec, mocker, domains, access):
    services = mocker.Mock()
    services.get_service.side_effect = RemoteRejected("permission denied")

    report = Deployer(services, domains, access).deploy(DesiredState(service=service_spec))

    assert report.service.action == "read"
    assert report.service.state == ResourceState.FAILED
    services.create_service.assert_not_called()
    domains.list_domain_mappings.assert_not_called()


def test_validation_happens_before_remote_calls(service_spec, echo_plane, domains, access):
    service_spec.containers = []

    with pytest.raises(ValidationError):
        Deployer(echo_plane, domains, access).deploy(DesiredState(service=service_spec))

    echo_plane.get_service.assert_not_called()


def test_sibling_failure_does_not_block(service_spec, echo_plane, domains, access):
    def create(binding, timeout=None):
        if binding.domain_name == "bad.com":
            raise RemoteRejected("domain is not verified", binding.domain_name)
        return {}

    domains.create_domain_mapping.side_effect = create
    desired = DesiredState(
        service=service_spec, domains={"bad.com", "good.com"}, members=["user:u1"]
    )

    report = Deployer(echo_plane, domains, access).deploy(desired)

    assert not report.ok
    assert report.service.ok
    assert _outcomes(report.domains) == [
        ("domain", "bad.com", "create", "failed"),
        ("domain", "good.com", "create", "applied"),
    ]
    failed = next(o for o in report.domains if o.status == "failed")
    assert failed.detail == "domain is not verified"
    assert _outcomes(report.bindings) == [("iam", "0", "create", "applied")]


def test_positional_member_removal_keeps_moved_member(
    service_spec, echo_plane, domains, access
):
    desired = DesiredState(service=service_spec, members=["user:u2"])

    report = Deployer(echo_plane, domains, access).deploy(
        desired, previous_members=["user:u1", "user:u2"]
    )

    assert _outcomes(report.bindings) == [
        ("iam", "0", "update", "applied"),
        ("iam", "1", "delete", "applied"),
    ]
    access.add_invoker.assert_called_once_with(service_spec.ref, ROLE, "user:u2", timeout=None)
    access.remove_invoker.assert_called_once_with(service_spec.ref, ROLE, "user:u1", timeout=None)


def test_previous_members_read_from_policy(service_spec, echo_plane, domains, access):
    access.get_invokers.return_value = ["user:u1"]
    desired = DesiredState(service=service_spec, members=["user:u1"])

    report = Deployer(echo_plane, domains, access).deploy(desired)

    assert report.bindings == []
    access.get_invokers.assert_called_once_with(service_spec.ref, ROLE)


def test_reordered_policy_is_a_noop(service_spec, echo_plane, domains, access):
    echo_plane.get_service.return_value = echo_plane.create_service(build(service_spec))
    access.get_invokers.return_value = ["user:b@x.com", "user:a@x.com"]
    desired = DesiredState(service=service_spec, members=["user:a@x.com", "user:b@x.com"])
    deployer = Deployer(echo_plane, domains, access)

    assert deployer.plan(desired).bindings == []
    report = deployer.deploy(desired)

    assert report.bindings == []
    access.add_invoker.assert_not_called()
    access.remove_invoker.assert_not_called()


def test_unsupported_member_fails_before_remote_calls(
    service_spec, echo_plane, domains, access
):
    desired = DesiredState(service=service_spec, members=["user:u1", "u2@example.com"])

    with pytest.raises(ValidationError, match="u2@example.com"):
        Deployer(echo_plane, domains, access).deploy(desired)

    echo_plane.get_service.assert_not_called()
    access.get_invokers.assert_not_called()


def test_deadline_separates_queued_from_in_flight(
    service_spec, echo_plane, domains, access
):
    started = threading.Event()
    release = threading.Event()
    timeouts = []

    def slow_create(binding, timeout=None):
        timeouts.append(timeout)
        started.set()
        release.wait(5)
        return {}

    domains.create_domain_mapping.side_effect = slow_create
    desired = DesiredState(service=service_spec, domains={"a.com", "b.com"})

    try:
        report = Deployer(
            echo_plane, domains, access, concurrency=1, deadline=0.2
        ).deploy(desired)
    finally:
        release.set()

    assert report.service.ok
    assert not report.ok
    # a.com was already sent when the deadline passed; b.com never started
    assert _outcomes(report.domains) == [
        ("domain", "a.com", "create", "unknown"),
        ("domain", "b.com", "create", "cancelled"),
    ]
    assert started.is_set()
    assert len(timeouts) == 1
    assert 0 < timeouts[0] <= 0.2


def test_plan_applies_nothing(service_spec, echo_plane, domains, access):
    desired = DesiredState(
        service=service_spec, domains={"a.com"}, members=["user:u1"]
    )

    plan = Deployer(echo_plane, domains, access).plan(desired)

    assert plan.service.action == "create"
    assert set(plan.domains.to_create) == {"a.com"}
    assert [(c.action, c.after) for c in plan.bindings] == [("create", "user:u1")]
    echo_plane.create_service.assert_not_called()
    # Service does not exist yet, so there is nothing to read
    domains.list_domain_mappings.assert_not_called()
    access.get_invokers.assert_not_called()


def test_plan_existing_service_is_noop(service_spec, echo_plane, domains, access):
    echo_plane.get_service.return_value = echo_plane.create_service(build(service_spec))

    plan = Deployer(echo_plane, domains, access).plan(DesiredState(service=service_spec))

    assert plan.service.action == "noop"
    domains.list_domain_mappings.assert_called_once_with(service_spec.ref)
