import pydantic
import pytest

from runforge.builders.spec import build
from runforge.exceptions import ConfigError, ValidationError
from runforge.schemas.service import (
    ContainerSpec,
    HttpGetProbe,
    MountSpec,
    NameSecretRef,
    NameValue,
    PortSpec,
    SecretVolume,
    TcpSocketProbe,
    VpcAccess,
)
from runforge.schemas.traffic import TrafficEntry


def test_build_minimal(service_spec):
    doc = build(service_spec)

    assert doc.service.path == "projects/proj-1/locations/us-central1/services/api"
    assert doc.body["labels"] == {"team": "platform"}
    assert doc.body["ingress"] == "INGRESS_TRAFFIC_ALL"
    assert doc.body["traffic"] == [
        {"percent": 100, "type": "TRAFFIC_TARGET_ALLOCATION_TYPE_LATEST"}
    ]
    container = doc.body["template"]["containers"][0]
    assert container == {
        "image": "us-docker.pkg.dev/proj-1/app/api:1.0",
        "ports": [{"container_port": 8080}],
    }
    assert "revision" not in doc.body["template"]


def test_build_requires_containers(service_spec):
    service_spec.containers = []
    with pytest.raises(ValidationError, match="no containers"):
        build(service_spec)


def test_build_preserves_sequence_order(service_spec):
    service_spec.containers = [
        ContainerSpec(
            name="app",
            image="img/app",
            ports=[PortSpec(name="h2c", container_port=9000)],
            env_vars=[NameValue(name="B", value="2"), NameValue(name="A", value="1")],
            env_secret_vars=[NameSecretRef(name="DB_PASS", secret="db-pass", version="3")],
            volume_mounts=[
                MountSpec(name="z", mount_path="/z"),
                MountSpec(name="a", mount_path="/a"),
            ],
        ),
        ContainerSpec(name="sidecar", image="img/sidecar"),
    ]
    doc = build(service_spec)

    containers = doc.body["template"]["containers"]
    assert [c["name"] for c in containers] == ["app", "sidecar"]
    assert [e["name"] for e in containers[0]["env"]] == ["B", "A", "DB_PASS"]
    assert containers[0]["env"][2] == {
        "name": "DB_PASS",
        "value_source": {"secret_key_ref": {"secret": "db-pass", "version": "3"}},
    }
    assert [m["mount_path"] for m in containers[0]["volume_mounts"]] == ["/z", "/a"]


def test_fixed_revision_name(service_spec):
    service_spec.generate_revision_name = False
    service_spec.traffic = [TrafficEntry(revision_name="v2")]

    doc = build(service_spec)
    assert doc.body["template"]["revision"] == "api-v2"
    assert doc.body["traffic"][0]["revision"] == "v2"


def test_fixed_revision_name_needs_traffic(service_spec):
    service_spec.generate_revision_name = False
    service_spec.traffic = []
    with pytest.raises(ConfigError, match="traffic split is empty"):
        build(service_spec)


def test_fixed_revision_name_needs_named_first_entry(service_spec):
    service_spec.generate_revision_name = False
    service_spec.traffic = [TrafficEntry(latest_revision=True, revision_name="v2")]
    with pytest.raises(ConfigError, match="names no revision"):
        build(service_spec)


def test_template_settings(service_spec):
    service_spec.timeout_seconds = 300
    service_spec.concurrency = 40
    service_spec.service_account = "api@proj-1.iam.gserviceaccount.com"
    service_spec.min_instances = 1
    service_spec.max_instances = 10
    service_spec.vpc_access = VpcAccess(connector="conn-1", egress="ALL_TRAFFIC")
    service_spec.volumes = [SecretVolume(name="creds", secret="api-creds")]

    template = build(service_spec).body["template"]
    assert template["timeout"] == "300s"
    assert template["max_instance_request_concurrency"] == 40
    assert template["service_account"] == "api@proj-1.iam.gserviceaccount.com"
    assert template["scaling"] == {"min_instance_count": 1, "max_instance_count": 10}
    assert template["vpc_access"] == {"connector": "conn-1", "egress": "ALL_TRAFFIC"}
    assert template["volumes"] == [{"name": "creds", "secret": {"secret": "api-creds"}}]


def test_probes(service_spec):
    service_spec.containers[0].startup_probe = TcpSocketProbe(port=8080, period_seconds=5)
    service_spec.containers[0].liveness_probe = HttpGetProbe(
        path="/healthz", failure_threshold=3
    )

    container = build(service_spec).body["template"]["containers"][0]
    assert container["startup_probe"] == {"period_seconds": 5, "tcp_socket": {"port": 8080}}
    assert container["liveness_probe"] == {
        "failure_threshold": 3,
        "http_get": {"path": "/healthz"},
    }


def test_tcp_liveness_probe_rejected():
    with pytest.raises(pydantic.ValidationError):
        ContainerSpec(image="img", liveness_probe={"kind": "tcp_socket", "port": 80})


def test_unknown_resource_requests_rejected(service_spec):
    service_spec.containers[0].resource_requests = {"gpu": "1"}
    with pytest.raises(ValidationError, match="gpu"):
        build(service_spec)


def test_resource_limits(service_spec):
    service_spec.containers[0].resource_limits = {"cpu": "2", "memory": "1Gi"}
    service_spec.containers[0].resource_requests = {"cpu": "1"}
    service_spec.containers[0].cpu_idle = True

    container = build(service_spec).body["template"]["containers"][0]
    assert container["resources"] == {
        "limits": {"cpu": "2", "memory": "1Gi"},
        "cpu_idle": True,
    }
