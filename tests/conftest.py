import copy

import pytest

from runforge.schemas.service import ContainerSpec, PortSpec, ServiceSpec


@pytest.fixture
def service_spec():
    return ServiceSpec(
        name="api",
        location="us-central1",
        project="proj-1",
        containers=[
            ContainerSpec(image="us-docker.pkg.dev/proj-1/app/api:1.0", ports=[PortSpec()])
        ],
        labels={"team": "platform"},
    )


@pytest.fixture
def echo_plane(mocker):
    """Service plane that returns what it was sent plus control-plane metadata."""

    def _echo(document):
        body = copy.deepcopy(document.body)
        body["annotations"] = {
            **body.get("annotations", {}),
            "run.googleapis.com/operation-id": "op-123",
            "run.googleapis.com/client-name": "gcloud",
        }
        body["uri"] = f"https://{document.service.name}-abc.a.run.app"
        body["generation"] = "1"
        return body

    plane = mocker.Mock()
    plane.get_service.return_value = None
    plane.create_service.side_effect = _echo
    plane.update_service.side_effect = _echo
    return plane
