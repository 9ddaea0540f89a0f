import base64

import pytest

from request_pipeline import constants
from request_pipeline.chat_client import InMemoryChannel
from request_pipeline.notify import Notifier
from request_pipeline.orchestrator import build_orchestrator
from request_pipeline.persist import InMemorySubmissionStore
from request_pipeline.provision import FolderProvisioner
from request_pipeline.schema import RequestPayload
from request_pipeline.storage_client import InMemoryFolderService
from request_pipeline.task_creator import TaskCreator
from request_pipeline.tracker_client import InMemoryTaskService

ROOTS = {constants.PARTITION_A_L: "root-al", constants.PARTITION_M_Z: "root-mz"}
PROJECT_ID = "proj-1"


@pytest.fixture(autouse=True)
def force_mock_provider(monkeypatch, tmp_path):
    monkeypatch.setenv("INTEGRATIONS_PROVIDER", "mock")
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "submissions"))
    monkeypatch.delenv("SLACK_SUCCESS_WEBHOOK", raising=False)


def attachment(name: str, data: bytes = b"file-bytes") -> dict:
    return {
        "id": name,
        "name": name,
        "size": len(data),
        "mimeType": "application/pdf",
        "base64Data": base64.b64encode(data).decode("ascii"),
    }


def make_payload(**overrides) -> RequestPayload:
    data = {
        "requestType": "Proofs",
        "requestorName": "Dana Reyes",
        "requestorEmail": "dana@example.com",
        "region": "US",
        "requestTitle": "Spring Catalog",
        "clientName": "Acme",
        "clientExists": True,
        "dueDate": "2026-11-02",
        "projectValue": "<$50k",
        "billable": "Yes",
        "proofType": "Digital Proof",
        "attachments": [],
    }
    data.update(overrides)
    return RequestPayload.model_validate(data)


@pytest.fixture
def payload_factory():
    return make_payload


@pytest.fixture
def folder_service():
    return InMemoryFolderService()


@pytest.fixture
def task_service():
    return InMemoryTaskService()


@pytest.fixture
def alert_channel():
    return InMemoryChannel()


@pytest.fixture
def store():
    return InMemorySubmissionStore()


@pytest.fixture
def provisioner(folder_service):
    return FolderProvisioner(folder_service, ROOTS)


@pytest.fixture
def creator(task_service):
    return TaskCreator(task_service, PROJECT_ID)


@pytest.fixture
def orchestrator(store, provisioner, creator, alert_channel):
    return build_orchestrator(store, provisioner, creator, Notifier(alert_channel, app_url="https://app.test"))
