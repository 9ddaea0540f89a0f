import pytest
from fastapi.testclient import TestClient

from conftest import ROOTS, PROJECT_ID
from request_pipeline.api import app, get_pipeline, get_read_limiter, get_submit_limiter
from request_pipeline.chat_client import InMemoryChannel
from request_pipeline.notify import Notifier
from request_pipeline.orchestrator import build_orchestrator
from request_pipeline.persist import InMemorySubmissionStore
from request_pipeline.provision import FolderProvisioner
from request_pipeline.ratelimit import FixedWindowRateLimiter
from request_pipeline.storage_client import InMemoryFolderService
from request_pipeline.task_creator import TaskCreator
from request_pipeline.tracker_client import InMemoryTaskService

BODY = {
    "requestType": "Proofs",
    "requestorName": "Dana Reyes",
    "requestorEmail": "dana@example.com",
    "requestTitle": "Spring Catalog",
    "clientName": "Acme",
    "attachments": [
        {"id": "a1", "name": "brief.pdf", "size": 4, "mimeType": "application/pdf", "base64Data": "JVBERg=="}
    ],
}


@pytest.fixture
def folders():
    return InMemoryFolderService()


@pytest.fixture
def pipeline(folders):
    return build_orchestrator(
        InMemorySubmissionStore(),
        FolderProvisioner(folders, ROOTS),
        TaskCreator(InMemoryTaskService(), PROJECT_ID),
        Notifier(InMemoryChannel()),
    )


@pytest.fixture
def client(pipeline):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_submit_limiter] = lambda: FixedWindowRateLimiter(100, 60)
    app.dependency_overrides[get_read_limiter] = lambda: FixedWindowRateLimiter(100, 60)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["provider"] == "mock"


def test_submit_success(client):
    r = client.post("/api/submit", json=BODY)

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["status"] == "complete"
    assert body["taskUrl"].startswith("https://app.asana.com/0/proj-1/")
    assert [f["name"] for f in body["uploadedFiles"]] == ["brief.pdf"]
    assert body["retryCount"] == 0


def test_submit_validation_error_lists_fields(client):
    r = client.post("/api/submit", json={**BODY, "requestorEmail": "bad"})

    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["details"][0]["path"][-1] == "requestorEmail"


def test_submit_step_failure_then_retry(client, folders):
    folders.fail_folders = True
    r = client.post("/api/submit", json=BODY)

    assert r.status_code == 500
    failed = r.json()
    assert failed["step"] == "drive_folder"
    assert failed["status"] == "error"
    submission_id = failed["submissionId"]

    folders.fail_folders = False
    r = client.post(f"/api/submissions/{submission_id}/retry")

    assert r.status_code == 200
    assert r.json()["retryCount"] == 1

    r = client.post(f"/api/submissions/{submission_id}/retry")
    assert r.status_code == 400


def test_retry_unknown_submission(client):
    assert client.post("/api/submissions/nope123/retry").status_code == 404


def test_get_and_list_hide_attachment_data(client):
    submission_id = client.post("/api/submit", json=BODY).json()["submissionId"]

    r = client.get(f"/api/submissions/{submission_id}")
    assert r.status_code == 200
    record = r.json()["submission"]
    assert record["status"] == "complete"
    assert record["outputs"]["taskUrl"]
    assert "base64Data" not in record["payload"]["attachments"][0]

    listed = client.get("/api/submissions", params={"status": "complete"}).json()["submissions"]
    assert [s["id"] for s in listed] == [submission_id]
    assert client.get("/api/submissions", params={"status": "error"}).json()["submissions"] == []


def test_get_unknown_submission(client):
    assert client.get("/api/submissions/missing1").status_code == 404


def test_submit_rate_limit(client):
    strict = FixedWindowRateLimiter(1, 60)
    app.dependency_overrides[get_submit_limiter] = lambda: strict

    assert client.post("/api/submit", json=BODY).status_code == 200
    r = client.post("/api/submit", json=BODY)

    assert r.status_code == 429
    assert int(r.headers["Retry-After"]) >= 1
    assert r.json()["success"] is False
