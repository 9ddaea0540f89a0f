import json

import httpx
import pytest

from request_pipeline.chat_client import SlackWebhookChannel
from request_pipeline.errors import NotificationDeliveryError, ServiceError
from request_pipeline.storage_client import GoogleDriveFolderService
from request_pipeline.tracker_client import AsanaTaskService, TaskSpec


def _drive(handler) -> GoogleDriveFolderService:
    return GoogleDriveFolderService("token", transport=httpx.MockTransport(handler))


def test_drive_find_folder_keeps_exact_name_only():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["q"] = request.url.params["q"]
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(
            200,
            json={
                "files": [
                    {"id": "1", "name": "bob", "webViewLink": "https://drive/1"},
                    {"id": "2", "name": "Bob", "webViewLink": "https://drive/2"},
                ]
            },
        )

    found = _drive(handler).find_folder("Bob", "parent-1")

    assert found.id == "2"
    assert "name = 'Bob'" in seen["q"]
    assert "'parent-1' in parents" in seen["q"]
    assert seen["auth"] == "Bearer token"


def test_drive_find_folder_escapes_quotes():
    seen = {}

    def handler(request):
        seen["q"] = request.url.params["q"]
        return httpx.Response(200, json={"files": []})

    assert _drive(handler).find_folder("O'Brien", "p") is None
    assert "name = 'O\\'Brien'" in seen["q"]


def test_drive_create_folder_sends_folder_mime_type():
    def handler(request):
        body = json.loads(request.content)
        assert body == {"name": "2026", "mimeType": "application/vnd.google-apps.folder", "parents": ["p"]}
        assert request.url.params["supportsAllDrives"] == "true"
        return httpx.Response(200, json={"id": "f1", "webViewLink": "https://drive/f1"})

    item = _drive(handler).create_folder("2026", "p")
    assert item.url == "https://drive/f1"


def test_drive_upload_is_multipart_related():
    def handler(request):
        assert request.url.params["uploadType"] == "multipart"
        assert request.headers["content-type"].startswith("multipart/related; boundary=")
        assert b"%PDF" in request.content
        assert b'"parents": ["folder-9"]' in request.content
        return httpx.Response(200, json={"id": "file1", "webViewLink": "https://drive/file1"})

    item = _drive(handler).upload_file(b"%PDF", "brief.pdf", "application/pdf", "folder-9")
    assert item.id == "file1"


def test_drive_error_becomes_service_error():
    def handler(request):
        return httpx.Response(403, json={"error": {"message": "Insufficient permissions"}})

    with pytest.raises(ServiceError) as exc:
        _drive(handler).create_folder("x", "p")

    assert exc.value.status_code == 403
    assert "Insufficient permissions" in str(exc.value)


def test_drive_non_json_success_becomes_service_error():
    def handler(request):
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(ServiceError, match="non-JSON"):
        _drive(handler).create_folder("x", "p")


def test_drive_requires_token():
    with pytest.raises(ValueError):
        GoogleDriveFolderService("")


def test_asana_create_task_wraps_data_and_builds_url():
    def handler(request):
        body = json.loads(request.content)["data"]
        assert request.url.path == "/api/1.0/tasks"
        assert body["projects"] == ["proj-9"]
        assert body["due_on"] == "2026-11-02"
        assert body["custom_fields"] == {"gid-1": "opt-1"}
        return httpx.Response(201, json={"data": {"gid": "777"}})

    service = AsanaTaskService("token", transport=httpx.MockTransport(handler))
    ref = service.create_task(
        TaskSpec(
            title="Acme - Catalog",
            html_description="<body></body>",
            project_id="proj-9",
            due_date="2026-11-02",
            custom_fields={"gid-1": "opt-1"},
        )
    )

    assert ref.id == "777"
    assert ref.url == "https://app.asana.com/0/proj-9/777"


def test_asana_error_message_is_surfaced():
    def handler(request):
        return httpx.Response(400, json={"errors": [{"message": "project: Not a recognized ID"}]})

    service = AsanaTaskService("token", transport=httpx.MockTransport(handler))
    with pytest.raises(ServiceError, match="Not a recognized ID"):
        service.add_comment("1", "hello")


def test_slack_posts_blocks():
    posted = []

    def handler(request):
        posted.append(json.loads(request.content))
        return httpx.Response(200, text="ok")

    SlackWebhookChannel("https://hooks.test/x", transport=httpx.MockTransport(handler)).post_message([{"type": "divider"}])

    assert posted == [{"blocks": [{"type": "divider"}]}]


def test_slack_failure_raises_delivery_error():
    def handler(request):
        return httpx.Response(404, text="no_service")

    channel = SlackWebhookChannel("https://hooks.test/x", transport=httpx.MockTransport(handler))
    with pytest.raises(NotificationDeliveryError, match="404"):
        channel.post_message([])
