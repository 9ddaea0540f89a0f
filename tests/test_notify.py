from conftest import make_payload
from request_pipeline.chat_client import InMemoryChannel, MessageChannel
from request_pipeline.notify import Notifier


def test_failure_alert_content(alert_channel):
    notifier = Notifier(alert_channel, app_url="https://app.test/")

    sent = notifier.notify_failure("drive_folder", make_payload(), RuntimeError("quota exceeded"), "abc123")

    assert sent
    (blocks,) = alert_channel.messages
    fields = [f["text"] for f in blocks[1]["fields"]]
    assert "*Step Failed:*\ndrive_folder" in fields
    assert "*Client:*\nAcme" in fields
    assert "*Request Type:*\nProofs" in fields
    assert "*Submitted By:*\ndana@example.com" in fields
    assert "quota exceeded" in blocks[2]["text"]["text"]
    assert "<https://app.test/admin/abc123|View in Admin Dashboard>" in blocks[3]["text"]["text"]


def test_failure_alert_without_submission_has_no_link(alert_channel):
    Notifier(alert_channel).notify_failure("asana_create", make_payload(), "boom")

    (blocks,) = alert_channel.messages
    assert len(blocks) == 3


def test_delivery_errors_are_swallowed():
    class Exploding(MessageChannel):
        def post_message(self, blocks):
            raise ConnectionError("socket closed")

    notifier = Notifier(InMemoryChannel(fail=True), Exploding())

    assert notifier.notify_failure("drive_folder", make_payload(), "x", "id1") is False
    assert notifier.notify_success(make_payload(), "https://t", "https://f") is False


def test_success_alert_is_optional(alert_channel):
    assert Notifier(alert_channel).notify_success(make_payload(), "https://t", "https://f") is False
    assert alert_channel.messages == []


def test_success_alert_buttons():
    success = InMemoryChannel()
    Notifier(None, success).notify_success(make_payload(), "https://task", "https://folder")

    (blocks,) = success.messages
    urls = [e["url"] for e in blocks[-1]["elements"]]
    assert urls == ["https://task", "https://folder"]


def test_missing_failure_channel_is_not_an_error():
    assert Notifier(None).notify_failure("drive_folder", make_payload(), "x") is False
