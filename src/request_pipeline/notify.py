import logging
from typing import Optional

from request_pipeline.chat_client import MessageChannel
from request_pipeline.errors import NotificationDeliveryError
from request_pipeline.records import utcnow
from request_pipeline.schema import RequestPayload

logger = logging.getLogger(__name__)


def _field(label: str, value: str) -> dict:
    return {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}


def _summary_fields(payload: RequestPayload) -> list[dict]:
    return [
        _field("Request Title", payload.request_title or "Untitled"),
        _field("Client", payload.client_name or "Unknown"),
        _field("Request Type", payload.request_type or "Unknown"),
        _field("Submitted By", payload.requestor_email or "Unknown"),
    ]


def build_failure_blocks(
    step: str,
    payload: RequestPayload,
    error: str,
    submission_id: Optional[str],
    app_url: str,
) -> list[dict]:
    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "🚨 Art Request Submission Error", "emoji": True},
        },
        {
            "type": "section",
            "fields": [
                _field("Step Failed", step),
                *_summary_fields(payload),
                _field("Timestamp", utcnow().isoformat()),
            ],
        },
        {"type": "section", "text": {"type": "mrkdwn", "text": f"*Error Message:*\n```{error}```"}},
    ]
    if submission_id:
        link = f"{app_url.rstrip('/')}/admin/{submission_id}"
        blocks.append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Submission ID:*\n{submission_id}\n\n<{link}|View in Admin Dashboard>",
                },
            }
        )
    return blocks


def build_success_blocks(payload: RequestPayload, task_url: str, folder_url: str) -> list[dict]:
    return [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "✅ New Art Request Submitted", "emoji": True},
        },
        {"type": "section", "fields": _summary_fields(payload)},
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "View in Asana", "emoji": True},
                    "url": task_url,
                    "style": "primary",
                },
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "View Files", "emoji": True},
                    "url": folder_url,
                },
            ],
        },
    ]


class Notifier:
    """Fire-and-forget alerts. Delivery problems are logged, never raised."""

    def __init__(
        self,
        failure_channel: Optional[MessageChannel],
        success_channel: Optional[MessageChannel] = None,
        *,
        app_url: str = "",
    ):
        self.failure_channel = failure_channel
        self.success_channel = success_channel
        self.app_url = app_url

    def notify_failure(
        self,
        step: str,
        payload: RequestPayload,
        error: Exception | str,
        submission_id: Optional[str] = None,
    ) -> bool:
        if self.failure_channel is None:
            logger.warning("Failure alert channel not configured, skipping notification")
            return False
        blocks = build_failure_blocks(step, payload, str(error), submission_id, self.app_url)
        return self._deliver(self.failure_channel, blocks)

    def notify_success(self, payload: RequestPayload, task_url: str, folder_url: str) -> bool:
        # success alerts are optional
        if self.success_channel is None:
            return False
        return self._deliver(self.success_channel, build_success_blocks(payload, task_url, folder_url))

    def _deliver(self, channel: MessageChannel, blocks: list[dict]) -> bool:
        try:
            channel.post_message(blocks)
            return True
        except NotificationDeliveryError as e:
            logger.error("Failed to send notification: %s", e)
        except Exception:
            logger.exception("Unexpected error sending notification")
        return False
