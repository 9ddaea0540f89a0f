from abc import ABC, abstractmethod

import httpx

from request_pipeline.errors import NotificationDeliveryError


class MessageChannel(ABC):
    @abstractmethod
    def post_message(self, blocks: list[dict]) -> None: ...


class InMemoryChannel(MessageChannel):
    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.messages: list[list[dict]] = []

    def post_message(self, blocks: list[dict]) -> None:
        if self.fail:
            raise NotificationDeliveryError("Channel unavailable (simulated)")
        self.messages.append(blocks)


class SlackWebhookChannel(MessageChannel):
    """Posts Block Kit messages to a Slack incoming webhook."""

    def __init__(self, webhook_url: str, *, timeout: float = 10.0, transport: httpx.BaseTransport | None = None):
        self.webhook_url = webhook_url
        self._http = httpx.Client(timeout=timeout, transport=transport)

    def post_message(self, blocks: list[dict]) -> None:
        try:
            resp = self._http.post(self.webhook_url, json={"blocks": blocks})
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(f"Slack webhook request failed: {e}") from e
        if resp.is_error:
            raise NotificationDeliveryError(f"Slack webhook returned {resp.status_code}: {resp.text[:200]}")
