"""Webhook sinks — POST the notification text as JSON.

Slack and generic webhooks take ``{"text": ...}``; Discord takes
``{"content": ...}``.
"""

from __future__ import annotations

import logging

import requests

from apkgate.models.outcomes import Notification

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_S = 15.0


class WebhookSink:
    """Posts notifications to a generic JSON webhook.

    Parameters
    ----------
    url:
        The webhook endpoint.
    session:
        Optional ``requests.Session``.
    """

    payload_key = "text"
    name = "webhook"

    def __init__(
        self,
        url: str,
        session: requests.Session | None = None,
        timeout: float = HTTP_TIMEOUT_S,
    ) -> None:
        self._url = url
        self._session = session or requests.Session()
        self._timeout = timeout

    @property
    def sink_name(self) -> str:
        return self.name

    def build_payload(self, notification: Notification) -> dict[str, str]:
        return {self.payload_key: notification.text}

    def accept(self, notification: Notification) -> None:
        resp = self._session.post(
            self._url,
            json=self.build_payload(notification),
            timeout=self._timeout,
        )
        resp.raise_for_status()
        logger.info("%s notification sent", self.name.capitalize())


class SlackSink(WebhookSink):
    name = "slack"


class DiscordSink(WebhookSink):
    payload_key = "content"
    name = "discord"
