"""
Completion notification: push a short summary to a webhook after a sync run.
Fire-and-forget; delivery failures are logged and never raised.
"""

import logging

import requests

from catalog_sync.core.config import get_settings

logger = logging.getLogger(__name__)


class NotifyService:
    def __init__(
        self,
        webhook_url: str | None = None,
        token: str | None = None,
        *,
        timeout_sec: float = 10.0,
    ) -> None:
        settings = get_settings()
        self._webhook_url = webhook_url if webhook_url is not None else settings.notify_webhook_url
        self._token = token if token is not None else settings.notify_webhook_token
        self._timeout_sec = timeout_sec

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    def send(self, title: str, message: str) -> bool:
        """POST {token, title, message}. Returns True if the webhook accepted it."""
        if not self.enabled:
            logger.debug("Notification skipped: NOTIFY_WEBHOOK_URL not set")
            return False
        try:
            resp = requests.post(
                self._webhook_url,
                json={"token": self._token, "title": title, "message": message},
                timeout=self._timeout_sec,
            )
            resp.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.warning("Notification delivery failed: %s", e)
            return False


def get_notify_service() -> NotifyService:
    return NotifyService()
