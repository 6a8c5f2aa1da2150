# finalmessage/notifier.py
import logging
from typing import Dict, Optional

import requests

from finalmessage.errors import NotificationFailed
from finalmessage.settings import settings

log = logging.getLogger("notifier")


class LogNotifier:
    """Notifier used when no gateway is configured: messages only go to the log."""

    def send(self, verifier_id: str, message: str, channel: str = "email", address: Optional[str] = None) -> dict:
        log.info("[%s] -> %s (%s): %s", channel, verifier_id, address or "-", message)
        return {"verifierId": verifier_id, "channel": channel, "status": "sent"}


class HttpNotifier:
    """
    Posts notifications to a mail/SMS gateway as JSON. Any transport or
    HTTP error surfaces as NotificationFailed.
    """

    def __init__(self, api_url: str, api_key: Optional[str] = None, timeout: int = 30):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout

    def _auth_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def send(self, verifier_id: str, message: str, channel: str = "email", address: Optional[str] = None) -> dict:
        payload = {
            "recipientId": verifier_id,
            "to": address,
            "channel": channel,
            "message": message,
        }
        try:
            res = requests.post(self.api_url, json=payload, headers=self._auth_headers(), timeout=self.timeout)
            res.raise_for_status()
        except requests.RequestException as e:
            raise NotificationFailed(f"Notification to {verifier_id} failed: {e}") from e
        return res.json() if res.content else {"status": "sent"}


def default_notifier():
    if settings.NOTIFY_API_URL:
        return HttpNotifier(settings.NOTIFY_API_URL, settings.NOTIFY_API_KEY, settings.NOTIFY_TIMEOUT)
    return LogNotifier()
