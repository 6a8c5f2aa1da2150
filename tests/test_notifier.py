"""
Tests for the notification gateway client.
"""
from unittest.mock import MagicMock, patch

import pytest
import requests

from finalmessage.errors import NotificationFailed
from finalmessage.notifier import HttpNotifier, LogNotifier


class TestHttpNotifier:

    @patch("finalmessage.notifier.requests.post")
    def test_posts_json_with_bearer_token(self, mock_post):
        mock_post.return_value = MagicMock(content=b'{"id": "n1"}', json=lambda: {"id": "n1"})
        notifier = HttpNotifier("https://gateway.test/send", api_key="k", timeout=5)

        res = notifier.send("v1", "please confirm", "email", "v1@example.com")

        assert res == {"id": "n1"}
        _, kwargs = mock_post.call_args
        assert kwargs["json"] == {
            "recipientId": "v1",
            "to": "v1@example.com",
            "channel": "email",
            "message": "please confirm",
        }
        assert kwargs["headers"]["Authorization"] == "Bearer k"
        assert kwargs["timeout"] == 5

    @patch("finalmessage.notifier.requests.post")
    def test_http_error_becomes_notification_failed(self, mock_post):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("502 Bad Gateway")
        mock_post.return_value = response

        with pytest.raises(NotificationFailed):
            HttpNotifier("https://gateway.test/send").send("v1", "hi")

    @patch("finalmessage.notifier.requests.post", side_effect=requests.ConnectionError("refused"))
    def test_transport_error_becomes_notification_failed(self, _):
        with pytest.raises(NotificationFailed):
            HttpNotifier("https://gateway.test/send").send("v1", "hi")


def test_log_notifier_always_succeeds():
    assert LogNotifier().send("v1", "hi", "sms")["status"] == "sent"
