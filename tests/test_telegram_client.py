"""Telegram client tests against a fake requests session."""

import pytest
import requests

from telecode.daemon.errors import TelegramAPIError, TransportDeliveryError
from telecode.daemon.telegram_client import TelegramClient


class _Response:
    def __init__(self, body, status=200):
        self.body = body
        self.status_code = status

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class _Session:
    def __init__(self, responses):
        self.responses = list(responses)
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, dict(json or {}), timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(*responses):
    session = _Session(responses)
    return session, TelegramClient("123:secret", session=session)


def test_send_message_posts_payload():
    session, client = _client(_Response({"ok": True, "result": {"message_id": 5}}))
    assert client.send_message(10, "hi", parse_mode="Markdown") == {"message_id": 5}
    url, payload, _ = session.posts[0]
    assert url == "https://api.telegram.org/bot123:secret/sendMessage"
    assert payload == {"chat_id": 10, "text": "hi", "parse_mode": "Markdown"}


def test_markdown_parse_error_is_retried_as_plain_text():
    session, client = _client(
        _Response({"ok": False, "error_code": 400, "description": "Bad Request: can't parse entities"}, 400),
        _Response({"ok": True, "result": {"message_id": 6}}),
    )
    client.send_message(10, "*broken", parse_mode="Markdown")
    assert "parse_mode" not in session.posts[1][1]


def test_rejected_send_raises_delivery_error():
    _, client = _client(_Response({"ok": False, "error_code": 403, "description": "Forbidden"}, 403))
    with pytest.raises(TransportDeliveryError) as excinfo:
        client.send_message(10, "hi")
    assert excinfo.value.error_code == 403


def test_network_error_hides_token():
    _, client = _client(requests.ConnectionError("failed https://api.telegram.org/bot123:secret/getMe"))
    with pytest.raises(TelegramAPIError) as excinfo:
        client.get_me()
    assert "123:secret" not in str(excinfo.value)


def test_invalid_json_raises_api_error():
    _, client = _client(_Response(ValueError("no json"), 502))
    with pytest.raises(TelegramAPIError):
        client.send_chat_action(1)


def test_get_updates_passes_offset_and_long_poll_timeout():
    session, client = _client(_Response({"ok": True, "result": [{"update_id": 3}]}))
    assert client.get_updates(offset=3, timeout=25) == [{"update_id": 3}]
    _, payload, timeout = session.posts[0]
    assert payload["offset"] == 3
    assert payload["timeout"] == 25
    assert timeout > 25


def test_get_file_and_file_url():
    _, client = _client(_Response({"ok": True, "result": {"file_path": "photos/a.jpg"}}))
    assert client.get_file("abc") == "photos/a.jpg"
    assert client.file_url("photos/a.jpg") == "https://api.telegram.org/file/bot123:secret/photos/a.jpg"


def test_get_file_without_path_fails():
    _, client = _client(_Response({"ok": True, "result": {}}))
    with pytest.raises(TelegramAPIError):
        client.get_file("abc")
