"""Thin Telegram Bot API client over requests for daemon mode."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from telecode.daemon.errors import TelegramAPIError, TransportDeliveryError

logger = logging.getLogger(__name__)
DEFAULT_API_BASE = "https://api.telegram.org"
REQUEST_TIMEOUT_SECONDS = 30
PARSE_MODE_MARKDOWN = "Markdown"
CHAT_ACTION_TYPING = "typing"
PARSE_ERROR_MARKERS = ("can't parse entities", "can't find end of the entity")


class TelegramClient:
    """Bot API calls used by the bridge: polling, sending, file lookup."""

    def __init__(
        self,
        token: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        session: Optional[requests.Session] = None,
        request_timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.token = str(token or "").strip()
        self.api_base = str(api_base or DEFAULT_API_BASE).rstrip("/")
        self.session = session or requests.Session()
        self.request_timeout = float(request_timeout)

    @property
    def method_base(self) -> str:
        return f"{self.api_base}/bot{self.token}"

    def file_url(self, file_path: str) -> str:
        return f"{self.api_base}/file/bot{self.token}/{str(file_path).lstrip('/')}"

    def call(
        self,
        method: str,
        payload: Optional[dict[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        """POST one Bot API method and return its result field."""
        url = f"{self.method_base}/{method}"
        try:
            response = self.session.post(
                url,
                json=payload or {},
                timeout=timeout or self.request_timeout,
            )
        except requests.RequestException as exc:
            raise TelegramAPIError(method, _redact(str(exc), self.token)) from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise TelegramAPIError(
                method,
                f"invalid response (HTTP {response.status_code})",
                error_code=response.status_code,
            ) from exc
        if not body.get("ok"):
            raise TelegramAPIError(
                method,
                str(body.get("description", "") or f"HTTP {response.status_code}"),
                error_code=int(body.get("error_code", response.status_code) or 0),
            )
        return body.get("result")

    def get_me(self) -> dict:
        return self.call("getMe") or {}

    def get_updates(self, *, offset: Optional[int] = None, timeout: int = 30) -> list[dict]:
        """Long-poll for updates newer than offset."""
        payload: dict[str, Any] = {
            "timeout": int(timeout),
            "allowed_updates": ["message"],
        }
        if offset is not None:
            payload["offset"] = int(offset)
        result = self.call(
            "getUpdates",
            payload,
            timeout=int(timeout) + self.request_timeout,
        )
        return list(result or [])

    def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = None,
    ) -> dict:
        """Send one text message; raises TransportDeliveryError on rejection."""
        payload: dict[str, Any] = {"chat_id": chat_id, "text": str(text)}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        try:
            return self.call("sendMessage", payload) or {}
        except TelegramAPIError as exc:
            if parse_mode and _is_parse_error(exc):
                logger.debug("markdown rejected for chat=%s; resending as plain text", chat_id)
                payload.pop("parse_mode", None)
                try:
                    return self.call("sendMessage", payload) or {}
                except TelegramAPIError as retry_exc:
                    exc = retry_exc
            raise TransportDeliveryError(
                "sendMessage",
                exc.description,
                error_code=exc.error_code,
            ) from exc

    def send_chat_action(self, chat_id: int, action: str = CHAT_ACTION_TYPING) -> None:
        self.call("sendChatAction", {"chat_id": chat_id, "action": action})

    def get_file(self, file_id: str) -> str:
        """Resolve a file id to its server-side file path."""
        result = self.call("getFile", {"file_id": file_id}) or {}
        file_path = str(result.get("file_path", "") or "").strip()
        if not file_path:
            raise TelegramAPIError("getFile", "response has no file_path")
        return file_path


def _is_parse_error(exc: TelegramAPIError) -> bool:
    description = exc.description.lower()
    return any(marker in description for marker in PARSE_ERROR_MARKERS)


def _redact(text: str, token: str) -> str:
    if not token:
        return text
    return text.replace(token, "<token>")
