"""User-visible daemon exceptions."""

from __future__ import annotations


class DaemonUserError(RuntimeError):
    """Error intended to be shown directly in chat-facing interfaces."""

    def __init__(self, message: str, *, hint: str = ""):
        self.message = str(message or "").strip() or "Unknown daemon error."
        self.hint = str(hint or "").strip()
        super().__init__(self.user_message)

    @property
    def user_message(self) -> str:
        if self.hint:
            return f"{self.message} {self.hint}".strip()
        return self.message


class UnsupportedBackendError(DaemonUserError):
    """Requested CLI backend is not one of the known backends."""

    def __init__(self, value: str, *, supported: tuple[str, ...] = ()):
        self.value = str(value or "").strip()
        choices = " | ".join(supported)
        super().__init__(
            f"Unsupported CLI: {self.value or '(empty)'}.",
            hint=f"Use: {choices}" if choices else "",
        )


class BackendNotAllowedError(UnsupportedBackendError):
    """Requested CLI backend is known but disabled for this workspace."""


class NoSessionError(DaemonUserError):
    """Chat has no recorded session yet."""


class DownloadError(DaemonUserError):
    """Image could not be resolved or downloaded."""


class ConfigError(DaemonUserError):
    """Configuration file content is invalid."""


class TelegramAPIError(RuntimeError):
    """Bot API call failed or returned ok=false."""

    def __init__(self, method: str, description: str, *, error_code: int = 0):
        self.method = method
        self.description = str(description or "").strip() or "unknown error"
        self.error_code = int(error_code or 0)
        super().__init__(f"Telegram {method} failed: {self.description}")


class TransportDeliveryError(TelegramAPIError):
    """Outbound message was rejected by the transport."""
