"""Download chat photos to transient files for backend attachments."""

from __future__ import annotations

import itertools
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence

import requests

from telecode.daemon.errors import DownloadError, TelegramAPIError
from telecode.daemon.telegram_client import TelegramClient

logger = logging.getLogger(__name__)
DOWNLOAD_TIMEOUT_SECONDS = 60
DOWNLOAD_CHUNK_BYTES = 1024 * 1024
DEFAULT_EXTENSION = ".jpg"
ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
_sequence = itertools.count(1)


def select_largest_photo(sizes: Sequence[dict]) -> Optional[dict]:
    """Pick the highest-resolution variant from a photo size list."""
    candidates = [item for item in sizes or [] if item and item.get("file_id")]
    if not candidates:
        return None
    return max(
        candidates,
        key=lambda item: (
            int(item.get("width", 0) or 0) * int(item.get("height", 0) or 0),
            int(item.get("file_size", 0) or 0),
        ),
    )


class ImageIngestor:
    """Resolve, download and clean up transient image files."""

    def __init__(
        self,
        client: TelegramClient,
        *,
        storage_dir: Path,
        max_size_mb: int = 20,
    ):
        self.client = client
        self.storage_dir = Path(storage_dir).expanduser()
        self.max_size_bytes = max(1, int(max_size_mb)) * 1024 * 1024

    @contextmanager
    def ingest(self, chat_id: int, file_id: str) -> Iterator[Path]:
        """Yield a local copy of the file and delete it afterwards."""
        target = self.download(chat_id, file_id)
        try:
            yield target
        finally:
            _remove_quietly(target)

    def download(self, chat_id: int, file_id: str) -> Path:
        try:
            remote_path = self.client.get_file(file_id)
        except TelegramAPIError as exc:
            logger.warning("getFile failed for chat=%s: %s", chat_id, exc)
            raise DownloadError("Failed to get image info.") from exc

        target = self._target_path(chat_id, remote_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._stream_to(self.client.file_url(remote_path), target)
        except (requests.RequestException, OSError, ValueError, DownloadError) as exc:
            _remove_quietly(target)
            logger.warning("image download failed for chat=%s: %s", chat_id, _safe(exc, self.client.token))
            if isinstance(exc, DownloadError):
                raise
            raise DownloadError("Failed to download image.") from exc
        logger.debug("downloaded image for chat=%s to %s", chat_id, target)
        return target

    def _target_path(self, chat_id: int, remote_path: str) -> Path:
        suffix = Path(str(remote_path)).suffix.lower()
        if suffix not in ALLOWED_EXTENSIONS:
            suffix = DEFAULT_EXTENSION
        name = f"telecode_img_{chat_id}_{int(time.time())}_{next(_sequence)}{suffix}"
        return self.storage_dir / name

    def _stream_to(self, url: str, target: Path) -> None:
        with self.client.session.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SECONDS) as response:
            response.raise_for_status()
            content_length = response.headers.get("Content-Length")
            if content_length and int(content_length) > self.max_size_bytes:
                raise DownloadError(
                    f"Image exceeds size limit ({content_length} bytes > {self.max_size_bytes})."
                )
            written = 0
            with target.open("wb") as handle:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
                    if not chunk:
                        continue
                    written += len(chunk)
                    if written > self.max_size_bytes:
                        raise DownloadError(
                            f"Image exceeds size limit ({written} bytes > {self.max_size_bytes})."
                        )
                    handle.write(chunk)


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.debug("failed to delete transient image '%s': %s", path, exc)


def _safe(exc: Exception, token: str) -> str:
    text = str(exc)
    return text.replace(token, "<token>") if token else text
