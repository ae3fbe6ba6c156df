"""Per-workspace routing of chat updates to commands and backend runs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from telecode.config import (
    COMMAND_TIMEOUT_SECONDS,
    DEFAULT_IMAGE_PROMPT,
    EXCLUSIVE_WORKING_DIR,
    IMAGE_MAX_SIZE_MB,
    IMAGE_STORAGE_DIR,
    RESPONSE_CHUNK_CHARS,
)
from telecode.daemon.chunking import prepare_chunks
from telecode.daemon.command_builder import CommandBuilder
from telecode.daemon.errors import DaemonUserError, TelegramAPIError
from telecode.daemon.image_ingestion import ImageIngestor, select_largest_photo
from telecode.daemon.process_runner import ProcessRunner
from telecode.daemon.session_store import SessionStore
from telecode.daemon.telegram_client import PARSE_MODE_MARKDOWN, TelegramClient
from telecode.daemon.workspace import Workspace

logger = logging.getLogger(__name__)

COMMAND_NEW = "/new"
COMMAND_STATUS = "/status"
COMMAND_CLI = "/cli"
COMMAND_STATS = "/stats"
COMMAND_START = "/start"
COMMAND_HELP = "/help"
BUILD_FAILED_MESSAGE = "❌ Failed to build command"
NEW_SESSION_MESSAGE = "✅ **New session started!**\n\nYou can now send your message."
HELP_TEXT = (
    "🤖 *telecode*\n\n"
    "Send any message to run it with the active CLI.\n"
    "Send a photo (optionally with a caption) to attach it.\n\n"
    "/new - start a new session\n"
    "/status - show workspace, CLI and session\n"
    "/cli [name] - show or switch the CLI ({choices})\n"
    "/stats - show usage statistics"
)


class WorkspaceRouter:
    """Dispatch one workspace's updates to command handlers or the backend."""

    def __init__(
        self,
        workspace: Workspace,
        client: TelegramClient,
        *,
        store: Optional[SessionStore] = None,
        builder: Optional[CommandBuilder] = None,
        runner: Optional[ProcessRunner] = None,
        ingestor: Optional[ImageIngestor] = None,
        executables: Optional[dict[str, str]] = None,
        chunk_chars: int = RESPONSE_CHUNK_CHARS,
        image_prompt: str = DEFAULT_IMAGE_PROMPT,
    ):
        self.workspace = workspace
        self.client = client
        self.store = store or SessionStore(
            default_backend=workspace.default_backend,
            allowed_backends=workspace.allowed_backends,
        )
        self.builder = builder or CommandBuilder(
            self.store,
            workspace.working_dir,
            executables=executables,
        )
        self.runner = runner or ProcessRunner(
            timeout_seconds=COMMAND_TIMEOUT_SECONDS,
            exclusive=EXCLUSIVE_WORKING_DIR,
        )
        self.ingestor = ingestor or ImageIngestor(
            client,
            storage_dir=Path(IMAGE_STORAGE_DIR),
            max_size_mb=IMAGE_MAX_SIZE_MB,
        )
        self.chunk_chars = int(chunk_chars)
        self.image_prompt = str(image_prompt or "").strip() or "Analyze this image"
        self._commands = {
            COMMAND_NEW: self.handle_new_session,
            COMMAND_STATUS: self.handle_status,
            COMMAND_STATS: self.handle_stats,
            COMMAND_START: self.handle_help,
            COMMAND_HELP: self.handle_help,
        }

    def handle_update(self, update: dict) -> None:
        """Handle one getUpdates entry."""
        message = update.get("message") or {}
        chat_id = (message.get("chat") or {}).get("id")
        if chat_id is None:
            return
        chat_id = int(chat_id)
        if not self.workspace.is_member(chat_id):
            logger.info(
                "workspace=%s ignored message from non-member chat=%s",
                self.workspace.name,
                chat_id,
            )
            return

        if message.get("photo"):
            self.handle_photo_message(chat_id, message)
            return

        text = str(message.get("text", "") or "").strip()
        if not text:
            return
        command = _command_token(text)
        if command == COMMAND_CLI:
            self.handle_cli(chat_id, text)
            return
        handler = self._commands.get(command or "")
        if handler is not None:
            handler(chat_id)
            return
        self.handle_message(chat_id, text)

    def handle_new_session(self, chat_id: int) -> None:
        self.store.new_session(chat_id)
        self._send(chat_id, NEW_SESSION_MESSAGE, parse_mode=PARSE_MODE_MARKDOWN)

    def handle_status(self, chat_id: int) -> None:
        backend, session_id = self.store.get(chat_id)
        status = (
            "📊 **Current Status**\n"
            f"- Workspace: `{self.workspace.name}`\n"
            f"- Working Dir: `{self.workspace.working_dir}`\n"
            f"- CLI: `{backend.value}`\n"
            f"- Session: `{session_id or '(none)'}`"
        )
        self._send(chat_id, status, parse_mode=PARSE_MODE_MARKDOWN)

    def handle_cli(self, chat_id: int, text: str) -> None:
        args = text.split()
        if len(args) == 1:
            backend = self.store.get_backend(chat_id)
            self._send(
                chat_id,
                f"📋 Current CLI: `{backend.value}`",
                parse_mode=PARSE_MODE_MARKDOWN,
            )
            return
        try:
            backend = self.store.set_backend(chat_id, args[1])
        except DaemonUserError as exc:
            self._send(chat_id, f"❌ {exc.user_message}")
            return
        self._send(
            chat_id,
            f"✅ CLI changed to: `{backend.value}` (session reset)",
            parse_mode=PARSE_MODE_MARKDOWN,
        )

    def handle_stats(self, chat_id: int) -> None:
        try:
            stats = self.store.get_stats(chat_id)
        except DaemonUserError as exc:
            self._send(chat_id, f"❌ {exc.user_message}")
            return
        self._send(
            chat_id,
            f"📊 **Statistics**\n```\n{stats}\n```",
            parse_mode=PARSE_MODE_MARKDOWN,
        )

    def handle_help(self, chat_id: int) -> None:
        choices = " | ".join(item.value for item in self.store.allowed_backends)
        self._send(chat_id, HELP_TEXT.format(choices=choices), parse_mode=PARSE_MODE_MARKDOWN)

    def handle_photo_message(self, chat_id: int, message: dict) -> None:
        largest = select_largest_photo(message.get("photo") or [])
        if largest is None:
            self._send(chat_id, "❌ Failed to get image info")
            return
        prompt = str(message.get("caption", "") or "").strip() or self.image_prompt
        try:
            with self.ingestor.ingest(chat_id, largest["file_id"]) as image_path:
                self.handle_message(chat_id, prompt, str(image_path))
        except DaemonUserError as exc:
            self._send(chat_id, f"❌ {exc.user_message}")

    def handle_message(self, chat_id: int, prompt: str, image_path: str = "") -> None:
        """Run prompt with the chat's backend and deliver the output."""
        if not str(prompt or "").strip():
            return
        invocation = self.builder.build(chat_id, prompt, image_path)
        if invocation is None:
            self._send(chat_id, BUILD_FAILED_MESSAGE)
            return
        self.store.record_message(chat_id, image=bool(image_path))
        self._send_typing(chat_id)
        result = self.runner.run(invocation, self.workspace.working_dir)
        self.store.update_session_from_output(chat_id, invocation.backend, result.text)
        self.store.record_run(
            chat_id,
            output_chars=len(result.text),
            elapsed_seconds=result.elapsed_seconds,
            timed_out=result.timed_out,
        )
        self.send_chunks(chat_id, result.text)

    def send_chunks(self, chat_id: int, text: str) -> None:
        """Deliver text in order; the first delivery error propagates."""
        for chunk in prepare_chunks(text, self.chunk_chars):
            self._send(chat_id, chunk)

    def shutdown(self) -> None:
        self.runner.shutdown()

    def _send(self, chat_id: int, text: str, *, parse_mode: Optional[str] = None) -> None:
        self.client.send_message(chat_id, text, parse_mode=parse_mode)

    def _send_typing(self, chat_id: int) -> None:
        try:
            self.client.send_chat_action(chat_id)
        except TelegramAPIError as exc:
            logger.debug("typing indicator failed for chat=%s: %s", chat_id, exc)


def _command_token(text: str) -> Optional[str]:
    if not text.startswith("/"):
        return None
    token = text.split(maxsplit=1)[0].lower()
    return token.split("@", 1)[0]
