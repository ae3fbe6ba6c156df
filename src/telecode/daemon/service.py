"""Foreground manager: polls every workspace bot and dispatches per chat."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional, Sequence

from telecode.config import (
    BACKEND_EXECUTABLES,
    POLL_RETRY_SECONDS,
    POLL_TIMEOUT_SECONDS,
    TELEGRAM_API_BASE,
)
from telecode.daemon.errors import DaemonUserError, TelegramAPIError
from telecode.daemon.router import WorkspaceRouter
from telecode.daemon.telegram_client import TelegramClient
from telecode.daemon.workspace import Workspace

logger = logging.getLogger(__name__)
WORKER_IDLE_SECONDS = 300.0


class Manager:
    """Coordinates workspace routers, polling threads and per-chat workers."""

    def __init__(
        self,
        workspaces: Sequence[Workspace],
        *,
        client_factory: Optional[Callable[[Workspace], TelegramClient]] = None,
        router_factory: Optional[Callable[[Workspace, TelegramClient], WorkspaceRouter]] = None,
        poll_timeout: int = POLL_TIMEOUT_SECONDS,
        poll_retry_seconds: float = POLL_RETRY_SECONDS,
    ):
        if not workspaces:
            raise DaemonUserError(
                "No workspaces are configured.",
                hint="Add a [[workspaces]] table to telecode.toml.",
            )
        client_factory = client_factory or _default_client
        router_factory = router_factory or _default_router
        self.routers: dict[str, WorkspaceRouter] = {}
        for workspace in workspaces:
            client = client_factory(workspace)
            self.routers[workspace.name] = router_factory(workspace, client)
        self.poll_timeout = int(poll_timeout)
        self.poll_retry_seconds = float(poll_retry_seconds)
        self._stop_event = threading.Event()
        self._poll_threads: list[threading.Thread] = []
        self._chat_queues: dict[tuple[str, int], queue.Queue[Callable[[], None]]] = {}
        self._chat_workers: dict[tuple[str, int], threading.Thread] = {}
        self._chat_workers_lock = threading.Lock()

    def start(self) -> None:
        """Start one polling thread per workspace."""
        for name, router in self.routers.items():
            thread = threading.Thread(
                target=self._poll_loop,
                args=(name,),
                daemon=True,
                name=f"telecode-poll-{name}",
            )
            thread.start()
            self._poll_threads.append(thread)
            logger.info(
                "workspace=%s polling started (dir=%s)",
                name,
                router.workspace.working_dir,
            )

    def run_foreground(self) -> None:
        self.start()
        try:
            while not self._stop_event.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            logger.info("interrupted; shutting down")
        finally:
            self.stop()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop polling and terminate in-flight backend processes."""
        self._stop_event.set()
        for router in self.routers.values():
            router.shutdown()
        for thread in self._poll_threads:
            if thread is not threading.current_thread():
                thread.join(timeout=timeout)
        self._poll_threads.clear()

    def dispatch(self, workspace_name: str, update: dict) -> None:
        """Queue one update on its chat worker."""
        router = self.routers.get(workspace_name)
        if router is None:
            logger.warning("update for unknown workspace=%s dropped", workspace_name)
            return
        chat_id = _update_chat_id(update)
        if chat_id is None:
            logger.debug("workspace=%s ignored update without chat", workspace_name)
            return

        def _task() -> None:
            router.handle_update(update)

        self._enqueue_for_chat((workspace_name, chat_id), _task)

    def _poll_loop(self, workspace_name: str) -> None:
        router = self.routers[workspace_name]
        offset: Optional[int] = None
        while not self._stop_event.is_set():
            try:
                updates = router.client.get_updates(offset=offset, timeout=self.poll_timeout)
            except TelegramAPIError as exc:
                logger.warning(
                    "workspace=%s getUpdates failed: %s; retrying in %ss",
                    workspace_name,
                    exc,
                    self.poll_retry_seconds,
                )
                self._stop_event.wait(self.poll_retry_seconds)
                continue
            for update in updates:
                update_id = update.get("update_id")
                if update_id is not None:
                    offset = int(update_id) + 1
                self.dispatch(workspace_name, update)

    def _enqueue_for_chat(self, key: tuple[str, int], task: Callable[[], None]) -> None:
        with self._chat_workers_lock:
            chat_queue = self._chat_queues.get(key)
            if chat_queue is None:
                chat_queue = queue.Queue()
                self._chat_queues[key] = chat_queue
            chat_queue.put(task)
            worker = self._chat_workers.get(key)
            if worker is None or not worker.is_alive():
                worker = threading.Thread(
                    target=self._chat_worker_loop,
                    args=(key, chat_queue),
                    daemon=True,
                    name=f"telecode-{key[0]}-{key[1]}",
                )
                self._chat_workers[key] = worker
                worker.start()

    def _chat_worker_loop(
        self,
        key: tuple[str, int],
        chat_queue: queue.Queue[Callable[[], None]],
    ) -> None:
        while True:
            try:
                task = chat_queue.get(timeout=WORKER_IDLE_SECONDS)
            except queue.Empty:
                with self._chat_workers_lock:
                    if chat_queue.empty():
                        self._chat_workers.pop(key, None)
                        self._chat_queues.pop(key, None)
                        return
                continue
            try:
                task()
            except TelegramAPIError as exc:
                logger.error("delivery failed for workspace=%s chat=%s: %s", key[0], key[1], exc)
            except Exception:
                logger.exception("failed to process update for workspace=%s chat=%s", key[0], key[1])
            finally:
                chat_queue.task_done()

    def wait_idle(self) -> None:
        """Block until every queued chat task has finished."""
        with self._chat_workers_lock:
            queues = list(self._chat_queues.values())
        for chat_queue in queues:
            chat_queue.join()


def _default_client(workspace: Workspace) -> TelegramClient:
    return TelegramClient(workspace.bot_token, api_base=TELEGRAM_API_BASE)


def _default_router(workspace: Workspace, client: TelegramClient) -> WorkspaceRouter:
    return WorkspaceRouter(workspace, client, executables=BACKEND_EXECUTABLES)


def _update_chat_id(update: dict) -> Optional[int]:
    message = update.get("message") or {}
    chat_id = (message.get("chat") or {}).get("id")
    if chat_id is None:
        return None
    try:
        return int(chat_id)
    except (TypeError, ValueError):
        return None
