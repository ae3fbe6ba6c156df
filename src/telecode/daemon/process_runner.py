"""Run backend invocations as child processes in a workspace directory."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from telecode.daemon.command_builder import Invocation

logger = logging.getLogger(__name__)
TERMINATE_GRACE_SECONDS = 5.0
TIMEOUT_NOTICE = "⏱ Command timed out after {seconds:g}s and was terminated."


@dataclass(frozen=True)
class RunResult:
    """Captured combined output of one backend run."""

    text: str
    elapsed_seconds: float = 0.0
    timed_out: bool = False
    returncode: Optional[int] = None


class ProcessRunner:
    """Execute invocations, capturing stdout and stderr as one text."""

    def __init__(
        self,
        *,
        timeout_seconds: Optional[float] = None,
        exclusive: bool = False,
    ):
        timeout_value = float(timeout_seconds or 0)
        self.timeout_seconds: Optional[float] = timeout_value if timeout_value > 0 else None
        self.exclusive = bool(exclusive)
        self._run_lock = threading.Lock()
        self._active: set[subprocess.Popen] = set()
        self._active_lock = threading.Lock()
        self._shutdown = False

    def run_text(
        self,
        invocation: Invocation,
        working_dir: Optional[Union[str, Path]] = None,
    ) -> str:
        return self.run(invocation, working_dir).text

    def run(
        self,
        invocation: Invocation,
        working_dir: Optional[Union[str, Path]] = None,
    ) -> RunResult:
        """Run one invocation and return its captured output."""
        cwd = Path(working_dir or invocation.working_dir).expanduser()
        guard = self._run_lock if self.exclusive else nullcontext()
        with guard:
            return self._run(invocation, cwd)

    def _run(self, invocation: Invocation, cwd: Path) -> RunResult:
        if self._shutdown:
            return RunResult(text="Error: bridge is shutting down.")
        started = time.perf_counter()
        logger.info(
            "running %s in %s (resume=%s)",
            invocation.executable,
            cwd,
            bool(invocation.session_id),
        )
        try:
            process = subprocess.Popen(
                list(invocation.argv),
                cwd=str(cwd),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=True,
            )
        except (OSError, ValueError) as exc:
            logger.warning("failed to start %s: %s", invocation.executable, exc)
            return RunResult(
                text=f"Error: failed to start {invocation.executable}: {exc}",
                elapsed_seconds=time.perf_counter() - started,
            )

        with self._active_lock:
            self._active.add(process)
            stopping = self._shutdown
        if stopping:
            logger.info("shutdown started while launching pid=%s; terminating", process.pid)
            _terminate_process_tree(process)
        timed_out = False
        try:
            try:
                output, _ = process.communicate(timeout=self.timeout_seconds)
            except subprocess.TimeoutExpired:
                timed_out = True
                logger.warning(
                    "%s exceeded %ss; terminating pid=%s",
                    invocation.executable,
                    self.timeout_seconds,
                    process.pid,
                )
                _terminate_process_tree(process)
                output, _ = process.communicate()
        finally:
            with self._active_lock:
                self._active.discard(process)

        elapsed = time.perf_counter() - started
        text = str(output or "")
        if timed_out:
            notice = TIMEOUT_NOTICE.format(seconds=self.timeout_seconds)
            text = f"{text.rstrip()}\n\n{notice}".strip()
        logger.info(
            "%s finished rc=%s elapsed=%.1fs chars=%d",
            invocation.executable,
            process.returncode,
            elapsed,
            len(text),
        )
        return RunResult(
            text=text,
            elapsed_seconds=elapsed,
            timed_out=timed_out,
            returncode=process.returncode,
        )

    def shutdown(self) -> None:
        """Terminate every in-flight child process."""
        with self._active_lock:
            self._shutdown = True
            processes = list(self._active)
        for process in processes:
            logger.info("terminating in-flight child pid=%s", process.pid)
            _terminate_process_tree(process)


def _terminate_process_tree(process: subprocess.Popen) -> None:
    if process.poll() is not None:
        return
    _signal_group(process, signal.SIGTERM)
    try:
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
        return
    except subprocess.TimeoutExpired:
        pass
    _signal_group(process, getattr(signal, "SIGKILL", signal.SIGTERM))
    try:
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.error("child pid=%s did not exit after SIGKILL", process.pid)


def _signal_group(process: subprocess.Popen, sig: int) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(os.getpgid(process.pid), sig)
        else:
            process.send_signal(sig)
    except ProcessLookupError:
        return
    except OSError:
        logger.debug("failed to signal pid=%s", process.pid, exc_info=True)
