"""Turn a chat prompt into a backend invocation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from telecode.daemon.backends import BACKEND_SPECS, Backend, BackendSpec
from telecode.daemon.session_store import SessionStore

logger = logging.getLogger(__name__)
IMAGE_PROMPT_TEMPLATE = "{prompt}\n\nImage file: {path}"


@dataclass(frozen=True)
class Invocation:
    """Ready-to-run backend command."""

    backend: Backend
    argv: tuple[str, ...]
    working_dir: Path
    session_id: Optional[str] = None

    @property
    def executable(self) -> str:
        return self.argv[0]


class CommandBuilder:
    """Build invocations from the chat's active backend and session id."""

    def __init__(
        self,
        store: SessionStore,
        working_dir: Union[str, Path],
        *,
        executables: Optional[Mapping[str, str]] = None,
        specs: Optional[Mapping[Backend, BackendSpec]] = None,
    ):
        self.store = store
        self.working_dir = Path(working_dir).expanduser()
        self.executables = {
            str(key).strip().lower(): str(value).strip()
            for key, value in (executables or {}).items()
            if str(value or "").strip()
        }
        self.specs = dict(BACKEND_SPECS if specs is None else specs)

    def build(
        self,
        chat_id: int,
        prompt: str,
        image_path: str = "",
    ) -> Optional[Invocation]:
        """Return the invocation for this chat, or None if it cannot be built."""
        backend, session_id = self.store.get(chat_id)
        spec = self.specs.get(backend)
        if spec is None:
            logger.warning("chat=%s has no invocation template for %s", chat_id, backend)
            return None

        prompt_text = str(prompt or "")
        image_value = str(image_path or "").strip()
        if image_value and not spec.attachment_flag:
            prompt_text = IMAGE_PROMPT_TEMPLATE.format(prompt=prompt_text, path=image_value)

        argv: list[str] = [self.executables.get(backend.value, spec.executable)]
        argv.extend(spec.base_args)
        if not spec.prompt_last:
            if spec.prompt_flag:
                argv.append(spec.prompt_flag)
            argv.append(prompt_text)
        if session_id and spec.resume_flag:
            argv.extend([spec.resume_flag, session_id])
        if image_value and spec.attachment_flag:
            argv.extend([spec.attachment_flag, image_value])
        if spec.prompt_last:
            if spec.prompt_flag:
                argv.append(spec.prompt_flag)
            else:
                argv.append("--")
            argv.append(prompt_text)

        return Invocation(
            backend=backend,
            argv=tuple(argv),
            working_dir=self.working_dir,
            session_id=session_id,
        )
