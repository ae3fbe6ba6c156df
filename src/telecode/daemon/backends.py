"""Supported CLI backends and their invocation templates."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Pattern

from telecode.daemon.errors import UnsupportedBackendError

# Backends print this line to hand back their resumable session id.
GENERIC_SESSION_MARKER = re.compile(r"^\s*SESSION:\s*(\S+)\s*$", re.MULTILINE)


class Backend(str, Enum):
    CLAUDE = "claude"
    OPENCODE = "opencode"

    @classmethod
    def names(cls) -> tuple[str, ...]:
        return tuple(member.value for member in cls)

    @classmethod
    def parse(cls, value: object) -> "Backend":
        """Resolve a user-supplied backend name or raise UnsupportedBackendError."""
        if isinstance(value, Backend):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise UnsupportedBackendError(normalized, supported=cls.names())


@dataclass(frozen=True)
class BackendSpec:
    """How one backend is invoked and how it reports its session id."""

    executable: str
    base_args: tuple[str, ...] = ()
    prompt_flag: Optional[str] = None
    prompt_last: bool = False
    resume_flag: Optional[str] = None
    attachment_flag: Optional[str] = None
    session_patterns: tuple[Pattern[str], ...] = (GENERIC_SESSION_MARKER,)

    def find_session_id(self, output: str) -> Optional[str]:
        """Return the last session id marker found in output, if any."""
        text = str(output or "")
        found: Optional[tuple[int, str]] = None
        for pattern in self.session_patterns:
            for match in pattern.finditer(text):
                if found is None or match.start() >= found[0]:
                    found = (match.start(), match.group(1))
        return found[1] if found else None


BACKEND_SPECS: dict[Backend, BackendSpec] = {
    Backend.CLAUDE: BackendSpec(
        executable="claude",
        base_args=("-p",),
        prompt_last=True,
        resume_flag="--resume",
        session_patterns=(
            GENERIC_SESSION_MARKER,
            re.compile(r'^\s*"?session_id"?\s*[:=]\s*"?([\w-]+)"?,?\s*$', re.MULTILINE),
        ),
    ),
    Backend.OPENCODE: BackendSpec(
        executable="opencode",
        base_args=("run",),
        prompt_last=True,
        resume_flag="--session",
        attachment_flag="--file",
        session_patterns=(
            GENERIC_SESSION_MARKER,
            re.compile(r"^\s*Session(?: ID)?:\s*(ses_\S+)\s*$", re.MULTILINE),
        ),
    ),
}
