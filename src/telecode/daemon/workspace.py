"""Workspace definitions: bot credential bound to a working directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from telecode.daemon.backends import Backend


@dataclass(frozen=True)
class Workspace:
    """One configured bot/working-directory pair."""

    name: str
    working_dir: Path
    bot_token: str
    allowed_backends: tuple[Backend, ...] = tuple(Backend)
    allowed_chat_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def default_backend(self) -> Backend:
        return self.allowed_backends[0] if self.allowed_backends else Backend.CLAUDE

    def is_member(self, chat_id: int) -> bool:
        if not self.allowed_chat_ids:
            return True
        return int(chat_id) in self.allowed_chat_ids
