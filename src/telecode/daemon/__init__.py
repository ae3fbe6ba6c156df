"""Daemon package for the Telegram transport."""

from __future__ import annotations

__all__ = ["Manager"]


def __getattr__(name: str):
    if name == "Manager":
        from telecode.daemon.service import Manager

        return Manager
    raise AttributeError(f"module 'telecode.daemon' has no attribute {name!r}")
