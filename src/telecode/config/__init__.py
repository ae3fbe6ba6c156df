"""Configuration constants and re-exports for telecode."""

import tempfile
from pathlib import Path

from telecode.config.loader import (
    _get_config_dir,
    backend_executables,
    load_config,
    load_workspaces,
)


# --- Initialize Configuration ---
_CONFIG = load_config()

# --- Expose Constants ---

# General
_gen = _CONFIG["general"]
LOG_LEVEL = _gen.get("log_level", "INFO")
LOG_FILE = _gen.get("log_file", "~/.config/telecode/logs/telecode.log")

# Daemon
_daemon = _CONFIG["daemon"]
RESPONSE_CHUNK_CHARS = int(_daemon.get("response_chunk_chars", 4000))
POLL_TIMEOUT_SECONDS = int(_daemon.get("poll_timeout_seconds", 30))
POLL_RETRY_SECONDS = float(_daemon.get("poll_retry_seconds", 5))
# 0 disables the deadline.
COMMAND_TIMEOUT_SECONDS = float(_daemon.get("command_timeout_seconds", 0) or 0)
EXCLUSIVE_WORKING_DIR = bool(_daemon.get("exclusive_working_dir", True))
IMAGE_STORAGE_DIR = Path(
    _daemon.get("image_storage_dir", "") or tempfile.gettempdir()
).expanduser()
IMAGE_MAX_SIZE_MB = int(_daemon.get("image_max_size_mb", 20))
DEFAULT_IMAGE_PROMPT = _daemon.get("default_image_prompt", "Analyze this image")
TELEGRAM_API_BASE = _daemon.get("telegram_api_base", "https://api.telegram.org")

# Backends
BACKEND_EXECUTABLES = backend_executables(_CONFIG)

CONFIG_DIR = _get_config_dir()

__all__ = [
    "BACKEND_EXECUTABLES",
    "COMMAND_TIMEOUT_SECONDS",
    "CONFIG_DIR",
    "DEFAULT_IMAGE_PROMPT",
    "EXCLUSIVE_WORKING_DIR",
    "IMAGE_MAX_SIZE_MB",
    "IMAGE_STORAGE_DIR",
    "LOG_FILE",
    "LOG_LEVEL",
    "POLL_RETRY_SECONDS",
    "POLL_TIMEOUT_SECONDS",
    "RESPONSE_CHUNK_CHARS",
    "TELEGRAM_API_BASE",
    "load_config",
    "load_workspaces",
]
