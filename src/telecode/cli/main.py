"""Command-line interface for telecode."""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import tomlkit
from rich.console import Console
from rich.table import Table

from telecode import __version__

logger = logging.getLogger(__name__)
DEFAULT_GENERATED_CONFIG = "telecode.toml"


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="telecode",
        description="Drive claude/opencode CLIs from Telegram chats.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="PATH",
        help="Extra TOML file merged over ~/.config/telecode/telecode.toml.",
    )
    parser.add_argument(
        "--generate-config",
        nargs="?",
        const=DEFAULT_GENERATED_CONFIG,
        metavar="PATH",
        help=f"Write an example configuration (default: ./{DEFAULT_GENERATED_CONFIG}) and exit.",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate configuration, list workspaces and exit.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log at DEBUG level and mirror logs to the console.",
    )
    parser.add_argument("--version", action="version", version=f"telecode {__version__}")
    return parser.parse_args(argv)


def generate_config(path: str) -> Path:
    """Write the bundled configuration with one example workspace."""
    from telecode.config.loader import bundled_config_text

    target = Path(path).expanduser()
    if target.exists():
        raise FileExistsError(f"{target} already exists")
    document = tomlkit.parse(bundled_config_text())
    workspace = tomlkit.table()
    workspace.add("name", "my-project")
    workspace.add("working_dir", str(Path.cwd()))
    workspace.add("bot_token_env", "TELECODE_BOT_TOKEN")
    workspace.add("allowed_backends", ["claude", "opencode"])
    workspace.add("allowed_chat_ids", tomlkit.array())
    workspaces = tomlkit.aot()
    workspaces.append(workspace)
    document.add("workspaces", workspaces)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(tomlkit.dumps(document), encoding="utf-8")
    return target


def show_workspaces(console: Console, workspaces: list) -> None:
    table = Table(title="Workspaces")
    table.add_column("Name")
    table.add_column("Working dir")
    table.add_column("CLIs")
    table.add_column("Chats")
    for workspace in workspaces:
        table.add_row(
            workspace.name,
            str(workspace.working_dir),
            ", ".join(item.value for item in workspace.allowed_backends),
            ", ".join(str(item) for item in sorted(workspace.allowed_chat_ids)) or "any",
        )
    console.print(table)


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    console = Console()

    if args.generate_config:
        try:
            target = generate_config(args.generate_config)
        except FileExistsError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            sys.exit(1)
        console.print(f"Example configuration written to [bold]{target}[/bold]")
        return

    if args.config:
        os.environ["TELECODE_CONFIG_FILE"] = str(Path(args.config).expanduser())

    # Config is read on import, after --config has been applied.
    from telecode.config import LOG_FILE, LOG_LEVEL, load_config, load_workspaces
    from telecode.daemon.errors import DaemonUserError
    from telecode.logger import generate_timestamped_log_path, setup_logging

    if args.verbose:
        setup_logging("DEBUG", generate_timestamped_log_path(LOG_FILE), console=True)
        logger.debug("Verbose mode enabled. Log level set to DEBUG.")
    else:
        setup_logging(LOG_LEVEL, LOG_FILE)

    try:
        workspaces = load_workspaces(load_config())
    except DaemonUserError as exc:
        console.print(f"[red]Error:[/red] {exc.user_message}")
        sys.exit(1)

    if args.check_config:
        show_workspaces(console, workspaces)
        return

    from telecode.daemon.service import Manager

    try:
        manager = Manager(workspaces)
    except DaemonUserError as exc:
        console.print(f"[red]Error:[/red] {exc.user_message}")
        sys.exit(1)
    show_workspaces(console, workspaces)
    console.print("telecode running; press Ctrl-C to stop.")
    manager.run_foreground()
