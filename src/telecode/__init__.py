"""telecode - drive CLI coding assistants from Telegram chats."""

__version__ = "0.1.0"

def main() -> None:
    """Run the CLI entry point with lazy import."""
    from telecode.cli.main import main as cli_main

    cli_main()

__all__ = ["main", "__version__"]
