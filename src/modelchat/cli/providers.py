"""Engine factory functions for CLI.

Centralizes creation of the engine from environment variables.
Hides configuration details from command implementations.
"""

from rich.console import Console

from ..config import Settings
from ..engine import ChatEngine
from ..logs import configure_logging

# Default console for output
_console = Console()


def get_settings(console: Console | None = None) -> Settings:
    """Read settings from the environment and set up logging.

    Raises:
        SystemExit: If a setting has an invalid value
    """
    import typer
    from pydantic import ValidationError

    con = console or _console
    try:
        settings = Settings.from_env()
    except (ValidationError, ValueError) as e:
        con.print(f"[red]Error: invalid configuration: {e}[/red]")
        raise typer.Exit(code=1)

    configure_logging(settings.log_level)
    return settings


def get_engine(console: Console | None = None) -> ChatEngine:
    """Create a chat engine from environment variables.

    Environment variables:
        See ``Settings.from_env``. With MODELCHAT_TRANSPORT=direct,
        GEMINI_API_KEY is needed for the gemini provider and
        CUSTOM_SERVER_URL for the custom provider.
    """
    con = console or _console
    settings = get_settings(con)

    if settings.transport == "direct" and settings.provider == "gemini" and not settings.gemini_api_key:
        con.print("[yellow]Warning: GEMINI_API_KEY not set, direct Gemini calls will fail[/yellow]")

    return ChatEngine(settings)
