"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bluesky_client.exceptions import BlueSkyError, RateLimitError
from bluesky_client.models.config import ClientConfig
from bluesky_client.models.session import Session

console = Console()

SECRET_KEYS = {"password"}


def format_error_with_suggestions(
    error: Exception, context: Optional[dict] = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__

    suggestions_map = {
        "AuthError": [
            "• Check the identifier and app password in your configuration.",
            "• App passwords can be revoked; create a new one in Settings.",
            "• Run `bluesky-client init --force` to store new credentials.",
        ],
        "RateLimitError": [
            "• The server is rate limiting this account.",
            "• Wait before retrying.",
        ],
        "GenericApiError": [
            "• The PDS rejected the request or could not be reached.",
            "• Check `base_url` and your internet connection.",
            "• Run the command with -vv for detailed logs.",
        ],
        "ConfigurationError": [
            "• Run `bluesky-client validate` to see which value is wrong.",
        ],
    }
    suggestions = list(
        suggestions_map.get(error_type, ["• Run the command with -vv for detailed logs."])
    )
    if isinstance(error, RateLimitError):
        suggestions.append(f"• The server asked to wait {error.retry_after} seconds.")

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(str(error))
    if isinstance(error, BlueSkyError) and error.api_error_code:
        error_text.append(f" ({error.api_error_code})", style="dim")

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        box=box.ROUNDED,
    )


def print_session(session: Session) -> None:
    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Handle", session.account_handle)
    table.add_row("DID", session.account_id)
    table.add_row("Issued at", session.issued_at.isoformat(timespec="seconds"))
    console.print(Panel(table, title="[bold]Current Session[/bold]", box=box.ROUNDED))


def print_config(config_file: Path, values: Dict[str, Any]) -> None:
    """Shows the effective configuration with secrets masked."""
    table = Table(title=f"Configuration ({config_file})", box=box.ROUNDED)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in values.items():
        if key in SECRET_KEYS and value:
            value = "********"
        table.add_row(key, str(value))
    console.print(table)


def print_validation_table(config: ClientConfig, identifier: str) -> None:
    table = Table(title="Configuration Check", box=box.ROUNDED)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_column("Status", justify="center")

    ok, missing = "[green]✓[/green]", "[red]✗[/red]"
    table.add_row("identifier", identifier or "-", ok if identifier else missing)
    table.add_row("base_url", config.base_url, ok)
    table.add_row("timeout_seconds", str(config.timeout_seconds), ok)
    table.add_row("auto_refresh_tokens", str(config.auto_refresh_tokens), ok)
    table.add_row(
        "token_refresh_after_seconds", str(config.token_refresh_after_seconds), ok
    )
    table.add_row(
        "retries",
        f"{config.max_retries} ({config.retry_initial_delay_ms}-"
        f"{config.retry_max_delay_ms} ms)",
        ok,
    )
    console.print(table)
