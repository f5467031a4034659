"""
Defines the command-line interface for the client using Typer.
"""

import asyncio
import logging
import mimetypes
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import typer
from rich.logging import RichHandler

from bluesky_client import __version__
from bluesky_client.client import BlueSkyClient
from bluesky_client.exceptions import BlueSkyError, ConfigurationError
from bluesky_client.models.posts import ImageUpload, PostRef
from bluesky_client.storage.config_manager import ConfigManager

from .formatters import (
    console,
    format_error_with_suggestions,
    print_config,
    print_session,
    print_validation_table,
)

T = TypeVar("T")

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
        )
    ],
)
log = logging.getLogger("bluesky_client")

app = typer.Typer(
    name="bluesky-client",
    help="Post to BlueSky from the command line.",
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "bluesky-client"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """BlueSky command-line client"""
    if version:
        console.print(f"[bold]bluesky-client[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose == 1:
        log_level = "INFO"
    elif verbose >= 2:
        log_level = "DEBUG"
    log.setLevel(log_level)

    if show_config:
        config_manager = ConfigManager(CONFIG_FILE)
        try:
            print_config(CONFIG_FILE, config_manager.read_file())
        except ConfigurationError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _run(action: Callable[[BlueSkyClient], Awaitable[T]]) -> T:
    """Loads the config, logs in, runs ``action`` and always closes the client."""
    try:
        config, credentials = ConfigManager(CONFIG_FILE).load()
    except ConfigurationError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    if not credentials.is_complete:
        console.print(
            "[red]✗ No credentials configured.[/red] Run "
            "[cyan]bluesky-client init[/cyan] or set BLUESKY_IDENTIFIER and "
            "BLUESKY_PASSWORD."
        )
        raise typer.Exit(code=1)
    if config.enable_logging and log.level > logging.DEBUG:
        log.setLevel("DEBUG")

    async def _run_async() -> T:
        async with BlueSkyClient(config) as client:
            await client.create_session(credentials.identifier, credentials.password)
            return await action(client)

    try:
        return asyncio.run(_run_async())
    except BlueSkyError as e:
        console.print(format_error_with_suggestions(e))
        log.debug("Full traceback:", exc_info=True)
        raise typer.Exit(code=1) from e


@app.command()
def init(
    identifier: str = typer.Argument(..., help="Handle, DID or email address."),
    password: str = typer.Option(
        ...,
        "--password",
        "-p",
        prompt="App password",
        hide_input=True,
        help="An app password created under Settings → App Passwords.",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="PDS URL (defaults to https://bsky.social)."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite existing configuration without asking."
    ),
):
    """Store credentials in the configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings: Dict[str, Any] = {"identifier": identifier, "password": password}
    if base_url:
        settings["base_url"] = base_url
    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except ConfigurationError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")


@app.command()
def whoami():
    """Log in and show the session details."""

    async def _whoami(client: BlueSkyClient):
        return client.session.get_current_session()

    session = _run(_whoami)
    if session is not None:
        print_session(session)


def _read_images(paths: List[Path], alts: List[str]) -> List[ImageUpload]:
    if len(alts) > len(paths):
        console.print("[red]✗ More --alt values than --image values.[/red]")
        raise typer.Exit(code=1)
    uploads = []
    for index, path in enumerate(paths):
        content_type, _ = mimetypes.guess_type(path.name)
        if not content_type or not content_type.startswith("image/"):
            console.print(f"[red]✗ Not an image file: {path}[/red]")
            raise typer.Exit(code=1)
        uploads.append(
            ImageUpload(
                content=path.read_bytes(),
                content_type=content_type,
                alt_text=alts[index] if index < len(alts) else "",
            )
        )
    return uploads


@app.command()
def post(
    text: str = typer.Argument(..., help="Text of the post."),
    images: List[Path] = typer.Option(  # noqa: B008
        [],
        "--image",
        "-i",
        exists=True,
        dir_okay=False,
        readable=True,
        help="Attach an image (repeat for up to four).",
    ),
    alts: List[str] = typer.Option(  # noqa: B008
        [], "--alt", help="Alt text for each --image, in the same order."
    ),
    reply_to_uri: Optional[str] = typer.Option(
        None, "--reply-to-uri", help="at:// URI of the post to reply to."
    ),
    reply_to_cid: Optional[str] = typer.Option(
        None, "--reply-to-cid", help="CID of the post to reply to."
    ),
):
    """Publish a post, optionally with images or as a reply."""
    if bool(reply_to_uri) != bool(reply_to_cid):
        console.print("[red]✗ --reply-to-uri and --reply-to-cid go together.[/red]")
        raise typer.Exit(code=1)
    if images and reply_to_uri:
        console.print("[red]✗ Replies with images are not supported.[/red]")
        raise typer.Exit(code=1)
    uploads = _read_images(images, alts)

    async def _post(client: BlueSkyClient):
        if uploads:
            return await client.media.create_post_with_images(text, uploads)
        if reply_to_uri and reply_to_cid:
            return await client.posts.create_reply(
                PostRef(uri=reply_to_uri, cid=reply_to_cid), text
            )
        return await client.posts.create_text_post(text)

    try:
        result = _run(_post)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Posted:[/green] {result.uri}")
    console.print(f"[dim]cid: {result.cid}[/dim]")


@app.command()
def delete(uri: str = typer.Argument(..., help="at:// URI of the post to delete.")):
    """Delete one of your posts."""

    async def _delete(client: BlueSkyClient):
        await client.posts.delete_post(uri)

    try:
        _run(_delete)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Deleted {uri}[/green]")


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config, credentials = ConfigManager(CONFIG_FILE).load()
    except ConfigurationError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_validation_table(config, credentials.identifier)
    if not credentials.is_complete:
        console.print("[yellow]⚠️  Identifier or password is missing.[/yellow]")
        raise typer.Exit(code=1)
