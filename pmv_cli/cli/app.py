"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import typer
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.text import Text

from pmv_cli import __version__
from pmv_cli.api.client import VaultAPIClient
from pmv_cli.core.session import VaultSession
from pmv_cli.core.task_monitor import TaskMonitor, watch_for_keypress
from pmv_cli.exceptions import AssetError
from pmv_cli.media.downloader import Downloader
from pmv_cli.media.encryption import EncryptionWaiter
from pmv_cli.media.uploader import BytesSource, FileSource, Uploader
from pmv_cli.models.config import ClientSettings
from pmv_cli.models.vault import SessionDuration, Task
from pmv_cli.storage.config_manager import ConfigManager
from pmv_cli.utils.assets import THUMBNAIL, parse_asset, select_asset_path
from pmv_cli.utils.formatting import default_output_name, format_size
from pmv_cli.utils.identifier import identifier_to_string, parse_identifier
from pmv_cli.utils.user_input import ask_confirmation
from pmv_cli.utils.vault_uri import parse_vault_uri

from .formatters import format_task_line, print_config, print_media_table
from .progress_manager import (
    download_progress,
    encryption_progress,
    upload_progress,
)

# Logs, prompts and progress go to stderr; stdout only carries command results
console = Console(stderr=True)
output_console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("pmv_cli")

app = typer.Typer(
    name="pmv-cli",
    help=(
        "Command line client for PersonalMediaVault. Use 'pmv-cli <command>"
        " --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)
media_app = typer.Typer(help="Upload, download and inspect media assets.")
album_app = typer.Typer(help="Manage albums.")
task_app = typer.Typer(help="Follow server-side tasks.")
app.add_typer(media_app, name="media")
app.add_typer(album_app, name="album")
app.add_typer(task_app, name="task")


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    vault_url: Optional[str] = typer.Option(
        None,
        "--vault-url",
        "-u",
        envvar="PMV_URL",
        help=(
            "Vault URL. Use http(s)://user:password@host to log in for this"
            " command, or a session URL printed by 'login'."
        ),
    ),
    debug: bool = typer.Option(
        False, "--debug", "-d", help="Log every request sent to the vault."
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Answer yes to every confirmation prompt."
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """PersonalMediaVault CLI"""
    if version:
        console.print(f"[bold]pmv-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    cli_options = {
        "vault_url": vault_url,
        "debug": debug or None,
        "auto_confirm": yes or None,
    }
    settings = ConfigManager().load_config(cli_options)

    if settings.debug:
        logging.getLogger("pmv_cli").setLevel("DEBUG")
    ctx.obj = settings

    if show_config:
        print_config(
            console,
            Path(settings.config_path),
            settings.model_dump(exclude={"config_path"}),
        )
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _settings(ctx: typer.Context) -> ClientSettings:
    return ctx.obj if isinstance(ctx.obj, ClientSettings) else ClientSettings()


@asynccontextmanager
async def _open_vault(
    settings: ClientSettings,
) -> AsyncIterator[tuple[VaultAPIClient, VaultSession]]:
    """Logs in for the duration of a command, logging out afterwards if needed."""
    uri = parse_vault_uri(settings.vault_url)
    async with VaultAPIClient(settings) as api_client, VaultSession(
        api_client, uri
    ) as session:
        yield api_client, session


@app.command()
def login(
    ctx: typer.Context,
    username: Optional[str] = typer.Option(
        None, "--username", "-U", help="Username. Asked for if not in the vault URL."
    ),
    duration: Optional[SessionDuration] = typer.Option(
        None, "--duration", "-D", help="How long the session should last."
    ),
):
    """Log into the vault and print a session URL for later commands."""
    settings = _settings(ctx)

    async def _login_async() -> str:
        uri = parse_vault_uri(settings.vault_url)
        async with VaultAPIClient(settings) as api_client:
            session = VaultSession(
                api_client,
                uri,
                username=username,
                duration=duration.value if duration else None,
                logout_after_operation=False,
            )
            session_uri = await session.resolve()
        return session_uri.to_url_string()

    session_url = asyncio.run(_login_async())
    log.info("[green]✓ Logged in. Use this URL as --vault-url or PMV_URL:[/green]")
    typer.echo(session_url)


@app.command()
def logout(ctx: typer.Context):
    """Close the session of a session URL."""
    settings = _settings(ctx)

    async def _logout_async():
        uri = parse_vault_uri(settings.vault_url)
        async with VaultAPIClient(settings) as api_client:
            await api_client.authenticator.release(uri)

    asyncio.run(_logout_async())
    log.info("[green]✓ Logged out.[/green]")


@media_app.command("get")
def media_get(
    ctx: typer.Context,
    media: str = typer.Argument(..., help="Media identifier, e.g. #12."),
):
    """Show the metadata of a media asset."""
    settings = _settings(ctx)
    media_id = parse_identifier(media, "media")

    async def _get_async():
        async with _open_vault(settings) as (api_client, session):
            metadata = await api_client.get_media(session.session_uri, media_id)
            print_media_table(output_console, metadata, session.session_uri)

    asyncio.run(_get_async())


@media_app.command("upload")
def media_upload(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="File to upload."),
    title: Optional[str] = typer.Option(
        None, "--title", help="Title of the media. Defaults to the file name."
    ),
    album: Optional[str] = typer.Option(
        None, "--album", help="Album to add the media to."
    ),
    skip_encryption: bool = typer.Option(
        False,
        "--skip-encryption",
        help="Do not wait for the vault to finish encrypting the upload.",
    ),
):
    """Upload a media asset, then wait for it to be encrypted."""
    settings = _settings(ctx)
    album_id = parse_identifier(album, "album") if album is not None else None

    async def _upload_async() -> int:
        async with _open_vault(settings) as (api_client, session):
            uri = session.session_uri
            result = await Uploader(api_client).upload_media(
                uri,
                path,
                upload_progress(console, path.name),
                title=title,
                album=album_id,
                skip_encryption=skip_encryption,
            )
            log.info(f"Upload completed: {path}")

            if not skip_encryption:
                await EncryptionWaiter(api_client).wait_until_ready(
                    uri, result.media_id, encryption_progress(console)
                )
                log.info("Encryption completed.")
        return result.media_id

    media_id = asyncio.run(_upload_async())
    log.info(f"[green]✓ Media uploaded: {identifier_to_string(media_id)}[/green]")
    typer.echo(identifier_to_string(media_id))


@media_app.command("download")
def media_download(
    ctx: typer.Context,
    media: str = typer.Argument(..., help="Media identifier, e.g. #12."),
    asset: str = typer.Option(
        "original",
        "--asset",
        "-a",
        help="original, thumbnail or resolution:WxH[:FPS].",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output file. Defaults to the asset file name."
    ),
    print_link: bool = typer.Option(
        False, "--print-link", help="Print a download link instead of downloading."
    ),
):
    """Download an asset of a media item."""
    settings = _settings(ctx)
    media_id = parse_identifier(media, "media")
    selector = parse_asset(asset)

    async def _download_async() -> Optional[str]:
        async with _open_vault(settings) as (api_client, session):
            uri = session.session_uri
            metadata = await api_client.get_media(uri, media_id)
            asset_path = select_asset_path(metadata, selector)

            if print_link:
                return uri.resolve_asset(asset_path)

            destination = output or Path(default_output_name(asset_path))
            if destination.exists() and not settings.auto_confirm:
                log.warning(f"The file {destination} already exists.")
                if not await ask_confirmation("Do you want to overwrite it?"):
                    return None

            size = await Downloader(api_client).download(
                uri, asset_path, destination, download_progress(console, destination.name)
            )
            log.info(f"Download completed: {destination} ({format_size(size)})")
            return str(destination)

    result = asyncio.run(_download_async())
    if result is None:
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Exit(code=1)
    typer.echo(result)


@media_app.command("set-thumbnail")
def media_set_thumbnail(
    ctx: typer.Context,
    media: str = typer.Argument(..., help="Media identifier, e.g. #12."),
    path: Path = typer.Argument(..., help="Image file to use as thumbnail."),
):
    """Change the thumbnail of a media item."""
    settings = _settings(ctx)
    media_id = parse_identifier(media, "media")

    async def _thumbnail_async() -> str:
        async with _open_vault(settings) as (api_client, session):
            response = await Uploader(api_client).change_media_thumbnail(
                session.session_uri,
                media_id,
                FileSource(path),
                upload_progress(console, path.name),
            )
            return response.url

    url = asyncio.run(_thumbnail_async())
    log.info(
        f"[green]✓ Updated the thumbnail of media {identifier_to_string(media_id)}"
        "[/green]"
    )
    typer.echo(url)


@album_app.command("set-thumbnail")
def album_set_thumbnail(
    ctx: typer.Context,
    album: str = typer.Argument(..., help="Album identifier, e.g. #3."),
    path: Optional[Path] = typer.Argument(None, help="Image file to use as thumbnail."),
    from_media: Optional[str] = typer.Option(
        None,
        "--from-media",
        help="Use the thumbnail of this media item instead of a file.",
    ),
):
    """Change the thumbnail of an album, from a file or from a media item."""
    settings = _settings(ctx)
    album_id = parse_identifier(album, "album")
    if (path is None) == (from_media is None):
        raise AssetError("Provide either a thumbnail PATH or --from-media, not both.")
    media_id = parse_identifier(from_media, "media") if from_media else None

    async def _thumbnail_async() -> str:
        async with _open_vault(settings) as (api_client, session):
            uri = session.session_uri
            uploader = Uploader(api_client)

            if media_id is None:
                source = FileSource(path)
            else:
                metadata = await api_client.get_media(uri, media_id)
                thumbnail_path = select_asset_path(metadata, THUMBNAIL)
                filename = default_output_name(thumbnail_path)
                data = await Downloader(api_client).download_bytes(
                    uri, thumbnail_path, download_progress(console, filename)
                )
                source = BytesSource(data, filename)

            response = await uploader.change_album_thumbnail(
                uri, album_id, source, upload_progress(console, source.filename)
            )
            return response.url

    url = asyncio.run(_thumbnail_async())
    log.info(
        f"[green]✓ Updated the thumbnail of album {identifier_to_string(album_id)}"
        "[/green]"
    )
    typer.echo(url)


@task_app.command("wait")
def task_wait(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task identifier, e.g. #7."),
):
    """Wait for a task to finish, showing its status. Press Enter to stop."""
    settings = _settings(ctx)
    task_id = parse_identifier(task, "task")
    task_str = identifier_to_string(task_id)

    async def _wait_async() -> Optional[bool]:
        loop = asyncio.get_running_loop()
        stop_requested = asyncio.Event()

        async with _open_vault(settings) as (api_client, session):
            # Started after login so it cannot swallow credential prompts
            watch_for_keypress(lambda: loop.call_soon_threadsafe(stop_requested.set))
            monitor = TaskMonitor(api_client)
            with Live(
                Text(f"Waiting for task {task_str}..."),
                console=console,
                refresh_per_second=4,
            ) as live:

                def _show(status: Task) -> None:
                    live.update(Text(format_task_line(status)))

                wait_task = asyncio.create_task(
                    monitor.wait_for_task(session.session_uri, task_id, _show)
                )
                stop_task = asyncio.create_task(stop_requested.wait())
                done, _ = await asyncio.wait(
                    {wait_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
                )
                stop_task.cancel()

                if wait_task not in done:
                    wait_task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await wait_task
                    return None
                return wait_task.result()

    found = asyncio.run(_wait_async())
    if found is None:
        console.print("[yellow]Stopped waiting.[/yellow]")
    elif found:
        console.print(f"[green]✓ Task {task_str} completed![/green]")
    else:
        console.print(f"Task {task_str} not found, or already completed.")
