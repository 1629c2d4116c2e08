"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pmv_cli.exceptions import (
    ApiError,
    DecodeError,
    PmvCliError,
    StatusError,
)
from pmv_cli.models.vault import MediaMetadata, Task
from pmv_cli.utils.formatting import format_duration
from pmv_cli.utils.identifier import identifier_to_string
from pmv_cli.utils.vault_uri import VaultURI

ISSUES_URL = "https://github.com/AgustinSRG/pmv-cli/issues"


def describe_error(error: PmvCliError) -> str:
    """One-line description of an error, in the wording the vault tools use."""
    if isinstance(error, ApiError):
        return (
            f"API Error | Status: {error.status} | Code: {error.code}"
            f" | Message: {error.message}"
        )
    if isinstance(error, DecodeError):
        return f"Error parsing the body: {error.message}"
    return f"Error: {error}"


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    if isinstance(error, PmvCliError):
        error_msg = describe_error(error)
    else:
        error_msg = str(error)

    suggestions_map = {
        "AuthenticationError": [
            "• Check the username and password you provided.",
            "• Make sure the vault URL points to the right vault.",
        ],
        "VaultURIParseError": [
            "• The vault URL must look like http(s)://[user[:password]@]host[:port].",
            "• Check the --vault-url option and the PMV_URL environment variable.",
        ],
        "InvalidIdentifierError": [
            "• Identifiers are numbers, optionally prefixed with '#', e.g. #12.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run with --show-config to see the file in use.",
        ],
        "SessionStateError": [
            "• Log in first with `pmv-cli login` and use the printed session URL.",
        ],
        "TransportError": [
            "• A network connection issue occurred.",
            "• Make sure the vault is running and reachable.",
        ],
        "FilesystemError": [
            "• Check that the path exists and that you have permission to use it.",
        ],
        "PollLimitError": [
            "• The vault is still working. Raise or remove `max_polls` to wait longer.",
        ],
    }

    if isinstance(error, StatusError) and error.status == 401:
        suggestions = ["• Log in again to get a new session URL."]
    elif isinstance(error, DecodeError):
        suggestions = [
            "• This may be caused by incompatibilities between the vault and this tool.",
            f"• If you are using the latest version, please report it: {ISSUES_URL}",
        ]
    else:
        suggestions = suggestions_map.get(
            error_type, ["• Run the command with --debug for detailed logs."]
        )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    if isinstance(error, DecodeError):
        content.add_row(Text(f"Body received: {error.raw_body}", style="dim"))
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(console: Console, config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding credentials in the vault URL."""
    content = ""
    for key, value in config_data.items():
        if key == "vault_url":
            value = _hide_url_secret(str(value))
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def _hide_url_secret(url: str) -> str:
    scheme, sep, rest = url.partition("://")
    credentials, at, host = rest.rpartition("@")
    if not sep or not at:
        return url
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:[hidden]@{host}" if user else f"{scheme}://[hidden]@{host}"


def print_media_table(console: Console, media: MediaMetadata, uri: VaultURI):
    """Displays the metadata of a media asset."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()

    table.add_row("ID:", identifier_to_string(media.id))
    table.add_row("Type:", media.type.to_type_string())
    table.add_row("Title:", media.title)
    if media.description:
        table.add_row("Description:", media.description)
    if media.duration:
        table.add_row("Duration:", format_duration(media.duration))
    if media.width and media.height:
        table.add_row("Size:", f"{media.width}x{media.height}")
    table.add_row(
        "Ready:",
        "[green]Yes[/green]" if media.ready else f"[yellow]No ({media.ready_p or 0}%)[/yellow]",
    )
    if media.thumbnail:
        table.add_row("Thumbnail:", uri.resolve_asset(media.thumbnail))
    if media.url:
        table.add_row("Original:", uri.resolve_asset(media.url))
    for resolution in media.resolutions:
        label = f"{resolution.width}x{resolution.height}"
        if resolution.fps:
            label += f":{resolution.fps}"
        if resolution.ready and resolution.url:
            value = uri.resolve_asset(resolution.url)
        else:
            value = "[yellow]Pending[/yellow]"
        table.add_row(f"{label}:", value)

    console.print(
        Panel(
            table,
            title=f"[bold]Media {identifier_to_string(media.id)}[/bold]",
            border_style="cyan",
            expand=False,
        )
    )


def format_task_line(task: Task) -> str:
    return (
        f"Task {identifier_to_string(task.id)} | Type: {task.type_string()}"
        f" | Media: {identifier_to_string(task.media_id)}"
        f" | Status: {task.status_string()}"
        f" | Remaining time (Estimated): {task.remaining_time_string()}"
    )
