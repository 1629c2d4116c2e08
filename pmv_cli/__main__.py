"""
Main entry point for the pmv-cli application.
This module handles top-level setup, exception handling, and CLI invocation.
"""

import asyncio
import logging
import os
import sys

from rich.console import Console

from pmv_cli.cli.app import app
from pmv_cli.cli.formatters import format_error_with_suggestions
from pmv_cli.exceptions import PmvCliError


def main() -> None:
    """Main entry point function."""
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    log = logging.getLogger("pmv_cli")
    console = Console(stderr=True)

    # Click turns Ctrl+C and typer.Exit into sys.exit on its own
    try:
        app()
    except asyncio.CancelledError:
        console.print("\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        sys.exit(1)
    except PmvCliError as e:
        console.print()
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print()
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
