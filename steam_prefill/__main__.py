"""
Entry point for `steam-prefill` and `python -m steam_prefill`.

Maps application errors onto a readable panel and a process exit code.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from steam_prefill.cli.app import app
from steam_prefill.cli.formatters import format_error_with_suggestions
from steam_prefill.exceptions import FatalRunError, SteamPrefillError, UserCancelledError

EXIT_ERROR = 1
EXIT_FATAL = 2


def main() -> None:
    # Status glyphs need UTF-8 on Windows consoles
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    log = logging.getLogger("steam_prefill")
    console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError, UserCancelledError):
        console.print("\n[yellow]⚠️  Prefill cancelled.[/yellow]")
        sys.exit(0)
    except FatalRunError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(EXIT_FATAL)
    except SteamPrefillError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(EXIT_ERROR)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
