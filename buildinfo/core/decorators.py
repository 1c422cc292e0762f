import functools
from collections.abc import Callable
from typing import Any

import structlog
import typer

from buildinfo.core.errors import BuildInfoError
from buildinfo.core.errors import CollectorError
from buildinfo.core.logging import console
logger = structlog.get_logger('cli')


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turns failures of a CLI command into a message and an exit code."""
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except CollectorError as e:
            console.print(f"[bold red]Collection Error:[/] {e}")
            logger.debug('Collector failed', exc_info=True)
            raise typer.Exit(1)
        except BuildInfoError as e:
            console.print(f"[bold red]Error:[/] {e}")
            logger.debug('Build info error', exc_info=True)
            raise typer.Exit(1)
        except KeyboardInterrupt:
            console.print('\n[yellow]Operation cancelled by user.[/]')
            raise typer.Exit(130)
        except Exception as e:
            console.print(f"[bold red]Unexpected Error:[/] {e}")
            logger.exception('Unexpected error')
            raise typer.Exit(1)
    return wrapper
