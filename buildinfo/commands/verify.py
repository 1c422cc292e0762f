from pathlib import Path

import typer

from buildinfo.core.decorators import handle_errors
from buildinfo.core.logging import console
from buildinfo.models.manifest import Manifest
from buildinfo.services.compare_service import explain_mismatch


@handle_errors
def main(
    actual_path: Path = typer.Argument(..., exists=True, dir_okay=False, help='Build-info to check'),
    expected_path: Path = typer.Argument(
        ..., exists=True, dir_okay=False,
        help='Expected build-info; its string fields are regular expressions',
    ),
):
    """
    Check that a build-info holds the expected modules.
    """
    actual = Manifest.from_json(actual_path.read_bytes())
    expected = Manifest.from_json(expected_path.read_bytes())
    problems = explain_mismatch(actual.modules, expected.modules)
    if problems:
        for problem in problems:
            console.print(f"[red]-[/] {problem}")
        raise typer.Exit(1)
    console.print('[green]Build-info matches the expectation.[/]')
