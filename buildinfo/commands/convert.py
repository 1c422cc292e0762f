from pathlib import Path

import typer

from buildinfo.core.config import get_config
from buildinfo.core.decorators import handle_errors
from buildinfo.models.manifest import Manifest
from buildinfo.services.sbom_service import OutputFormat
from buildinfo.services.sbom_service import render


@handle_errors
def main(
    manifest_path: Path = typer.Argument(..., exists=True, dir_okay=False, help='Build-info JSON file'),
    output_format: str = typer.Option(
        'cyclonedx/json', '--format', help="'cyclonedx/xml' or 'cyclonedx/json'",
    ),
):
    """
    Convert a build-info file to a CycloneDX SBOM.
    """
    selected_format = OutputFormat.parse(output_format)
    manifest = Manifest.from_json(manifest_path.read_bytes())
    typer.echo(render(manifest, selected_format, get_config().manifest.requested_by_max_length))
