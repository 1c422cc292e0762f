"""One command per package manager: collect, assemble and print the manifest."""
import time
from pathlib import Path

import structlog
import typer

from buildinfo.__version__ import __version__
from buildinfo.collectors import COLLECTORS
from buildinfo.core.config import get_config
from buildinfo.core.decorators import handle_errors
from buildinfo.models.manifest import Manifest
from buildinfo.services.build_service import BuildInfoService
from buildinfo.services.sbom_service import OutputFormat
from buildinfo.services.sbom_service import render

logger = structlog.get_logger('collect_command')

AGENT_NAME = 'buildinfo'


def apply_env_filters(manifest: Manifest) -> None:
    config = get_config().manifest
    manifest.include_env(*config.env_include)
    manifest.exclude_env(*config.env_exclude)


def collect(
    ecosystem: str,
    path: Path,
    module_id: str,
    build_name: str | None,
    build_number: str | None,
    project: str,
    threads: int | None,
    output_format: str | None,
    collect_env: bool,
) -> str:
    """Runs a collector inside a throwaway build and returns the rendered output."""
    # Validated before any package manager runs
    selected_format = OutputFormat.parse(output_format)
    collector = COLLECTORS[ecosystem](path, module_id=module_id, threads=threads)
    build_name = build_name or collector.project_dir.name
    build_number = build_number or str(int(time.time()))

    build = BuildInfoService().get_or_create_build(build_name, build_number, project)
    build.agent_name = AGENT_NAME
    build.agent_version = __version__
    build.build_agent_version = __version__
    try:
        if collect_env:
            build.collect_env()
        build.add_module(collector.collect())
        manifest = build.to_manifest()
    finally:
        build.clean()

    apply_env_filters(manifest)
    logger.debug('Rendering manifest', build=build_name, number=build_number, format=str(selected_format))
    return render(manifest, selected_format, get_config().manifest.requested_by_max_length)


def make_command(ecosystem: str):
    @handle_errors
    def main(
        path: Path = typer.Option(Path('.'), '--path', help='Project directory'),
        module_id: str = typer.Option('', '--module', help='Module id, detected from the project when omitted'),
        build_name: str = typer.Option(None, '--build-name', help='Build name (default: project directory name)'),
        build_number: str = typer.Option(None, '--build-number', help='Build number (default: current epoch seconds)'),
        project: str = typer.Option('', '--project', help='Project key the build belongs to'),
        threads: int = typer.Option(None, '--threads', help='Number of concurrent dependency workers'),
        output_format: str = typer.Option(
            None, '--format', help="Output format: 'cyclonedx/xml' or 'cyclonedx/json' (default: build-info JSON)",
        ),
        collect_env: bool = typer.Option(False, '--collect-env', help='Record environment variables as build properties'),
    ):
        typer.echo(
            collect(
                ecosystem, path, module_id, build_name, build_number,
                project, threads, output_format, collect_env,
            ),
        )

    main.__doc__ = f"Collect the {ecosystem} dependencies of a project and print its build-info."
    return main
