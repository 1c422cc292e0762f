"""Collection of build phases and their assembly into one manifest."""
import os
import time
from datetime import datetime
from pathlib import Path

import structlog

from buildinfo.core.config import get_config
from buildinfo.core.config import PathConfig
from buildinfo.core.errors import BuildNotFoundError
from buildinfo.core.storage import BuildStorage
from buildinfo.models.artifact import Artifact
from buildinfo.models.dependency import Dependency
from buildinfo.models.manifest import AffectedIssue
from buildinfo.models.manifest import BuildDetails
from buildinfo.models.manifest import ENV_PREFIX
from buildinfo.models.manifest import format_timestamp
from buildinfo.models.manifest import Issues
from buildinfo.models.manifest import Manifest
from buildinfo.models.manifest import Partial
from buildinfo.models.manifest import Vcs
from buildinfo.models.module import Module
from buildinfo.models.module import ModuleType
from buildinfo.services.merge_service import merge
from buildinfo.services.merge_service import merge_artifacts
from buildinfo.services.merge_service import merge_dependencies

logger = structlog.get_logger('build_service')


class Build:
    """A build run identified by name and number, collected in phases."""

    def __init__(self, build_name: str, build_number: str, project: str, storage: BuildStorage):
        self.build_name = build_name
        self.build_number = build_number
        self.project = project
        self.storage = storage
        # Applied by to_manifest() only, never persisted
        self.agent_name = ''
        self.agent_version = ''
        self.build_agent_version = ''
        self.principal = ''
        self.build_url = ''

    def save_partial(self, partial: Partial) -> None:
        partial.timestamp = time.time_ns() // 1_000_000
        self.storage.save_partial(partial)

    def collect_env(self) -> None:
        env = {f"{ENV_PREFIX}{key}": value for key, value in os.environ.items() if key}
        self.save_partial(Partial(env=env))

    def add_dependencies(self, module_id: str, module_type: str, dependencies: list[Dependency]) -> None:
        self.save_partial(
            Partial(module_id=module_id, module_type=module_type, dependencies=dependencies),
        )

    def add_artifacts(self, module_id: str, module_type: str, artifacts: list[Artifact]) -> None:
        self.save_partial(
            Partial(module_id=module_id, module_type=module_type, artifacts=artifacts),
        )

    def add_vcs(self, vcs_list: list[Vcs], issues: Issues | None = None) -> None:
        self.save_partial(Partial(vcs_list=vcs_list, issues=issues))

    def save_manifest(self, manifest: Manifest) -> None:
        """Stores a manifest produced elsewhere; it is merged in by to_manifest()."""
        self.storage.save_manifest(manifest)

    def add_module(self, module: Module) -> None:
        if module.dependencies:
            self.add_dependencies(module.id, module.type, module.dependencies)
        if module.artifacts:
            self.add_artifacts(module.id, module.type, module.artifacts)

    def to_manifest(self) -> Manifest:
        manifest = self._manifest_from_partials()
        manifest.agent.name = self.agent_name
        manifest.agent.version = self.agent_version
        manifest.build_agent.version = self.build_agent_version
        manifest.principal = self.principal
        manifest.build_url = self.build_url

        for generated in self.storage.load_manifests():
            merge(generated, manifest)
        return manifest

    def clean(self) -> None:
        self.storage.clean()

    def _manifest_from_partials(self) -> Manifest:
        details = self.storage.load_details()
        if details is None:
            build = f"build-name: <{self.build_name}> and build-number: <{self.build_number}>"
            if self.project:
                build += f" and project: <{self.project}>"
            raise BuildNotFoundError(
                'Failed to construct the build-info to be published. '
                f"This may be because there were no previous commands which collected build-info for {build}",
            )

        manifest = Manifest.new(self.build_name, self.build_number)
        manifest.started = format_timestamp(details.timestamp)

        partials = sorted(self.storage.load_partials(), key=lambda p: p.timestamp)
        modules: dict[str, Module] = {}
        issues = Issues()
        affected: dict[str, AffectedIssue] = {}
        for partial in partials:
            if partial.artifacts is not None:
                merge_artifacts(partial.artifacts, self._module_for(modules, partial).artifacts)
            elif partial.dependencies is not None:
                merge_dependencies(partial.dependencies, self._module_for(modules, partial).dependencies)
            elif partial.vcs_list is not None:
                manifest.vcs_list.extend(partial.vcs_list)
                if partial.issues is not None:
                    issues.tracker = partial.issues.tracker
                    issues.aggregate_build_issues = partial.issues.aggregate_build_issues
                    issues.aggregation_build_status = partial.issues.aggregation_build_status
                    for issue in partial.issues.affected_issues:
                        affected[issue.key] = issue
            elif partial.env is not None:
                manifest.properties.update(partial.env)
            elif partial.module_type == ModuleType.BUILD.value:
                self._module_for(modules, partial).checksum = partial.checksum

        # A tracker is mandatory for the issues section
        if issues.tracker is not None and issues.tracker.name:
            issues.affected_issues = list(affected.values())
            manifest.issues = issues

        manifest.modules = [
            module for module in modules.values()
            if module.artifacts or module.dependencies or not module.checksum.is_empty()
        ]
        return manifest

    def _module_for(self, modules: dict[str, Module], partial: Partial) -> Module:
        """Module collecting the phases saved under the partial's module id."""
        module = modules.get(partial.module_id)
        if module is None:
            module = Module(id=partial.module_id or self.build_name, type=partial.module_type)
            modules[partial.module_id] = module
        return module


class BuildInfoService:
    """Entry point for creating and resuming builds."""

    def __init__(self, home_dir: str | Path | None = None):
        self.paths = PathConfig(home_dir=Path(home_dir)) if home_dir else get_config().paths

    def get_or_create_build(self, build_name: str, build_number: str, project: str = '') -> Build:
        build_dir = self.paths.get_build_dir(build_name, build_number, project)
        storage = BuildStorage(build_dir)
        if not storage.exists():
            storage.save_details(BuildDetails(timestamp=datetime.now().astimezone()))
            logger.debug(
                'Created build', name=build_name, number=build_number, path=str(build_dir),
            )
        return Build(build_name, build_number, project, storage)
