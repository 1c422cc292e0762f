"""Shared plumbing for package-manager collectors."""
import shutil
import subprocess
import time
from abc import ABC
from abc import abstractmethod
from pathlib import Path

import structlog

from buildinfo.core.cache import DependenciesCache
from buildinfo.core.checksum import file_checksums
from buildinfo.core.config import get_config
from buildinfo.core.errors import CacheError
from buildinfo.core.errors import CollectorError
from buildinfo.models.artifact import Artifact
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import Module
from buildinfo.models.module import ModuleType
from buildinfo.services.provenance_service import Graph
from buildinfo.services.provenance_service import populate_requested_by
from buildinfo.services.traverse_service import traverse_dependencies
from buildinfo.services.traverse_service import TraverseFunc

logger = structlog.get_logger('collector')


class BaseCollector(ABC):
    """
    Turns a project's package-manager state into a Module.

    Subclasses implement `collect_dependencies()`, returning the dependency
    records keyed by id, and may return a parent -> children graph alongside
    them; requested-by chains are then attached from that graph. Collectors
    that walk a native tree fill the chains themselves and return no graph.
    """
    ecosystem: str = ''
    module_type: ModuleType = ModuleType.GENERIC
    executable: str = ''

    def __init__(
        self,
        project_dir: str | Path = '.',
        module_id: str = '',
        threads: int | None = None,
        traverse_func: TraverseFunc | None = None,
    ):
        self.config = get_config().collector
        self.project_dir = Path(project_dir).resolve()
        self.module_id = module_id
        self.threads = threads or self.config.threads
        self.traverse_func = traverse_func

    @abstractmethod
    def detect_module_id(self) -> str:
        """Identity of the project itself, used when no module id is given."""

    @abstractmethod
    def collect_dependencies(self, root_id: str) -> tuple[dict[str, Dependency], Graph | None]:
        """Returns the dependency records and, when available, their graph."""

    def collect_artifacts(self) -> list[Artifact]:
        return []

    def collect(self) -> Module:
        start_time = time.time()
        root_id = self.module_id or self.detect_module_id()
        dependencies, graph = self.collect_dependencies(root_id)
        if graph is not None:
            populate_requested_by(root_id, dependencies, graph)

        ordered = [dependencies[key] for key in sorted(dependencies)]
        kept = traverse_dependencies(ordered, self.traverse_func, self.threads)
        self._warn_missing_checksums(kept)

        module = Module(
            id=root_id,
            type=self.module_type,
            dependencies=kept,
            artifacts=self.collect_artifacts(),
        )
        logger.info(
            'Collected module',
            ecosystem=self.ecosystem,
            module=root_id,
            dependencies=len(module.dependencies),
            artifacts=len(module.artifacts),
            elapsed=f"{time.time() - start_time:.3f}s",
        )
        return module

    def run(self, *args: str, check: bool = True) -> str:
        """Runs the package manager in the project directory and returns stdout."""
        if not shutil.which(self.executable):
            raise CollectorError(
                f"'{self.executable}' was not found in PATH, it is required to collect {self.ecosystem} dependencies",
            )
        command = [self.executable, *args]
        logger.debug('Running command', command=' '.join(command), cwd=str(self.project_dir))
        try:
            process = subprocess.run(
                command, cwd=self.project_dir, capture_output=True, text=True, check=check,
            )
        except subprocess.CalledProcessError as e:
            logger.debug('Command failed', command=' '.join(command), error_output=e.stderr)
            raise CollectorError(
                f"'{' '.join(command)}' failed with exit code {e.returncode}:\n{e.stderr.strip()}",
            ) from e
        if process.stderr:
            logger.debug('Command stderr', command=' '.join(command), output=process.stderr.strip())
        return process.stdout

    def open_cache(self) -> DependenciesCache:
        cache = DependenciesCache(self.project_dir, self.ecosystem)
        if cache.load() and not cache.is_valid(self.config.cache_max_age):
            cache.clear()
        return cache

    def cached_checksum(self, cache: DependenciesCache, dependency: Dependency, path: Path | None) -> None:
        """Fills a dependency's checksum from the cache, or from `path` when given."""
        cached = cache.get(dependency.id)
        if cached is not None and not cached.checksum.is_empty():
            dependency.checksum = cached.checksum
        elif path is not None and path.is_file():
            dependency.checksum = file_checksums(path)

    def save_cache(self, cache: DependenciesCache, dependencies: dict[str, Dependency]) -> None:
        entries = {
            key: Dependency(id=dep.id, type=dep.type, checksum=dep.checksum)
            for key, dep in dependencies.items()
            if not dep.checksum.is_empty()
        }
        try:
            cache.save(entries)
        except CacheError as e:
            logger.warning('Dependencies cache not updated', error=str(e))

    def _warn_missing_checksums(self, dependencies: list[Dependency]) -> None:
        missing = [d.id for d in dependencies if d.checksum.is_empty()]
        if not missing:
            return
        logger.warning(
            'Dependencies without checksum',
            ecosystem=self.ecosystem, count=len(missing), ids=missing[:10],
        )
