from pathlib import Path

import structlog

from buildinfo.collectors.base import BaseCollector
from buildinfo.core.errors import CollectorError
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import ModuleType

logger = structlog.get_logger('go_collector')


def encode_module_path(path: str) -> str:
    """Module cache escaping: every upper-case letter becomes '!' + lower-case."""
    return ''.join(f"!{c.lower()}" if c.isupper() else c for c in path)


def to_dependency_id(module: str) -> str:
    """'github.com/a/b@v1.2.3' -> 'github.com/a/b:1.2.3'."""
    return module.replace('@v', ':', 1)


def parse_module_list(output: str) -> list[str]:
    """Parses `go list -m all` lines ('path v1.2.3') into dependency ids."""
    ids = []
    for line in output.splitlines():
        parts = line.split()
        # The main module has no version; replaced modules append '=> ...'
        if len(parts) < 2 or not parts[1].startswith('v'):
            continue
        ids.append(f"{parts[0]}:{parts[1][1:]}")
    return ids


def parse_mod_graph(output: str) -> dict[str, list[str]]:
    """Parses `go mod graph` ('parent@v1 child@v2' per line) into an adjacency map."""
    graph: dict[str, list[str]] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) != 2:
            continue
        parent, child = (to_dependency_id(p) for p in parts)
        children = graph.setdefault(parent, [])
        if child not in children:
            children.append(child)
    return graph


class GoCollector(BaseCollector):
    ecosystem = 'go'
    module_type = ModuleType.GO
    executable = 'go'

    def detect_module_id(self) -> str:
        if not (self.project_dir / 'go.mod').exists():
            raise CollectorError(f"go.mod not found in {self.project_dir}")
        lines = self.run('list', '-m').splitlines()
        if not lines:
            raise CollectorError("'go list -m' did not return the main module")
        return lines[0].strip()

    def module_cache_dir(self) -> Path:
        return Path(self.run('env', 'GOMODCACHE').strip()) / 'cache' / 'download'

    def collect_dependencies(self, root_id):
        graph = parse_mod_graph(self.run('mod', 'graph'))
        ids = parse_module_list(self.run('list', '-m', 'all'))
        # The main module shows up in the graph without a version
        if root_id not in graph and self.module_id:
            for parent in list(graph):
                if ':' not in parent:
                    graph[root_id] = graph.pop(parent)

        cache_dir = self.module_cache_dir()
        cache = self.open_cache()
        dependencies: dict[str, Dependency] = {}
        for dependency_id in ids:
            zip_path = self.zip_path(cache_dir, dependency_id)
            if cache.get(dependency_id) is None and not zip_path.is_file():
                # Only modules whose sources the build actually downloaded count
                logger.debug('Module zip not found, skipping', module=dependency_id, path=str(zip_path))
                continue
            dependency = Dependency(id=dependency_id, type='zip')
            self.cached_checksum(cache, dependency, zip_path)
            dependencies[dependency_id] = dependency
        self.save_cache(cache, dependencies)
        return dependencies, graph

    @staticmethod
    def zip_path(cache_dir: Path, dependency_id: str) -> Path:
        path, _, version = dependency_id.rpartition(':')
        return cache_dir / encode_module_path(path) / '@v' / f"v{version}.zip"
