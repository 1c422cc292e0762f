"""Helm charts, from Chart.yaml / Chart.lock and the packaged sub-charts."""
import tarfile
from pathlib import Path

import structlog
import yaml

from buildinfo.collectors.base import BaseCollector
from buildinfo.core.config import get_config
from buildinfo.core.errors import CollectorError
from buildinfo.core.errors import GraphParseError
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import ModuleType
from buildinfo.services.provenance_service import discover_graph

logger = structlog.get_logger('helm_collector')


def chart_dependencies(chart: dict, lock: dict | None) -> list[str]:
    """Ids of a chart's dependencies; Chart.lock versions win over the ranges in Chart.yaml."""
    locked = {d.get('name'): d.get('version') for d in (lock or {}).get('dependencies') or []}
    ids = []
    for dependency in chart.get('dependencies') or []:
        name = dependency.get('name')
        if not name:
            continue
        ids.append(f"{name}:{locked.get(name) or dependency.get('version', '')}")
    return ids


def read_archive_chart(archive: Path) -> tuple[dict, dict | None]:
    """Reads Chart.yaml and Chart.lock from the top directory of a chart archive."""
    chart, lock = None, None
    with tarfile.open(archive, 'r:gz') as tar:
        for member in tar.getmembers():
            parts = member.name.split('/')
            if len(parts) != 2 or not member.isfile():
                continue
            f = tar.extractfile(member)
            if f is None:
                continue
            if parts[1] == 'Chart.yaml':
                chart = yaml.safe_load(f.read())
            elif parts[1] == 'Chart.lock':
                lock = yaml.safe_load(f.read())
    if chart is None:
        raise GraphParseError(f"Chart.yaml not found in {archive}")
    if not isinstance(chart, dict) or not isinstance(lock, (dict, type(None))):
        raise GraphParseError(f"Invalid chart metadata in {archive}: expected a mapping")
    return chart, lock


class HelmCollector(BaseCollector):
    ecosystem = 'helm'
    module_type = ModuleType.HELM
    executable = 'helm'

    def load_yaml(self, name: str) -> dict | None:
        path = self.project_dir / name
        if not path.exists():
            return None
        try:
            data = yaml.safe_load(path.read_text(encoding='utf-8')) or {}
        except yaml.YAMLError as e:
            raise GraphParseError(f"Invalid {path}: {e}") from e
        if not isinstance(data, dict):
            raise GraphParseError(f"Invalid {path}: expected a mapping, got {type(data).__name__}")
        return data

    def detect_module_id(self) -> str:
        chart = self.load_yaml('Chart.yaml')
        if chart is None:
            raise CollectorError(f"Chart.yaml not found in {self.project_dir}")
        return f"{chart.get('name', '')}:{chart.get('version', '')}"

    def archive_path(self, dependency_id: str) -> Path:
        name, _, version = dependency_id.rpartition(':')
        return self.project_dir / 'charts' / f"{name}-{version}.tgz"

    def collect_dependencies(self, root_id):
        chart = self.load_yaml('Chart.yaml')
        if chart is None:
            raise CollectorError(f"Chart.yaml not found in {self.project_dir}")
        direct = chart_dependencies(chart, self.load_yaml('Chart.lock'))

        def children_of(node_id: str) -> list[str]:
            if node_id == root_id:
                return direct
            archive = self.archive_path(node_id)
            if not archive.is_file():
                return []
            try:
                return chart_dependencies(*read_archive_chart(archive))
            except (tarfile.TarError, yaml.YAMLError) as e:
                raise GraphParseError(f"Failed to read {archive}: {e}") from e

        graph = discover_graph(root_id, children_of, max_depth=get_config().manifest.graph_max_depth)
        cache = self.open_cache()
        dependencies: dict[str, Dependency] = {}
        for children in graph.values():
            for dependency_id in children:
                if dependency_id in dependencies:
                    continue
                dependency = Dependency(id=dependency_id, type='tgz')
                self.cached_checksum(cache, dependency, self.archive_path(dependency_id))
                dependencies[dependency_id] = dependency
        self.save_cache(cache, dependencies)
        return dependencies, graph
