"""Maven projects, through the dependency plugin's trivial graph format."""
import tempfile
from pathlib import Path

import structlog

from buildinfo.collectors.base import BaseCollector
from buildinfo.core.errors import CollectorError
from buildinfo.core.errors import GraphParseError
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import ModuleType

logger = structlog.get_logger('maven_collector')

MAVEN_SCOPES = ('compile', 'provided', 'runtime', 'test', 'system', 'import')

Edge = tuple['Coordinates', 'Coordinates', str]


class Coordinates:
    """groupId:artifactId:type[:classifier]:version[:scope] as printed by the plugin."""

    def __init__(self, value: str):
        parts = value.strip().split(':')
        if len(parts) < 4:
            raise GraphParseError(f"Unexpected Maven coordinates '{value}'")
        self.group, self.artifact, self.packaging = parts[0], parts[1], parts[2]
        self.classifier = ''
        self.scope = ''
        rest = parts[3:]
        if len(rest) == 3:
            self.classifier, self.version, self.scope = rest
        elif len(rest) == 2 and rest[1] in MAVEN_SCOPES:
            self.version, self.scope = rest
        elif len(rest) == 2:
            self.classifier, self.version = rest
        else:
            self.version = rest[0]

    @property
    def id(self) -> str:
        return f"{self.group}:{self.artifact}:{self.version}"

    def local_path(self, repository: Path) -> Path:
        file_name = f"{self.artifact}-{self.version}"
        if self.classifier:
            file_name += f"-{self.classifier}"
        return (
            repository / self.group.replace('.', '/') / self.artifact / self.version
            / f"{file_name}.{self.packaging}"
        )


def parse_tgf(output: str) -> list[tuple[Coordinates, list[Edge]]]:
    """
    Parses one or more concatenated TGF documents.

    A document lists '<node-id> <coordinates>' lines, a '#' separator and
    then '<parent-id> <child-id> [scope]' edges. Its first node is the
    module. Returns a (module, edges) pair per document.
    """
    documents = []
    nodes: dict[str, Coordinates] = {}
    edges: list[Edge] = []
    in_edges = False

    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        if line == '#':
            in_edges = True
            continue
        parts = line.split()
        if in_edges and len(parts) == 2 and ':' in parts[1]:
            # A node line after edges starts the next module's document
            documents.append((next(iter(nodes.values())), edges))
            nodes, edges, in_edges = {}, [], False
        if not in_edges:
            if len(parts) != 2:
                raise GraphParseError(f"Unexpected TGF node line '{line}'")
            nodes[parts[0]] = Coordinates(parts[1])
            continue
        if len(parts) < 2 or parts[0] not in nodes or parts[1] not in nodes:
            raise GraphParseError(f"Unexpected TGF edge line '{line}'")
        edges.append((nodes[parts[0]], nodes[parts[1]], parts[2] if len(parts) > 2 else ''))
    if nodes:
        documents.append((next(iter(nodes.values())), edges))
    return documents


class MavenCollector(BaseCollector):
    ecosystem = 'maven'
    module_type = ModuleType.MAVEN
    executable = 'mvn'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._documents: list[tuple[Coordinates, list[Edge]]] | None = None

    def dependency_tree(self) -> list[tuple[Coordinates, list[Edge]]]:
        if self._documents is not None:
            return self._documents
        if not (self.project_dir / 'pom.xml').exists():
            raise CollectorError(f"pom.xml not found in {self.project_dir}")
        with tempfile.TemporaryDirectory() as tmp:
            output_file = Path(tmp) / 'dependencies.tgf'
            self.run(
                '-B', '-q', 'dependency:tree',
                '-DoutputType=tgf', f"-DoutputFile={output_file}", '-DappendOutput=true',
            )
            content = output_file.read_text(encoding='utf-8') if output_file.exists() else ''
        self._documents = parse_tgf(content)
        if not self._documents:
            raise GraphParseError("'mvn dependency:tree' produced no dependency graph")
        return self._documents

    def detect_module_id(self) -> str:
        return self.dependency_tree()[0][0].id

    def collect_dependencies(self, root_id):
        graph: dict[str, list[str]] = {}
        coordinates: dict[str, Coordinates] = {}
        scopes: dict[str, list[str]] = {}
        for module, edges in self.dependency_tree():
            for parent, child, scope in edges:
                # Sub-modules of a reactor build are folded into one root
                parent_id = root_id if parent is module else parent.id
                children = graph.setdefault(parent_id, [])
                if child.id not in children:
                    children.append(child.id)
                coordinates.setdefault(child.id, child)
                child_scopes = scopes.setdefault(child.id, [])
                scope = scope or child.scope
                if scope and scope not in child_scopes:
                    child_scopes.append(scope)

        cache = self.open_cache()
        dependencies: dict[str, Dependency] = {}
        for dependency_id, coordinate in coordinates.items():
            dependency = Dependency(
                id=dependency_id, type=coordinate.packaging, scopes=scopes.get(dependency_id, []),
            )
            self.cached_checksum(cache, dependency, coordinate.local_path(self.config.maven_repo_local))
            dependencies[dependency_id] = dependency
        self.save_cache(cache, dependencies)
        return dependencies, graph
