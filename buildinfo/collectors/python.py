"""pip and pipenv environments, read from their JSON dependency graphs."""
import json
import re

import structlog

from buildinfo.collectors.base import BaseCollector
from buildinfo.core.errors import GraphParseError
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import ModuleType

logger = structlog.get_logger('python_collector')

# Installer tooling present in every environment
IGNORED_PACKAGES = {'pip', 'setuptools', 'wheel', 'pipdeptree', 'pipenv'}

SETUP_NAME = re.compile(r'''name\s*=\s*['"]([^'"]+)['"]''')
SETUP_VERSION = re.compile(r'''version\s*=\s*['"]([^'"]+)['"]''')


def package_id(package: dict) -> str:
    return f"{package.get('key', '').lower()}:{package.get('installed_version', '')}"


def parse_dependency_graph(
    root_id: str, output: str,
) -> tuple[dict[str, Dependency], dict[str, list[str]]]:
    """
    Parses `pipdeptree --json` (or `pipenv graph --json`) output.

    Packages nothing else requires are the environment's direct
    dependencies and hang off `root_id`.
    """
    try:
        entries = json.loads(output or '[]')
    except json.JSONDecodeError as e:
        raise GraphParseError(f"Invalid dependency graph output: {e}") from e
    if not isinstance(entries, list):
        raise GraphParseError('Dependency graph output is not a list')

    dependencies: dict[str, Dependency] = {}
    graph: dict[str, list[str]] = {}
    required = set()
    for entry in entries:
        package = entry.get('package') or {}
        if package.get('key', '').lower() in IGNORED_PACKAGES:
            continue
        parent = package_id(package)
        dependencies[parent] = Dependency(id=parent)
        children = graph.setdefault(parent, [])
        for child in entry.get('dependencies') or []:
            child_id = package_id(child)
            if child_id not in children:
                children.append(child_id)
            required.add(child.get('key', '').lower())

    graph[root_id] = sorted(
        dependency_id for dependency_id in dependencies
        if dependency_id.split(':', 1)[0] not in required
    )
    return dependencies, graph


class PipCollector(BaseCollector):
    ecosystem = 'pip'
    module_type = ModuleType.PYTHON
    executable = 'pipdeptree'
    graph_args: tuple[str, ...] = ('--json',)

    def detect_module_id(self) -> str:
        setup = self.project_dir / 'setup.py'
        pyproject = self.project_dir / 'pyproject.toml'
        for path in (pyproject, setup):
            if not path.exists():
                continue
            content = path.read_text(encoding='utf-8')
            name = SETUP_NAME.search(content)
            version = SETUP_VERSION.search(content)
            if name:
                return f"{name.group(1)}:{version.group(1)}" if version else name.group(1)
        return self.project_dir.name

    def collect_dependencies(self, root_id):
        dependencies, graph = parse_dependency_graph(root_id, self.run(*self.graph_args))
        cache = self.open_cache()
        for dependency in dependencies.values():
            self.cached_checksum(cache, dependency, None)
        return dependencies, graph


class PipenvCollector(PipCollector):
    ecosystem = 'pipenv'
    executable = 'pipenv'
    graph_args = ('graph', '--json')
