"""Gradle projects, through the text report of the 'dependencies' task."""
import re
from pathlib import Path

import structlog

from buildinfo.collectors.base import BaseCollector
from buildinfo.core.errors import CollectorError
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import ModuleType

logger = structlog.get_logger('gradle_collector')

# Resolvable configurations and the scope they report as
CONFIGURATION_SCOPES = {
    'compileClasspath': 'compile',
    'runtimeClasspath': 'runtime',
    'testCompileClasspath': 'test',
    'testRuntimeClasspath': 'test',
}

CONFIGURATION_HEADER = re.compile(r'^(\w+)(?: - .*)?$')
TREE_LINE = re.compile(r'^(?P<indent>(?:[|\s]    )*)[+\\]--- (?P<value>.+)$')
NOTE_SUFFIX = re.compile(r'\s+\((?:\*|c|n|r)\)$')


def parse_coordinates(value: str) -> str | None:
    """
    Resolves one tree entry to 'group:name:version'.

    Handles conflict resolution ('g:n:1.0 -> 1.1'), versionless requests
    ('g:n -> 1.1') and the '(*)' / '(c)' / '(n)' suffixes. Project
    dependencies and unresolved entries give None.
    """
    value = NOTE_SUFFIX.sub('', value.strip())
    if value.startswith('project ') or value.endswith('FAILED'):
        return None
    requested, _, resolved = value.partition(' -> ')
    parts = requested.strip().split(':')
    if len(parts) < 2:
        return None
    version = resolved.strip() or (parts[2] if len(parts) > 2 else '')
    if not version:
        return None
    return f"{parts[0]}:{parts[1]}:{version}"


def parse_dependency_report(
    root_id: str, output: str,
) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
    """
    Parses `gradle dependencies` output.

    Returns the parent -> children graph (rooted at `root_id`) and the
    scopes of each dependency id. Only configurations listed in
    CONFIGURATION_SCOPES are read.
    """
    graph: dict[str, list[str]] = {}
    scopes: dict[str, list[str]] = {}
    scope = None
    stack: list[str | None] = []

    for line in output.splitlines():
        header = CONFIGURATION_HEADER.match(line)
        if header:
            scope = CONFIGURATION_SCOPES.get(header.group(1))
            stack = []
            continue
        match = TREE_LINE.match(line)
        if scope is None or not match:
            continue
        depth = len(match.group('indent')) // 5
        del stack[depth:]
        dependency_id = parse_coordinates(match.group('value'))
        stack.append(dependency_id)
        if dependency_id is None:
            continue
        parent_id = next((node for node in reversed(stack[:-1]) if node), root_id)
        children = graph.setdefault(parent_id, [])
        if dependency_id not in children:
            children.append(dependency_id)
        dependency_scopes = scopes.setdefault(dependency_id, [])
        if scope not in dependency_scopes:
            dependency_scopes.append(scope)
    return graph, scopes


class GradleCollector(BaseCollector):
    ecosystem = 'gradle'
    module_type = ModuleType.GRADLE
    executable = 'gradle'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        wrapper = self.project_dir / 'gradlew'
        if wrapper.exists():
            self.executable = str(wrapper)

    def detect_module_id(self) -> str:
        if not any((self.project_dir / name).exists() for name in ('build.gradle', 'build.gradle.kts')):
            raise CollectorError(f"No Gradle build file found in {self.project_dir}")
        properties = {}
        for line in self.run('properties', '-q').splitlines():
            key, sep, value = line.partition(': ')
            if sep:
                properties[key.strip()] = value.strip()
        group = properties.get('group', '')
        name = properties.get('name', self.project_dir.name)
        version = properties.get('version', 'unspecified')
        return f"{group}:{name}:{version}" if group else f"{name}:{version}"

    def collect_dependencies(self, root_id):
        graph, scopes = parse_dependency_report(root_id, self.run('dependencies', '-q'))
        cache = self.open_cache()
        dependencies: dict[str, Dependency] = {}
        for dependency_id, dependency_scopes in scopes.items():
            dependency = Dependency(id=dependency_id, type='jar', scopes=dependency_scopes)
            self.cached_checksum(cache, dependency, self.cached_jar(dependency_id))
            dependencies[dependency_id] = dependency
        self.save_cache(cache, dependencies)
        return dependencies, graph

    def cached_jar(self, dependency_id: str) -> Path | None:
        group, name, version = dependency_id.split(':', 2)
        module_dir = self.config.gradle_user_home / 'caches' / 'modules-2' / 'files-2.1' / group / name / version
        return next(iter(sorted(module_dir.glob(f"*/{name}-{version}.jar"))), None)
