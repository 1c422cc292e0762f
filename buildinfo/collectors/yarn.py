import json

import structlog

from buildinfo.collectors.base import BaseCollector
from buildinfo.collectors.npm import NpmCollector
from buildinfo.core.errors import GraphParseError
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import ModuleType
from buildinfo.services.provenance_service import walk_tree

logger = structlog.get_logger('yarn_collector')

LOCAL_VERSION = '0.0.0-use.local'


def locator_key(locator: str) -> str:
    """Strips the virtual part: 'a@virtual:abc#npm:1.0.0' -> 'a@npm:1.0.0'."""
    index = locator.find('@virtual:')
    if index == -1:
        return locator
    return locator[:index + 1] + locator[locator.rfind('#') + 1:]


def package_name(value: str) -> str:
    """'@scope/pkg@npm:1.0.0' -> '@scope/pkg'."""
    index = value.find('@', 1)
    return value if index == -1 else value[:index]


def parse_info_output(output: str) -> dict[str, dict]:
    """Parses `yarn info --all --recursive --json` NDJSON, keyed by locator."""
    packages = {}
    for number, line in enumerate(output.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError as e:
            raise GraphParseError(f"Invalid 'yarn info' output at line {number}: {e}") from e
        packages[entry.get('value', '')] = entry
    return packages


class YarnCollector(BaseCollector):
    """Yarn 2+ (Berry) projects."""
    ecosystem = 'yarn'
    module_type = ModuleType.NPM
    executable = 'yarn'

    def detect_module_id(self) -> str:
        return NpmCollector(self.project_dir).detect_module_id()

    def collect_dependencies(self, root_id):
        packages = parse_info_output(self.run('info', '--all', '--recursive', '--json'))
        root_name = root_id.rpartition(':')[0] or root_id
        root = next(
            (entry for value, entry in packages.items() if value.startswith(f"{root_name}@")),
            None,
        )
        if root is None:
            raise GraphParseError(f"'{root_name}' was not found in 'yarn info' output, run 'yarn install' first")

        ids = {value: self._dependency_id(entry) for value, entry in packages.items()}
        ids[root['value']] = root_id
        locators = {root_id: root['value']}
        for value, dependency_id in ids.items():
            locators.setdefault(dependency_id, value)

        def children_of(node_id: str, path_to_root: list[str]) -> list[str]:
            entry = packages.get(locators.get(node_id, ''), {})
            children = []
            for pointer in (entry.get('children') or {}).get('Dependencies') or []:
                key = locator_key(pointer.get('locator', ''))
                if key not in ids:
                    raise GraphParseError(f"Dependency {pointer.get('locator')} is missing from 'yarn info' output")
                children.append(ids[key])
            return children

        dependencies = {
            dependency_id: Dependency(id=dependency_id, requested_by=chains)
            for dependency_id, chains in walk_tree(root_id, children_of).items()
        }
        return dependencies, None

    @staticmethod
    def _dependency_id(entry: dict) -> str:
        version = (entry.get('children') or {}).get('Version', '')
        return f"{package_name(entry.get('value', ''))}:{version}"
