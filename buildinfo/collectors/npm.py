import base64
import json
from pathlib import Path

import structlog

from buildinfo.collectors.base import BaseCollector
from buildinfo.core.errors import CollectorError
from buildinfo.core.errors import GraphParseError
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import ModuleType
from buildinfo.services.provenance_service import walk_tree

logger = structlog.get_logger('npm_collector')

SCOPES = ('prod', 'dev')


def load_json_output(output: str, command: str) -> dict:
    try:
        data = json.loads(output or '{}')
    except json.JSONDecodeError as e:
        raise GraphParseError(f"Failed to parse '{command}' output: {e}") from e
    if not isinstance(data, dict):
        raise GraphParseError(f"Unexpected '{command}' output")
    return data


def collect_tree_chains(root_id: str, tree: dict) -> dict[str, list[list[str]]]:
    """
    Walks an `npm ls --json` tree and returns every dependency id with its
    requested-by chains. Entries without a version (unmet peer dependencies)
    are left out but their subtrees are still walked.
    """
    subtrees: dict[tuple[str, tuple[str, ...]], dict] = {
        (root_id, ()): tree.get('dependencies') or {},
    }

    def children_of(node_id: str, path_to_root: list[str]) -> list[str]:
        children = []
        pending = list((subtrees.pop((node_id, tuple(path_to_root)), {})).items())
        chain = (node_id, *path_to_root)
        while pending:
            name, info = pending.pop(0)
            version = (info or {}).get('version')
            nested = (info or {}).get('dependencies') or {}
            if not version:
                logger.debug('Skipping package without a version', package=name)
                pending.extend(nested.items())
                continue
            child_id = f"{name}:{version}"
            subtrees[(child_id, chain)] = nested
            children.append(child_id)
        return children

    return walk_tree(root_id, children_of)


def integrity_to_hex(integrity: str) -> tuple[str, str]:
    """'sha512-<base64>' -> ('sha512', '<hex>')."""
    algorithm, sep, digest = integrity.partition('-')
    if not sep:
        raise ValueError(f"malformed integrity '{integrity}'")
    return algorithm, base64.b64decode(digest).hex()


def read_integrity_map(lock_path: Path) -> dict[str, str]:
    """Maps 'name:version' to the integrity string recorded in package-lock.json."""
    if not lock_path.exists():
        return {}
    lock = json.loads(lock_path.read_text(encoding='utf-8'))
    integrity = {}
    packages = lock.get('packages')
    if packages is not None:
        for key, info in packages.items():
            _, marker, name = key.rpartition('node_modules/')
            if not marker or not info.get('integrity'):
                continue
            integrity[f"{name}:{info.get('version', '')}"] = info['integrity']
        return integrity
    for name, info in (lock.get('dependencies') or {}).items():
        if info.get('integrity'):
            integrity[f"{name}:{info.get('version', '')}"] = info['integrity']
    return integrity


class NpmCollector(BaseCollector):
    ecosystem = 'npm'
    module_type = ModuleType.NPM
    executable = 'npm'

    def package_json(self) -> dict:
        path = self.project_dir / 'package.json'
        if not path.exists():
            raise CollectorError(f"package.json not found in {self.project_dir}")
        return json.loads(path.read_text(encoding='utf-8'))

    def detect_module_id(self) -> str:
        package = self.package_json()
        return f"{package.get('name', '')}:{package.get('version', '')}"

    def collect_dependencies(self, root_id):
        dependencies: dict[str, Dependency] = {}
        for scope in SCOPES:
            command = f"npm ls --json --all --{scope}"
            tree = load_json_output(
                self.run('ls', '--json', '--all', f"--{scope}", check=False), command,
            )
            for dependency_id, chains in collect_tree_chains(root_id, tree).items():
                dependency = dependencies.setdefault(dependency_id, Dependency(id=dependency_id))
                if scope not in dependency.scopes:
                    dependency.scopes.append(scope)
                for chain in chains:
                    if chain not in dependency.requested_by:
                        dependency.requested_by.append(chain)

        self.fill_checksums(dependencies)
        return dependencies, None

    def fill_checksums(self, dependencies: dict[str, Dependency]) -> None:
        integrity = read_integrity_map(self.project_dir / 'package-lock.json')
        if not integrity:
            logger.warning('package-lock.json not found or empty, checksums are skipped')
            return
        cacache = Path(self.run('config', 'get', 'cache').strip()) / '_cacache'
        cache = self.open_cache()
        for dependency in dependencies.values():
            self.cached_checksum(cache, dependency, self.tarball_path(cacache, integrity.get(dependency.id)))
        self.save_cache(cache, dependencies)

    @staticmethod
    def tarball_path(cacache: Path, integrity: str | None) -> Path | None:
        if not integrity:
            return None
        try:
            algorithm, digest = integrity_to_hex(integrity.split()[0])
        except ValueError as e:
            logger.debug('Unusable integrity', error=str(e))
            return None
        return cacache / 'content-v2' / algorithm / digest[:2] / digest[2:4] / digest[4:]
