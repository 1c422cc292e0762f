"""NuGet and dotnet projects, read from the restore output obj/project.assets.json."""
import json
from pathlib import Path

import structlog

from buildinfo.collectors.base import BaseCollector
from buildinfo.core.errors import CollectorError
from buildinfo.core.errors import GraphParseError
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import ModuleType

logger = structlog.get_logger('nuget_collector')

ASSETS_FILE = Path('obj') / 'project.assets.json'


def library_id(key: str) -> str:
    """'Newtonsoft.Json/13.0.1' -> 'Newtonsoft.Json:13.0.1'."""
    name, _, version = key.rpartition('/')
    return f"{name}:{version}"


class AssetsFile:
    """The parts of project.assets.json needed to rebuild the dependency graph."""

    def __init__(self, data: dict):
        if not isinstance(data.get('libraries'), dict):
            raise GraphParseError('project.assets.json has no libraries section')
        self.data = data
        self.libraries: dict[str, dict] = data['libraries']
        self.project = data.get('project') or {}
        # Names are matched case-insensitively, as NuGet does
        self._keys_by_name = {
            key.rpartition('/')[0].lower(): key for key in self.libraries
        }

    @classmethod
    def load(cls, path: Path) -> 'AssetsFile':
        try:
            return cls(json.loads(path.read_text(encoding='utf-8')))
        except json.JSONDecodeError as e:
            raise GraphParseError(f"Invalid {path}: {e}") from e

    def resolve(self, name: str) -> str | None:
        return self._keys_by_name.get(name.lower())

    def project_id(self, fallback: str) -> str:
        name = (self.project.get('restore') or {}).get('projectName') or fallback
        version = self.project.get('version', '')
        return f"{name}:{version}" if version else name

    def direct_dependencies(self) -> list[str]:
        keys = []
        for framework in (self.project.get('frameworks') or {}).values():
            for name in (framework.get('dependencies') or {}):
                key = self.resolve(name)
                if key is None:
                    logger.debug('Direct dependency not restored', dependency=name)
                elif key not in keys:
                    keys.append(key)
        return keys

    def children_map(self) -> dict[str, list[str]]:
        children: dict[str, list[str]] = {}
        for target in (self.data.get('targets') or {}).values():
            for key, info in target.items():
                entries = children.setdefault(key, [])
                for name in (info.get('dependencies') or {}):
                    child = self.resolve(name)
                    if child is not None and child not in entries:
                        entries.append(child)
        return children

    def packages_folders(self) -> list[Path]:
        folders = [Path(p) for p in (self.data.get('packageFolders') or {})]
        packages_path = (self.project.get('restore') or {}).get('packagesPath')
        if packages_path:
            folders.append(Path(packages_path))
        return folders


class NugetCollector(BaseCollector):
    ecosystem = 'nuget'
    module_type = ModuleType.NUGET
    executable = 'nuget'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._assets: AssetsFile | None = None

    def restore(self) -> None:
        self.run('restore')

    def assets(self) -> AssetsFile:
        if self._assets is None:
            path = self.project_dir / ASSETS_FILE
            if not path.exists():
                self.restore()
            if not path.exists():
                raise CollectorError(f"{ASSETS_FILE} not found in {self.project_dir}, restore the project first")
            self._assets = AssetsFile.load(path)
        return self._assets

    def detect_module_id(self) -> str:
        return self.assets().project_id(self.project_dir.name)

    def collect_dependencies(self, root_id):
        assets = self.assets()
        graph = {
            library_id(key): [library_id(child) for child in children]
            for key, children in assets.children_map().items()
        }
        graph[root_id] = [library_id(key) for key in assets.direct_dependencies()]

        folders = assets.packages_folders() + [self.config.nuget_packages]
        cache = self.open_cache()
        dependencies: dict[str, Dependency] = {}
        for key, library in assets.libraries.items():
            dependency = Dependency(id=library_id(key), type=library.get('type', ''))
            self.cached_checksum(cache, dependency, self.find_package(folders, key, library))
            dependencies[dependency.id] = dependency
        self.save_cache(cache, dependencies)
        return dependencies, graph

    @staticmethod
    def find_package(folders: list[Path], key: str, library: dict) -> Path | None:
        name, _, version = key.rpartition('/')
        relative = Path(library.get('path') or f"{name}/{version}".lower())
        file_name = f"{name}.{version}.nupkg".lower()
        for folder in folders:
            candidate = folder / relative / file_name
            if candidate.is_file():
                return candidate
        return None


class DotnetCollector(NugetCollector):
    executable = 'dotnet'
