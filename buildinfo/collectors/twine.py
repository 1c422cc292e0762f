"""Python distributions about to be published with twine."""
import re
from pathlib import Path

import structlog

from buildinfo.collectors.base import BaseCollector
from buildinfo.core.checksum import file_checksums
from buildinfo.core.errors import CollectorError
from buildinfo.models.artifact import Artifact
from buildinfo.models.module import ModuleType

logger = structlog.get_logger('twine_collector')

DIST_FILE = re.compile(r'^(?P<name>[A-Za-z0-9_.-]+?)-(?P<version>\d[^-]*?)(?:-.+)?\.(?P<ext>whl|tar\.gz|zip|egg)$')


def distribution_type(file_name: str) -> str:
    return 'wheel' if file_name.endswith('.whl') else 'sdist'


class TwineCollector(BaseCollector):
    """Artifacts only: the files under the distribution directory."""
    ecosystem = 'twine'
    module_type = ModuleType.PYTHON
    executable = 'twine'

    def __init__(self, *args, dist_dir: str | Path = 'dist', **kwargs):
        super().__init__(*args, **kwargs)
        self.dist_dir = self.project_dir / dist_dir

    def distributions(self) -> list[Path]:
        files = sorted(p for p in self.dist_dir.glob('*') if p.is_file() and DIST_FILE.match(p.name))
        if not files:
            raise CollectorError(f"No distribution files found in {self.dist_dir}")
        return files

    def detect_module_id(self) -> str:
        match = DIST_FILE.match(self.distributions()[0].name)
        return f"{match.group('name').replace('_', '-').lower()}:{match.group('version')}"

    def collect_dependencies(self, root_id):
        return {}, None

    def collect_artifacts(self) -> list[Artifact]:
        artifacts = []
        for path in self.distributions():
            artifacts.append(Artifact(
                name=path.name,
                type=distribution_type(path.name),
                path=f"{self.dist_dir.name}/{path.name}",
                checksum=file_checksums(path),
            ))
            logger.debug('Collected distribution', file=path.name)
        return artifacts
