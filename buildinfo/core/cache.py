"""Per-project cache of resolved dependencies and their checksums."""
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from pathlib import Path

import structlog
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from buildinfo.core.config import get_config
from buildinfo.core.errors import CacheError
from buildinfo.models.dependency import Dependency

logger = structlog.get_logger('cache')

# Bump when the cache file layout changes; older files are then ignored.
CACHE_LATEST_VERSION = 1


class CacheFile(BaseModel):
    version: int = 0
    dependencies: dict[str, Dependency] = Field(default_factory=dict)
    last_updated: datetime | None = Field(default=None, alias='lastUpdated')
    project_path: str = Field(default='', alias='projectPath')

    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class DependenciesCache:
    """
    Dependencies resolved for one project directory, keyed by dependency id.

    Reading never fails: a missing, corrupt, outdated or expired file simply
    behaves as an empty cache.
    """

    def __init__(self, project_dir: str | Path, ecosystem: str, path: Path | None = None):
        self.project_dir = Path(project_dir)
        self.ecosystem = ecosystem
        self.path = path or get_config().paths.get_dependencies_cache_path(
            self.project_dir, ecosystem,
        )
        self._data: CacheFile | None = None

    def load(self) -> bool:
        """Reads the cache file. Returns whether usable data was found."""
        self._data = None
        if not self.path.exists():
            logger.debug('Dependencies cache not found', path=str(self.path))
            return False
        try:
            self._data = CacheFile.model_validate_json(self.path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning(
                'Ignoring unreadable dependencies cache', path=str(self.path), error=str(e),
            )
            return False
        logger.debug(
            'Loaded dependencies cache',
            ecosystem=self.ecosystem, entries=len(self._data.dependencies),
        )
        return True

    def is_valid(self, max_age: timedelta | None = None) -> bool:
        if self._data is None:
            return False
        if self._data.version != CACHE_LATEST_VERSION:
            logger.debug(
                'Dependencies cache version mismatch',
                expected=CACHE_LATEST_VERSION, found=self._data.version,
            )
            return False
        last_updated = self._data.last_updated
        if max_age and last_updated:
            if last_updated.tzinfo is None:
                last_updated = last_updated.replace(tzinfo=timezone.utc)
            age = datetime.now(timezone.utc) - last_updated
            if age > max_age:
                logger.debug('Dependencies cache expired', age=str(age))
                return False
        return True

    def get(self, dependency_id: str) -> Dependency | None:
        if self._data is None:
            return None
        return self._data.dependencies.get(dependency_id)

    def save(self, dependencies: dict[str, Dependency]) -> None:
        data = CacheFile(
            version=CACHE_LATEST_VERSION,
            dependencies=dependencies,
            last_updated=datetime.now(timezone.utc),
            project_path=str(self.project_dir),
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                data.model_dump_json(by_alias=True, indent=2), encoding='utf-8',
            )
        except OSError as e:
            raise CacheError(f"Failed to write dependencies cache {self.path}: {e}") from e
        self._data = data
        logger.debug(
            'Updated dependencies cache', path=str(self.path), entries=len(dependencies),
        )

    def clear(self) -> None:
        self._data = None
        self.path.unlink(missing_ok=True)
