import json
import shutil
import tempfile
from pathlib import Path

import structlog
from pydantic import ValidationError

from buildinfo.core.errors import ParseError
from buildinfo.models.manifest import BuildDetails
from buildinfo.models.manifest import Manifest
from buildinfo.models.manifest import Partial

logger = structlog.get_logger('storage')

DETAILS_FILE = 'details'


class BuildStorage:
    """
    On-disk state of a build in progress.

    <build_dir>/partials/details   start time of the build
    <build_dir>/partials/partial-*  one JSON file per saved phase
    <build_dir>/manifest-*         pre-generated manifests to merge in
    """

    def __init__(self, build_dir: str | Path):
        self.build_dir = Path(build_dir)
        self.partials_dir = self.build_dir / 'partials'

    @property
    def details_path(self) -> Path:
        return self.partials_dir / DETAILS_FILE

    def exists(self) -> bool:
        return self.details_path.exists()

    def save_details(self, details: BuildDetails) -> None:
        self.partials_dir.mkdir(parents=True, exist_ok=True)
        self.details_path.write_text(
            details.model_dump_json(by_alias=True, indent=2), encoding='utf-8',
        )

    def load_details(self) -> BuildDetails | None:
        if not self.details_path.exists():
            return None
        return self._parse(self.details_path, BuildDetails)

    def save_partial(self, partial: Partial) -> Path:
        self.partials_dir.mkdir(parents=True, exist_ok=True)
        return self._write_temp(self.partials_dir, 'partial-', partial.to_dict())

    def load_partials(self) -> list[Partial]:
        if not self.partials_dir.exists():
            return []
        return [
            self._parse(path, Partial)
            for path in sorted(self.partials_dir.glob('partial-*'))
        ]

    def save_manifest(self, manifest: Manifest) -> Path:
        self.build_dir.mkdir(parents=True, exist_ok=True)
        return self._write_temp(self.build_dir, 'manifest-', manifest.to_dict())

    def load_manifests(self) -> list[Manifest]:
        if not self.build_dir.exists():
            return []
        manifests = []
        for path in sorted(self.build_dir.glob('manifest-*')):
            if path.stat().st_size == 0:
                continue
            manifests.append(self._parse(path, Manifest))
        return manifests

    def clean(self) -> None:
        if self.build_dir.exists():
            shutil.rmtree(self.build_dir)

    def _write_temp(self, directory: Path, prefix: str, data: dict) -> Path:
        with tempfile.NamedTemporaryFile(
            'w', dir=directory, prefix=prefix, suffix='.json',
            delete=False, encoding='utf-8',
        ) as f:
            json.dump(data, f, indent=2)
        logger.debug('Saved build file', path=f.name)
        return Path(f.name)

    @staticmethod
    def _parse(path: Path, model):
        try:
            return model.model_validate_json(path.read_bytes())
        except ValidationError as e:
            raise ParseError(f"Malformed build file {path}: {e}") from e
