"""Configuration management for buildinfo."""
import os
from dataclasses import dataclass
from dataclasses import field
from datetime import timedelta
from pathlib import Path

DEFAULT_ENV_EXCLUDE = '*password*;*psw*;*secret*;*key*;*token*;*auth*'


def _split_patterns(value: str) -> list[str]:
    return [p.strip() for p in value.split(';') if p.strip()]


@dataclass
class PathConfig:
    """Where builds in progress and dependency caches are kept."""
    home_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv('BUILDINFO_HOME', Path.home() / '.buildinfo'),
        ),
    )

    @property
    def builds_dir(self) -> Path:
        return self.home_dir / 'builds'

    def get_build_dir(self, build_name: str, build_number: str, project: str = '') -> Path:
        """One directory per build run: builds/<project>/<name>_<number>."""
        dir_name = f"{build_name}_{build_number}".replace('/', '_')
        if project:
            return self.builds_dir / project / dir_name
        return self.builds_dir / dir_name

    def get_dependencies_cache_path(self, project_dir: Path, ecosystem: str) -> Path:
        """Cache path for a project's resolved dependencies."""
        return Path(project_dir) / '.buildinfo' / 'projects' / f'{ecosystem}-deps.cache.json'


@dataclass
class ManifestConfig:
    requested_by_max_length: int = field(
        default_factory=lambda: int(
            os.getenv('BUILDINFO_REQUESTED_BY_MAX', '15'),
        ),
    )
    graph_max_depth: int = 10
    env_include: list[str] = field(
        default_factory=lambda: _split_patterns(
            os.getenv('BUILDINFO_ENV_INCLUDE', '*'),
        ),
    )
    env_exclude: list[str] = field(
        default_factory=lambda: _split_patterns(
            os.getenv('BUILDINFO_ENV_EXCLUDE', DEFAULT_ENV_EXCLUDE),
        ),
    )


@dataclass
class CollectorConfig:
    threads: int = field(
        default_factory=lambda: int(os.getenv('BUILDINFO_THREADS', '3')),
    )
    cache_max_age: timedelta = timedelta(hours=24)
    maven_repo_local: Path = field(
        default_factory=lambda: Path(
            os.getenv('MAVEN_REPO_LOCAL', Path.home() / '.m2' / 'repository'),
        ),
    )
    gradle_user_home: Path = field(
        default_factory=lambda: Path(
            os.getenv('GRADLE_USER_HOME', Path.home() / '.gradle'),
        ),
    )
    nuget_packages: Path = field(
        default_factory=lambda: Path(
            os.getenv('NUGET_PACKAGES', Path.home() / '.nuget' / 'packages'),
        ),
    )


@dataclass
class BuildInfoConfig:
    paths: PathConfig = field(default_factory=PathConfig)
    manifest: ManifestConfig = field(default_factory=ManifestConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)

    @classmethod
    def load(cls) -> 'BuildInfoConfig':
        return cls()


_config: BuildInfoConfig | None = None


def get_config() -> BuildInfoConfig:
    global _config
    if _config is None:
        _config = BuildInfoConfig.load()
    return _config
