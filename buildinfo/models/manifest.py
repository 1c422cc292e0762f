import json
from datetime import datetime
from typing import Any

from pydantic import Field

from buildinfo.core.matching import wildcard_matches
from buildinfo.models.artifact import Artifact
from buildinfo.models.base import ChecksumRecord
from buildinfo.models.base import omit_empty
from buildinfo.models.base import Record
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import Module

ENV_PREFIX = 'buildInfo.env.'
DEFAULT_BUILD_AGENT = 'GENERIC'


def format_timestamp(moment: datetime) -> str:
    """Formats as 2024-01-01T00:00:00.000+0000."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    millis = moment.microsecond // 1000
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{millis:03d}{moment.strftime('%z')}"


class Agent(Record):
    name: str = ''
    version: str = ''


class Vcs(Record):
    url: str = ''
    revision: str = ''
    branch: str = ''
    message: str = ''


class Tracker(Record):
    name: str = ''
    version: str = ''


class AffectedIssue(Record):
    key: str = ''
    url: str = ''
    summary: str = ''
    aggregated: bool = False


class Issues(Record):
    tracker: Tracker | None = None
    aggregate_build_issues: bool = Field(
        default=False, alias='aggregateBuildIssues',
    )
    aggregation_build_status: str = Field(
        default='', alias='aggregationBuildStatus',
    )
    affected_issues: list[AffectedIssue] = Field(
        default_factory=list, alias='affectedIssues',
    )


class Manifest(Record):
    """The build-info record of a single build run."""
    name: str = ''
    number: str = ''
    agent: Agent | None = None
    build_agent: Agent | None = Field(default=None, alias='buildAgent')
    modules: list[Module] = Field(default_factory=list)
    started: str = ''
    properties: dict[str, str] = Field(default_factory=dict)
    principal: str = Field(default='', alias='artifactoryPrincipal')
    build_url: str = Field(default='', alias='url')
    issues: Issues | None = None
    plugin_version: str = Field(default='', alias='artifactoryPluginVersion')
    vcs_list: list[Vcs] = Field(default_factory=list, alias='vcs')

    @classmethod
    def new(cls, name: str = '', number: str = '') -> 'Manifest':
        return cls(
            name=name,
            number=number,
            agent=Agent(),
            build_agent=Agent(name=DEFAULT_BUILD_AGENT),
        )

    @classmethod
    def from_json(cls, content: str | bytes) -> 'Manifest':
        return cls.model_validate_json(content)

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def get_module(self, module_id: str) -> Module | None:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None

    def include_env(self, *patterns: str) -> None:
        """Keep only the captured environment variables matching a pattern."""
        for key, env_key in self._env_keys():
            if not any(wildcard_matches(p, env_key) for p in patterns):
                del self.properties[key]

    def exclude_env(self, *patterns: str) -> None:
        """Drop the captured environment variables matching any pattern."""
        for key, env_key in self._env_keys():
            if any(wildcard_matches(p, env_key) for p in patterns):
                del self.properties[key]

    def _env_keys(self) -> list[tuple[str, str]]:
        return [
            (key, key[len(ENV_PREFIX):])
            for key in list(self.properties)
            if key.startswith(ENV_PREFIX)
        ]


class Partial(ChecksumRecord):
    """One phase's contribution to a build, persisted until the build is assembled."""
    module_type: str = Field(default='', alias='Type')
    artifacts: list[Artifact] | None = Field(default=None, alias='Artifacts')
    dependencies: list[Dependency] | None = Field(
        default=None, alias='Dependencies',
    )
    env: dict[str, str] | None = Field(default=None, alias='Env')
    timestamp: int = Field(default=0, alias='Timestamp')
    module_id: str = Field(default='', alias='ModuleId')
    issues: Issues | None = Field(default=None, alias='Issues')
    vcs_list: list[Vcs] | None = Field(default=None, alias='vcs')

    def to_dict(self) -> dict[str, Any]:
        # Unlike the manifest, a partial keeps explicit empty lists: they tell
        # which kind of phase it was.
        data = self.model_dump(mode='json', by_alias=True, exclude_none=True)
        return {
            key: omit_empty(value) if isinstance(value, list) else value
            for key, value in data.items() if value != ''
        }


class BuildDetails(Record):
    """Start time of a build, written when the build is first created."""
    timestamp: datetime = Field(alias='Timestamp')
