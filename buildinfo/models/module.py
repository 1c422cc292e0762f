from enum import Enum
from typing import Annotated
from typing import Any

from pydantic import Discriminator
from pydantic import Field
from pydantic import field_validator
from pydantic import RootModel
from pydantic import Tag

from buildinfo.models.artifact import Artifact
from buildinfo.models.base import ChecksumRecord
from buildinfo.models.dependency import Dependency


class ModuleType(str, Enum):
    # Aggregate of other manifests
    BUILD = 'build'

    GENERIC = 'generic'
    MAVEN = 'maven'
    GRADLE = 'gradle'
    DOCKER = 'docker'
    NPM = 'npm'
    NUGET = 'nuget'
    GO = 'go'
    PYTHON = 'python'
    TERRAFORM = 'terraform'
    CARGO = 'cargo'
    CONAN = 'conan'
    HELM = 'helm'

    def __str__(self) -> str:
        return self.value


class StringProperties(RootModel[dict[str, str]]):
    """Flat key -> string metadata, the common case."""


class StructuredProperties(RootModel[dict[str, Any]]):
    """Metadata with nested or non-string values, kept as given."""


def _properties_kind(value: Any) -> str | None:
    if isinstance(value, StringProperties):
        return 'strings'
    if isinstance(value, StructuredProperties):
        return 'structured'
    if isinstance(value, dict):
        return 'strings' if all(isinstance(v, str) for v in value.values()) else 'structured'
    return None


# Free-form module metadata: absent, a plain string map, or a structured record.
ModuleProperties = Annotated[
    Annotated[StringProperties, Tag('strings')] | Annotated[StructuredProperties, Tag('structured')],
    Discriminator(_properties_kind),
] | None


class Module(ChecksumRecord):
    """
    One logical build unit, e.g. a single package-manager project.

    The embedded checksum is only set when the module stands for a
    referenced manifest inside an aggregate ('build') manifest.
    """
    type: str = ''
    properties: ModuleProperties = None
    id: str = ''
    artifacts: list[Artifact] = Field(default_factory=list)
    excluded_artifacts: list[Artifact] = Field(
        default_factory=list, alias='excludedArtifacts',
    )
    dependencies: list[Dependency] = Field(default_factory=list)
    # Parent module id in multi-module projects. Internal use only.
    parent: str = ''

    @field_validator('type', mode='before')
    @classmethod
    def parse_type(cls, v: Any) -> str:
        if isinstance(v, Enum):
            return v.value
        return v or ''

    @property
    def is_aggregate(self) -> bool:
        return self.type == ModuleType.BUILD.value
