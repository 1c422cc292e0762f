from buildinfo.models.artifact import Artifact
from buildinfo.models.checksum import Checksum
from buildinfo.models.dependency import Dependency
from buildinfo.models.manifest import Agent
from buildinfo.models.manifest import Manifest
from buildinfo.models.manifest import Partial
from buildinfo.models.manifest import Vcs
from buildinfo.models.module import Module
from buildinfo.models.module import ModuleType

__all__ = [
    'Agent',
    'Artifact',
    'Checksum',
    'Dependency',
    'Manifest',
    'Module',
    'ModuleType',
    'Partial',
    'Vcs',
]
