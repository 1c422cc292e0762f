from buildinfo.collectors.base import BaseCollector
from buildinfo.collectors.go import GoCollector
from buildinfo.collectors.gradle import GradleCollector
from buildinfo.collectors.helm import HelmCollector
from buildinfo.collectors.maven import MavenCollector
from buildinfo.collectors.npm import NpmCollector
from buildinfo.collectors.nuget import DotnetCollector
from buildinfo.collectors.nuget import NugetCollector
from buildinfo.collectors.python import PipCollector
from buildinfo.collectors.python import PipenvCollector
from buildinfo.collectors.twine import TwineCollector
from buildinfo.collectors.yarn import YarnCollector

# CLI command name -> collector
COLLECTORS: dict[str, type[BaseCollector]] = {
    'go': GoCollector,
    'mvn': MavenCollector,
    'gradle': GradleCollector,
    'npm': NpmCollector,
    'yarn': YarnCollector,
    'nuget': NugetCollector,
    'dotnet': DotnetCollector,
    'pip': PipCollector,
    'pipenv': PipenvCollector,
    'twine': TwineCollector,
    'helm': HelmCollector,
}

__all__ = ['BaseCollector', 'COLLECTORS']
