import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from buildinfo.__main__ import app
from buildinfo.models import Dependency
from buildinfo.models import Manifest
from buildinfo.models import Module
from buildinfo.services.build_service import BuildInfoService

runner = CliRunner()


class FakeCollector:
    instances = []

    def __init__(self, path, module_id='', threads=None):
        self.project_dir = Path(path).resolve()
        self.module_id = module_id
        self.threads = threads
        FakeCollector.instances.append(self)

    def collect(self):
        return Module(
            id=self.module_id or 'app:1.0',
            type='npm',
            dependencies=[Dependency(id='dep:2.0', requested_by=[['app:1.0']])],
        )


@pytest.fixture
def home(tmp_path):
    FakeCollector.instances = []
    with patch('buildinfo.commands.collect.COLLECTORS', {'npm': FakeCollector}), \
            patch('buildinfo.commands.collect.BuildInfoService', lambda: BuildInfoService(home_dir=tmp_path)):
        yield tmp_path


def test_lists_every_ecosystem():
    result = runner.invoke(app, ['--help'])
    assert result.exit_code == 0
    for name in ('go', 'mvn', 'gradle', 'npm', 'nuget', 'dotnet', 'yarn', 'pip', 'pipenv', 'twine'):
        assert name in result.output


def test_unsupported_format_names_value_and_flag(home):
    """Test a bad --format fails before anything is collected."""
    result = runner.invoke(app, ['npm', '--format', 'spdx'])
    assert result.exit_code == 1
    assert 'spdx' in result.output
    assert '--format' in result.output
    assert FakeCollector.instances == []


def test_prints_manifest(home):
    """Test the default output is the build-info JSON and the build is cleaned up."""
    result = runner.invoke(app, ['npm', '--build-name', 'b', '--build-number', '3', '--threads', '2'])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data['name'] == 'b'
    assert data['number'] == '3'
    assert data['agent']['name'] == 'buildinfo'
    assert data['modules'][0]['dependencies'][0]['id'] == 'dep:2.0'
    assert FakeCollector.instances[0].threads == 2
    assert not (home / 'builds' / 'b_3').exists()


def test_prints_cyclonedx(home):
    result = runner.invoke(app, ['npm', '--module', 'app:1.0', '--format', 'cyclonedx/json'])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data['bomFormat'] == 'CycloneDX'
    assert data['dependencies'] == [{'ref': 'app:1.0', 'dependsOn': ['dep:2.0']}]


def test_convert(tmp_path):
    manifest_path = tmp_path / 'build.json'
    manifest_path.write_text(
        Manifest(modules=[Module(id='a:1', dependencies=[Dependency(id='b:1', requested_by=[['a:1']])])]).to_json(),
    )
    result = runner.invoke(app, ['convert', str(manifest_path), '--format', 'cyclonedx/xml'])
    assert result.exit_code == 0, result.output
    assert 'bom-ref="b:1"' in result.stdout


def test_verify(tmp_path):
    actual = tmp_path / 'actual.json'
    expected = tmp_path / 'expected.json'
    actual.write_text(Manifest(modules=[Module(id='a:1.2.3')]).to_json())

    expected.write_text(Manifest(modules=[Module(id=r'a:\d+\.\d+\.\d+')]).to_json())
    assert runner.invoke(app, ['verify', str(actual), str(expected)]).exit_code == 0

    expected.write_text(Manifest(modules=[Module(id='b:.*')]).to_json())
    result = runner.invoke(app, ['verify', str(actual), str(expected)])
    assert result.exit_code == 1
    assert 'missing' in result.output
