from unittest.mock import patch

import pytest

from buildinfo.collectors.go import encode_module_path
from buildinfo.collectors.go import GoCollector
from buildinfo.collectors.go import parse_mod_graph
from buildinfo.collectors.go import parse_module_list
from buildinfo.core.checksum import file_checksums
from buildinfo.core.errors import CollectorError

MOD_GRAPH = """\
example.com/app github.com/Foo/bar@v1.0.0
example.com/app golang.org/x/text@v0.3.0
github.com/Foo/bar@v1.0.0 golang.org/x/text@v0.3.0
github.com/Foo/bar@v1.0.0 example.com/missing@v2.0.0
"""

MOD_LIST = """\
example.com/app
github.com/Foo/bar v1.0.0
golang.org/x/text v0.3.0
example.com/missing v2.0.0
"""


def test_parse_mod_graph():
    graph = parse_mod_graph(MOD_GRAPH)
    assert graph == {
        'example.com/app': ['github.com/Foo/bar:1.0.0', 'golang.org/x/text:0.3.0'],
        'github.com/Foo/bar:1.0.0': ['golang.org/x/text:0.3.0', 'example.com/missing:2.0.0'],
    }


def test_parse_module_list_skips_main_module():
    assert parse_module_list(MOD_LIST) == [
        'github.com/Foo/bar:1.0.0',
        'golang.org/x/text:0.3.0',
        'example.com/missing:2.0.0',
    ]


def test_encode_module_path():
    """Test upper-case letters are escaped the way the module cache stores them."""
    assert encode_module_path('github.com/BurntSushi/toml') == 'github.com/!burnt!sushi/toml'


@pytest.fixture
def project(tmp_path):
    project_dir = tmp_path / 'app'
    project_dir.mkdir()
    (project_dir / 'go.mod').write_text('module example.com/app\n')
    download = tmp_path / 'gomod' / 'cache' / 'download'
    for path, version in (('github.com/!foo/bar', 'v1.0.0'), ('golang.org/x/text', 'v0.3.0')):
        zip_dir = download / path / '@v'
        zip_dir.mkdir(parents=True)
        (zip_dir / f"{version}.zip").write_bytes(f"{path}@{version}".encode())
    return project_dir


def fake_go(tmp_path):
    outputs = {
        ('list', '-m'): 'example.com/app\n',
        ('mod', 'graph'): MOD_GRAPH,
        ('list', '-m', 'all'): MOD_LIST,
        ('env', 'GOMODCACHE'): f"{tmp_path / 'gomod'}\n",
    }
    return lambda *args, **kwargs: outputs[args]


def test_collect(project, tmp_path):
    """Test modules with a downloaded zip become dependencies with chains and checksums."""
    with patch.object(GoCollector, 'run', side_effect=fake_go(tmp_path)):
        module = GoCollector(project).collect()

    assert module.id == 'example.com/app'
    assert module.type == 'go'
    dependencies = {d.id: d for d in module.dependencies}
    assert sorted(dependencies) == ['github.com/Foo/bar:1.0.0', 'golang.org/x/text:0.3.0']

    bar = dependencies['github.com/Foo/bar:1.0.0']
    assert bar.type == 'zip'
    assert bar.requested_by == [['example.com/app']]
    zip_path = tmp_path / 'gomod' / 'cache' / 'download' / 'github.com/!foo/bar' / '@v' / 'v1.0.0.zip'
    assert bar.checksum == file_checksums(zip_path)

    text = dependencies['golang.org/x/text:0.3.0']
    assert sorted(text.requested_by) == [['example.com/app'], ['github.com/Foo/bar:1.0.0', 'example.com/app']]

    assert (project / '.buildinfo' / 'projects' / 'go-deps.cache.json').exists()


def test_traverse_callback(project, tmp_path):
    """Test a caller-supplied callback decides which dependencies stay."""
    with patch.object(GoCollector, 'run', side_effect=fake_go(tmp_path)):
        module = GoCollector(project, traverse_func=lambda d: d.id.startswith('golang.org')).collect()
    assert [d.id for d in module.dependencies] == ['golang.org/x/text:0.3.0']


def test_missing_go_mod(tmp_path):
    with pytest.raises(CollectorError, match='go.mod'):
        GoCollector(tmp_path).collect()
