from pathlib import Path
from unittest.mock import patch

import pytest

from buildinfo.collectors.maven import Coordinates
from buildinfo.collectors.maven import MavenCollector
from buildinfo.collectors.maven import parse_tgf
from buildinfo.core.checksum import file_checksums
from buildinfo.core.config import CollectorConfig
from buildinfo.core.errors import CollectorError
from buildinfo.core.errors import GraphParseError

TGF = '''1 com.example:app:jar:1.0.0
2 org.lib:core:jar:2.0.0:compile
3 org.lib:util:jar:tests:3.0.0:test
#
1 2 compile
2 3 test
1 com.example:sub:jar:1.0.0
2 org.lib:core:jar:2.0.0:compile
4 org.lib:extra:pom:1.1
#
1 2 compile
1 4
'''


def test_coordinates():
    coordinates = Coordinates('org.lib:util:jar:tests:3.0.0:test')
    assert coordinates.id == 'org.lib:util:3.0.0'
    assert (coordinates.classifier, coordinates.scope) == ('tests', 'test')
    assert coordinates.local_path(Path('/repo')) == Path('/repo/org/lib/util/3.0.0/util-3.0.0-tests.jar')

    assert Coordinates('org.lib:core:jar:2.0.0:compile').scope == 'compile'
    assert Coordinates('org.lib:core:jar:linux:2.0.0').classifier == 'linux'
    assert Coordinates('com.example:app:jar:1.0.0').version == '1.0.0'

    with pytest.raises(GraphParseError):
        Coordinates('org.lib:core')


def test_parse_tgf():
    """Test concatenated documents are split per module."""
    documents = parse_tgf(TGF)
    assert [module.id for module, _ in documents] == ['com.example:app:1.0.0', 'com.example:sub:1.0.0']
    edges = [(parent.id, child.id, scope) for parent, child, scope in documents[1][1]]
    assert edges == [
        ('com.example:sub:1.0.0', 'org.lib:core:2.0.0', 'compile'),
        ('com.example:sub:1.0.0', 'org.lib:extra:1.1', ''),
    ]


def test_parse_tgf_rejects_unknown_edge():
    with pytest.raises(GraphParseError, match='edge'):
        parse_tgf('1 a:b:jar:1\n#\n1 7\n')


@pytest.fixture
def project(tmp_path):
    project_dir = tmp_path / 'app'
    project_dir.mkdir()
    (project_dir / 'pom.xml').write_text('<project/>')
    jar = tmp_path / 'm2' / 'org' / 'lib' / 'core' / '2.0.0' / 'core-2.0.0.jar'
    jar.parent.mkdir(parents=True)
    jar.write_bytes(b'core jar')
    return project_dir, jar


def fake_mvn(*args, **kwargs):
    output_file = next(arg for arg in args if arg.startswith('-DoutputFile='))
    Path(output_file.split('=', 1)[1]).write_text(TGF)
    return ''


def test_collect(project, tmp_path):
    project_dir, jar = project
    collector = MavenCollector(project_dir)
    collector.config = CollectorConfig(maven_repo_local=tmp_path / 'm2')
    with patch.object(MavenCollector, 'run', side_effect=fake_mvn) as run:
        module = collector.collect()

    run.assert_called_once()
    assert module.id == 'com.example:app:1.0.0'
    assert module.type == 'maven'
    dependencies = {d.id: d for d in module.dependencies}
    assert sorted(dependencies) == ['org.lib:core:2.0.0', 'org.lib:extra:1.1', 'org.lib:util:3.0.0']

    core = dependencies['org.lib:core:2.0.0']
    assert core.type == 'jar'
    assert core.scopes == ['compile']
    assert core.requested_by == [['com.example:app:1.0.0']]
    assert core.checksum == file_checksums(jar)

    util = dependencies['org.lib:util:3.0.0']
    assert util.scopes == ['test']
    assert util.requested_by == [['org.lib:core:2.0.0', 'com.example:app:1.0.0']]
    assert util.checksum.is_empty()

    # Sub-module dependencies hang off the same root
    assert dependencies['org.lib:extra:1.1'].requested_by == [['com.example:app:1.0.0']]
    assert dependencies['org.lib:extra:1.1'].type == 'pom'


def test_missing_pom(tmp_path):
    with pytest.raises(CollectorError, match='pom.xml'):
        MavenCollector(tmp_path).collect()


def test_empty_tree(project):
    project_dir, _ = project
    with patch.object(MavenCollector, 'run', return_value=''):
        with pytest.raises(GraphParseError, match='no dependency graph'):
            MavenCollector(project_dir).collect()
