from buildinfo.models import Artifact
from buildinfo.models import Checksum
from buildinfo.models import Dependency
from buildinfo.models import Manifest
from buildinfo.models import Module
from buildinfo.services.merge_service import merge
from buildinfo.services.merge_service import merge_artifacts
from buildinfo.services.merge_service import merge_dependencies
from buildinfo.services.merge_service import merge_requested_by
from buildinfo.services.merge_service import merge_scopes


def make_manifest() -> Manifest:
    return Manifest(
        name='build',
        number='1',
        modules=[
            Module(
                id='app:1.0',
                type='npm',
                artifacts=[
                    Artifact(name='app.tgz', path='dist/app.tgz', checksum=Checksum(sha1='a1')),
                ],
                dependencies=[
                    Dependency(id='left:1', scopes=['prod'], requested_by=[['app:1.0']]),
                    Dependency(id='right:1', checksum=Checksum(sha1='r1')),
                ],
            ),
            Module(id='lib:1.0', type='npm'),
        ],
    )


class TestMerge:
    def test_idempotent(self):
        """Test merging a manifest into a copy of itself changes nothing."""
        target = make_manifest()
        merge(make_manifest(), target)
        assert target == make_manifest()

    def test_repeated_merge_is_idempotent(self):
        """Test merging the same source twice equals merging it once."""
        source = Manifest(modules=[Module(id='new', dependencies=[Dependency(id='x:1')])])
        once = make_manifest()
        merge(source, once)
        twice = make_manifest()
        merge(source, twice)
        merge(source, twice)
        assert once == twice
        assert [m.id for m in once.modules] == ['app:1.0', 'lib:1.0', 'new']

    def test_appended_module_is_a_copy(self):
        """Test the target never shares records with the source."""
        source = Manifest(modules=[Module(id='new', dependencies=[Dependency(id='x:1')])])
        target = Manifest()
        merge(source, target)
        source.modules[0].dependencies[0].scopes.append('dev')
        assert target.modules[0].dependencies[0].scopes == []

    def test_modules_match_on_id(self):
        """Test a module with a known id is merged, not duplicated."""
        target = make_manifest()
        merge(Manifest(modules=[Module(id='lib:1.0', dependencies=[Dependency(id='z:1')])]), target)
        assert len(target.modules) == 2
        assert [d.id for d in target.get_module('lib:1.0').dependencies] == ['z:1']


class TestMergeArtifacts:
    def test_same_checksum_keeps_existing(self):
        """Test identical bytes keep the first-seen artifact whatever its path."""
        target = [Artifact(name='a.war', path='old/a.war', checksum=Checksum(sha1='1'))]
        merge_artifacts([Artifact(name='b.war', path='new/b.war', checksum=Checksum(sha1='1'))], target)
        assert len(target) == 1
        assert target[0].path == 'old/a.war'

    def test_rebuild_in_same_directory_replaces(self):
        """Test a same-name artifact in the same directory supersedes the old one."""
        target = [Artifact(name='a.war', path='dir/a.war', checksum=Checksum(sha1='1'))]
        merge_artifacts([Artifact(name='a.war', path='dir/a.war', checksum=Checksum(sha1='2'))], target)
        assert len(target) == 1
        assert target[0].checksum.sha1 == '2'

    def test_same_deployment_repo_replaces(self):
        """Test a same-name artifact deployed to the same repository supersedes."""
        target = [Artifact(name='a', path='x/a', original_deployment_repo='repo', checksum=Checksum(sha1='1'))]
        merge_artifacts(
            [Artifact(name='a', path='y/a', original_deployment_repo='repo', checksum=Checksum(sha1='2'))],
            target,
        )
        assert [a.path for a in target] == ['y/a']

    def test_empty_deployment_repo_is_a_wildcard(self):
        """Test an unknown deployment repository matches any repository."""
        target = [Artifact(name='a', path='x/a', original_deployment_repo='repo', checksum=Checksum(sha1='1'))]
        merge_artifacts([Artifact(name='a', path='y/a', checksum=Checksum(sha1='2'))], target)
        assert [a.path for a in target] == ['y/a']

    def test_different_repositories_append(self):
        """Test artifacts from different directories and repositories coexist."""
        target = [Artifact(name='a', path='x/a', original_deployment_repo='r1', checksum=Checksum(sha1='1'))]
        merge_artifacts(
            [Artifact(name='a', path='y/a', original_deployment_repo='r2', checksum=Checksum(sha1='2'))],
            target,
        )
        assert [a.path for a in target] == ['x/a', 'y/a']

    def test_path_without_separator_has_empty_directory(self):
        """Test two top-level artifacts share the empty directory."""
        assert Artifact(path='a.jar').directory == ''
        assert Artifact(path='x/y/a.jar').directory == 'x/y'


class TestMergeDependencies:
    def test_scope_union(self):
        """Test merging one record into its twin unions scopes and chains."""
        target = [Dependency(id='d:1', scopes=['a', 'b'], requested_by=[['y']])]
        merge_dependencies([Dependency(id='d:1', scopes=['a'], requested_by=[['x']])], target)
        assert len(target) == 1
        assert set(target[0].scopes) == {'a', 'b'}
        assert sorted(target[0].requested_by) == [['x'], ['y']]

    def test_different_checksum_is_a_distinct_record(self):
        """Test records with the same id but different bytes are never collapsed."""
        target = [Dependency(id='d:1', checksum=Checksum(sha1='1'))]
        merge_dependencies([Dependency(id='d:1', checksum=Checksum(sha1='2'))], target)
        assert len(target) == 2

    def test_merge_scopes_preserves_first_seen_order(self):
        assert merge_scopes(['b', 'a'], ['c', 'a', 'b']) == ['b', 'a', 'c']

    def test_merge_requested_by_is_positional(self):
        """Test chains with the same ids in another order are different chains."""
        merged = merge_requested_by([['a', 'b']], [['b', 'a'], ['a', 'b']])
        assert merged == [['a', 'b'], ['b', 'a']]
