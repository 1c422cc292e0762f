import json
import xml.etree.ElementTree as ET

import pytest

from buildinfo.core.errors import PackageIdError
from buildinfo.core.errors import UnsupportedFormatError
from buildinfo.models import Checksum
from buildinfo.models import Dependency
from buildinfo.models import Manifest
from buildinfo.models import Module
from buildinfo.services.sbom_service import CYCLONEDX_XML_NAMESPACE
from buildinfo.services.sbom_service import OutputFormat
from buildinfo.services.sbom_service import parse_package_id
from buildinfo.services.sbom_service import render
from buildinfo.services.sbom_service import to_bom

CHECKSUM = Checksum(sha1='s1', md5='m5', sha256='s256')


def make_manifest(reverse: bool = False) -> Manifest:
    dependencies = [
        Dependency(id='org:b:2.0', requested_by=[['app:1.0']], checksum=CHECKSUM),
        Dependency(id='c:3.0', requested_by=[['org:b:2.0', 'app:1.0'], ['app:1.0']]),
        Dependency(id='a', requested_by=[['app:1.0']]),
    ]
    if reverse:
        dependencies.reverse()
    modules = [
        Module(id='app:1.0', type='npm', dependencies=dependencies),
        Module(id='nested:1', type='build', dependencies=[Dependency(id='hidden:1')]),
    ]
    if reverse:
        modules.reverse()
    return Manifest(name='b', number='1', modules=modules)


class TestParsePackageId:
    @pytest.mark.parametrize(
        'package_id,expected', [
            ('g:a:1.0', ('g', 'a', '1.0')),
            ('a:1.0', ('', 'a', '1.0')),
            ('a', ('', 'a', '')),
        ],
    )
    def test_segments(self, package_id, expected):
        assert parse_package_id(package_id) == expected

    def test_too_many_segments(self):
        """Test the offending id is part of the error."""
        with pytest.raises(PackageIdError, match='a:b:c:d'):
            parse_package_id('a:b:c:d')


class TestToBom:
    def test_components(self):
        bom = to_bom(make_manifest())
        assert [c.bom_ref for c in bom.components] == ['a', 'app:1.0', 'c:3.0', 'org:b:2.0']
        kinds = {c.bom_ref: c.type for c in bom.components}
        assert kinds['app:1.0'] == 'application'
        assert kinds['c:3.0'] == 'library'

    def test_aggregate_modules_are_skipped(self):
        refs = [c.bom_ref for c in to_bom(make_manifest()).components]
        assert 'nested:1' not in refs
        assert 'hidden:1' not in refs

    def test_hashes_only_with_checksum(self):
        components = {c.bom_ref: c for c in to_bom(make_manifest()).components}
        assert components['org:b:2.0'].hashes == [('SHA-256', 's256'), ('SHA-1', 's1'), ('MD5', 'm5')]
        assert components['a'].hashes == []

    def test_edges_from_nearest_parent(self):
        bom = to_bom(make_manifest())
        edges = {d.ref: d.depends_on for d in bom.dependencies}
        assert edges == {'app:1.0': ['a', 'c:3.0', 'org:b:2.0'], 'org:b:2.0': ['c:3.0']}

    def test_duplicate_dependencies_collapse(self):
        """Test the same dependency in two modules yields one component."""
        manifest = Manifest(modules=[
            Module(id='m1', dependencies=[Dependency(id='d:1', requested_by=[['m1']])]),
            Module(id='m2', dependencies=[Dependency(id='d:1', requested_by=[['m2']])]),
        ])
        bom = to_bom(manifest)
        assert [c.bom_ref for c in bom.components] == ['d:1', 'm1', 'm2']
        assert {d.ref for d in bom.dependencies} == {'m1', 'm2'}

    def test_malformed_id_aborts(self):
        manifest = Manifest(modules=[Module(id='m', dependencies=[Dependency(id='a:b:c:d')])])
        with pytest.raises(PackageIdError):
            to_bom(manifest)


class TestRender:
    @pytest.mark.parametrize('output_format', [None, OutputFormat.CYCLONEDX_JSON, OutputFormat.CYCLONEDX_XML])
    def test_deterministic(self, output_format):
        """Test collection order never changes the BOM output."""
        first = render(make_manifest(), output_format)
        assert first == render(make_manifest(), output_format)
        if output_format is not None:
            assert first == render(make_manifest(reverse=True), output_format)

    def test_same_id_different_checksums_in_any_order(self):
        """Test equal ids with different digests export the same whatever their order."""
        dependencies = [
            Dependency(id='d:1', checksum=Checksum(sha1='aa'), requested_by=[['m']]),
            Dependency(id='d:1', checksum=Checksum(sha1='bb'), requested_by=[['m']]),
        ]
        forward = Manifest(modules=[Module(id='m', dependencies=dependencies)])
        backward = Manifest(modules=[Module(id='m', dependencies=list(reversed(dependencies)))])
        for output_format in (OutputFormat.CYCLONEDX_JSON, OutputFormat.CYCLONEDX_XML):
            assert render(forward, output_format) == render(backward, output_format)

        data = json.loads(render(forward, OutputFormat.CYCLONEDX_JSON))
        digests = [c['hashes'][1]['content'] for c in data['components'] if c['bom-ref'] == 'd:1']
        assert digests == ['aa', 'bb']

    def test_manifest_json_sorts_modules(self):
        modules = [Module(id='b:1', dependencies=[Dependency(id='d:1')]), Module(id='a:1')]
        output = render(Manifest(name='n', modules=modules))
        assert [m['id'] for m in json.loads(output)['modules']] == ['a:1', 'b:1']
        assert output == render(Manifest(name='n', modules=list(reversed(modules))))
        assert [m.id for m in modules] == ['b:1', 'a:1']

    def test_json(self):
        data = json.loads(render(make_manifest(), OutputFormat.CYCLONEDX_JSON))
        assert data['bomFormat'] == 'CycloneDX'
        component = next(c for c in data['components'] if c['bom-ref'] == 'org:b:2.0')
        assert component == {
            'bom-ref': 'org:b:2.0',
            'type': 'library',
            'group': 'org',
            'name': 'b',
            'version': '2.0',
            'hashes': [
                {'alg': 'SHA-256', 'content': 's256'},
                {'alg': 'SHA-1', 'content': 's1'},
                {'alg': 'MD5', 'content': 'm5'},
            ],
        }
        assert {'ref': 'org:b:2.0', 'dependsOn': ['c:3.0']} in data['dependencies']

    def test_xml(self):
        output = render(make_manifest(), OutputFormat.CYCLONEDX_XML)
        assert output.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        root = ET.fromstring(output.split('\n', 1)[1])
        ns = {'bom': CYCLONEDX_XML_NAMESPACE}
        refs = [c.get('bom-ref') for c in root.findall('bom:components/bom:component', ns)]
        assert refs == ['a', 'app:1.0', 'c:3.0', 'org:b:2.0']
        hashes = root.findall("bom:components/bom:component[@bom-ref='org:b:2.0']/bom:hashes/bom:hash", ns)
        assert [h.get('alg') for h in hashes] == ['SHA-256', 'SHA-1', 'MD5']

    def test_default_is_manifest_json(self):
        output = render(make_manifest())
        assert json.loads(output)['name'] == 'b'
        assert output.startswith('{\n  "name"')

    def test_requested_by_cap(self):
        chains = [[f"p{i}"] for i in range(20)]
        manifest = Manifest(modules=[Module(id='m', dependencies=[Dependency(id='d', requested_by=chains)])])
        data = json.loads(render(manifest, requested_by_max_length=15))
        assert len(data['modules'][0]['dependencies'][0]['requestedBy']) == 15
        assert len(manifest.modules[0].dependencies[0].requested_by) == 20

    @pytest.mark.parametrize('output_format', [OutputFormat.CYCLONEDX_JSON, OutputFormat.CYCLONEDX_XML])
    def test_requested_by_cap_keeps_bom_edges(self, output_format):
        """Test every requesting parent gets an edge even past the chain cap."""
        chains = [[f"p{i:02d}"] for i in range(20)]
        manifest = Manifest(modules=[Module(id='m', dependencies=[Dependency(id='d', requested_by=chains)])])
        bom = to_bom(manifest)
        assert [dep.ref for dep in bom.dependencies] == [f"p{i:02d}" for i in range(20)]

        output = render(manifest, output_format, requested_by_max_length=15)
        if output_format is OutputFormat.CYCLONEDX_JSON:
            refs = [dep['ref'] for dep in json.loads(output)['dependencies']]
        else:
            ns = {'bom': CYCLONEDX_XML_NAMESPACE}
            refs = [node.get('ref') for node in ET.fromstring(output).findall('bom:dependencies/bom:dependency', ns)]
        assert refs == [f"p{i:02d}" for i in range(20)]


class TestOutputFormat:
    def test_parse(self):
        assert OutputFormat.parse('cyclonedx/json') is OutputFormat.CYCLONEDX_JSON
        assert OutputFormat.parse('') is None
        assert OutputFormat.parse(None) is None

    def test_unsupported_names_value_and_flag(self):
        with pytest.raises(UnsupportedFormatError) as exc_info:
            OutputFormat.parse('spdx')
        assert "'spdx'" in str(exc_info.value)
        assert "'--format'" in str(exc_info.value)
