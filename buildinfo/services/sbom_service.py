"""Conversion of a manifest into a CycloneDX bill of materials."""
import json
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from xml.etree import ElementTree as ET

import structlog

from buildinfo.core.errors import PackageIdError
from buildinfo.core.errors import UnsupportedFormatError
from buildinfo.models.dependency import Dependency
from buildinfo.models.manifest import Manifest
from buildinfo.services.merge_service import merge_dependencies
from buildinfo.services.provenance_service import REQUESTED_BY_MAX_LENGTH
from buildinfo.services.provenance_service import truncate_requested_by

logger = structlog.get_logger('sbom_service')

CYCLONEDX_SPEC_VERSION = '1.5'
CYCLONEDX_XML_NAMESPACE = f"http://cyclonedx.org/schema/bom/{CYCLONEDX_SPEC_VERSION}"


class OutputFormat(str, Enum):
    CYCLONEDX_XML = 'cyclonedx/xml'
    CYCLONEDX_JSON = 'cyclonedx/json'

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | None, flag: str = '--format') -> 'OutputFormat | None':
        """None or an empty value selects the plain manifest output."""
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            supported = ', '.join(f"'{f.value}'" for f in cls)
            raise UnsupportedFormatError(
                f"Unsupported value '{value}' for the '{flag}' flag. "
                f"Supported values are {supported}.",
            ) from None


@dataclass
class BomComponent:
    bom_ref: str
    type: str
    name: str
    group: str = ''
    version: str = ''
    # (algorithm, digest) pairs
    hashes: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class BomDependency:
    ref: str
    depends_on: list[str] = field(default_factory=list)


@dataclass
class Bom:
    components: list[BomComponent] = field(default_factory=list)
    dependencies: list[BomDependency] = field(default_factory=list)


def parse_package_id(package_id: str) -> tuple[str, str, str]:
    """Splits an id into (group, name, version)."""
    parts = package_id.split(':')
    if len(parts) == 1:
        return '', parts[0], ''
    if len(parts) == 2:
        return '', parts[0], parts[1]
    if len(parts) == 3:
        return parts[0], parts[1], parts[2]
    raise PackageIdError(package_id)


def to_bom(manifest: Manifest) -> Bom:
    """
    Flattens every non-aggregate module and its dependencies into one
    component graph. Components, edges and edge targets come out sorted by
    reference, so equal manifests always export identically.
    """
    module_ids: set[str] = set()
    packages: list[Dependency] = []
    for module in manifest.modules:
        # Nested manifests of an aggregate build are not flattened
        if module.is_aggregate:
            continue
        module_ids.add(module.id)
        merge_dependencies([Dependency(id=module.id), *module.dependencies], packages)

    components = []
    edges: dict[str, set[str]] = {}
    for package in packages:
        group, name, version = parse_package_id(package.id)
        component = BomComponent(
            bom_ref=package.id,
            type='application' if package.id in module_ids else 'library',
            name=name,
            group=group,
            version=version,
        )
        if not package.checksum.is_empty():
            component.hashes = [
                ('SHA-256', package.checksum.sha256),
                ('SHA-1', package.checksum.sha1),
                ('MD5', package.checksum.md5),
            ]
        components.append(component)

        for chain in package.requested_by:
            if chain:
                edges.setdefault(chain[0], set()).add(package.id)

    # Same-id packages with different checksums stay apart; order them by digest
    components.sort(key=lambda c: (c.bom_ref, c.hashes))
    dependencies = [
        BomDependency(ref=ref, depends_on=sorted(children))
        for ref, children in sorted(edges.items())
    ]
    logger.debug(
        'BOM created', components=len(components), dependencies=len(dependencies),
    )
    return Bom(components=components, dependencies=dependencies)


def bom_to_dict(bom: Bom) -> dict:
    components = []
    for component in bom.components:
        entry = {'bom-ref': component.bom_ref, 'type': component.type}
        if component.group:
            entry['group'] = component.group
        entry['name'] = component.name
        if component.version:
            entry['version'] = component.version
        if component.hashes:
            entry['hashes'] = [
                {'alg': alg, 'content': content} for alg, content in component.hashes
            ]
        components.append(entry)
    return {
        'bomFormat': 'CycloneDX',
        'specVersion': CYCLONEDX_SPEC_VERSION,
        'version': 1,
        'components': components,
        'dependencies': [
            {'ref': dep.ref, 'dependsOn': dep.depends_on} for dep in bom.dependencies
        ],
    }


def render_json(bom: Bom) -> str:
    return json.dumps(bom_to_dict(bom), indent=2)


def render_xml(bom: Bom) -> str:
    root = ET.Element(
        'bom', {'xmlns': CYCLONEDX_XML_NAMESPACE, 'version': '1'},
    )
    components = ET.SubElement(root, 'components')
    for component in bom.components:
        node = ET.SubElement(
            components, 'component',
            {'type': component.type, 'bom-ref': component.bom_ref},
        )
        if component.group:
            ET.SubElement(node, 'group').text = component.group
        ET.SubElement(node, 'name').text = component.name
        if component.version:
            ET.SubElement(node, 'version').text = component.version
        if component.hashes:
            hashes = ET.SubElement(node, 'hashes')
            for alg, content in component.hashes:
                ET.SubElement(hashes, 'hash', {'alg': alg}).text = content
    dependencies = ET.SubElement(root, 'dependencies')
    for dep in bom.dependencies:
        node = ET.SubElement(dependencies, 'dependency', {'ref': dep.ref})
        for child in dep.depends_on:
            ET.SubElement(node, 'dependency', {'ref': child})
    ET.indent(root, space='  ')
    body = ET.tostring(root, encoding='unicode')
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}'


def render(
    manifest: Manifest,
    output_format: OutputFormat | None = None,
    requested_by_max_length: int = REQUESTED_BY_MAX_LENGTH,
) -> str:
    """
    Renders a finished manifest for output.

    BOM edges are built from every chain. The requested-by cap only shortens
    the chains printed in the manifest JSON, on a copy whose modules are
    sorted by id.
    """
    if output_format is OutputFormat.CYCLONEDX_XML:
        return render_xml(to_bom(manifest))
    if output_format is OutputFormat.CYCLONEDX_JSON:
        return render_json(to_bom(manifest))
    manifest = truncate_requested_by(manifest, requested_by_max_length)
    manifest.modules.sort(key=lambda m: m.id)
    return manifest.to_json(indent=2)
