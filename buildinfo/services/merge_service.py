"""
Merging of manifests produced by successive build phases.

Every function here mutates its target in place and is safe to repeat:
merging data that is already present never introduces duplicates.
"""
import structlog

from buildinfo.models.artifact import Artifact
from buildinfo.models.dependency import Dependency
from buildinfo.models.manifest import Manifest
from buildinfo.models.module import Module

logger = structlog.get_logger('merge_service')


def merge(source: Manifest, target: Manifest) -> Manifest:
    """Merges the modules of `source` into `target` and returns `target`."""
    merge_modules(source.modules, target.modules)
    return target


def merge_modules(source: list[Module], target: list[Module]) -> None:
    for module in source:
        existing = next((m for m in target if m.id == module.id), None)
        if existing is None:
            target.append(module.model_copy(deep=True))
            continue
        merge_module(module, existing)


def merge_module(source: Module, target: Module) -> None:
    merge_artifacts(source.artifacts, target.artifacts)
    merge_artifacts(source.excluded_artifacts, target.excluded_artifacts)
    merge_dependencies(source.dependencies, target.dependencies)


def merge_artifacts(source: list[Artifact], target: list[Artifact]) -> None:
    for artifact in source:
        # Identical bytes: already there, whatever its name or path
        if any(existing.checksum == artifact.checksum for existing in target):
            continue

        index = _find_logical_artifact(target, artifact)
        if index is None:
            target.append(artifact.model_copy(deep=True))
            continue

        logger.debug(
            'Replacing rebuilt artifact',
            name=artifact.name,
            old_path=target[index].path,
            new_path=artifact.path,
        )
        target[index] = artifact.model_copy(deep=True)


def _find_logical_artifact(artifacts: list[Artifact], artifact: Artifact) -> int | None:
    for index, existing in enumerate(artifacts):
        if existing.is_same_logical_artifact(artifact):
            return index
    return None


def merge_dependencies(source: list[Dependency], target: list[Dependency]) -> None:
    for dependency in source:
        identity = dependency.identity()
        existing = next((d for d in target if d.identity() == identity), None)
        if existing is None:
            target.append(dependency.model_copy(deep=True))
            continue
        existing.scopes = merge_scopes(existing.scopes, dependency.scopes)
        existing.requested_by = merge_requested_by(
            existing.requested_by, dependency.requested_by,
        )


def merge_scopes(scopes: list[str], other: list[str]) -> list[str]:
    """Ordered union, first-seen order wins."""
    merged = list(scopes)
    for scope in other:
        if scope not in merged:
            merged.append(scope)
    return merged


def merge_requested_by(chains: list[list[str]], other: list[list[str]]) -> list[list[str]]:
    """Union of chains; two chains are equal only when equal element by element."""
    merged = [list(chain) for chain in chains]
    for chain in other:
        if chain not in merged:
            merged.append(list(chain))
    return merged
