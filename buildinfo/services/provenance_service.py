"""
Requested-by chains: why each dependency is part of a build.

A chain lists identities from the dependency's immediate requester up to the
build's own module id. A dependency reached through several parents carries
one chain per distinct path.
"""
from collections.abc import Callable
from collections.abc import Mapping
from collections.abc import Sequence

import structlog

from buildinfo.models.dependency import Dependency
from buildinfo.models.manifest import Manifest

logger = structlog.get_logger('provenance_service')

REQUESTED_BY_MAX_LENGTH = 15
GRAPH_MAX_DEPTH = 10

Graph = Mapping[str, Sequence[str]]


def invert_graph(graph: Graph) -> dict[str, list[str]]:
    """Turns parent -> children into child -> sorted, distinct parents."""
    parents: dict[str, list[str]] = {}
    for parent, children in graph.items():
        for child in children:
            if child == parent:
                continue
            requesters = parents.setdefault(child, [])
            if parent not in requesters:
                requesters.append(parent)
    return {child: sorted(requesters) for child, requesters in parents.items()}


def update_requested_by(
    dependency: Dependency,
    parent_id: str,
    parent_requested_by: Sequence[Sequence[str]],
) -> None:
    """
    Recomputes the chains a dependency gets through `parent_id`.

    Chains that start at `parent_id` are stale and dropped; every chain of the
    parent, prefixed with the parent id, takes their place.
    """
    chains = [
        list(chain) for chain in dependency.requested_by
        if not chain or chain[0] != parent_id
    ]
    for chain in parent_requested_by:
        chains.append([parent_id, *chain])
    dependency.requested_by = chains


def populate_requested_by(
    root_id: str,
    dependencies: Mapping[str, Dependency],
    graph: Graph,
) -> None:
    """
    Attaches requested-by chains to `dependencies` by walking `graph` down
    from the module `root_id`. Graph nodes without a dependency record are
    not traversed.
    """
    _propagate(root_id, [[]], dependencies, graph, visited=frozenset({root_id}))


def _propagate(
    parent_id: str,
    parent_requested_by: list[list[str]],
    dependencies: Mapping[str, Dependency],
    graph: Graph,
    visited: frozenset[str],
) -> None:
    # `visited` holds the ids on the current path only, so each recursive call
    # gets its own copy. Siblings never see each other's nodes.
    for child_id in graph.get(parent_id, ()):
        child = dependencies.get(child_id)
        if child is None:
            continue
        if child_id in visited:
            logger.debug('Dropping cyclic edge', parent=parent_id, child=child_id)
            continue

        before = child.requested_by
        update_requested_by(child, parent_id, parent_requested_by)
        child.requested_by = [c for c in child.requested_by if child_id not in c]
        if child.requested_by == before:
            continue
        _propagate(
            child_id, child.requested_by, dependencies, graph,
            visited=visited | {child_id},
        )


def walk_tree(
    root_id: str,
    children_of: Callable[[str, list[str]], Sequence[str]],
    seen: dict[str, list[list[str]]] | None = None,
) -> dict[str, list[list[str]]]:
    """
    Collects chains for a natively recursive tree, such as 'npm ls' output.

    `children_of(node_id, path_to_root)` returns the children of a node as it
    appears under the given path. A child whose id already sits on its own
    chain is dropped. `seen` is shared across the whole walk and maps every
    collected id to its distinct chains.
    """
    if seen is None:
        seen = {}
    _walk(root_id, [], children_of, seen)
    return seen


def _walk(
    node_id: str,
    path_to_root: list[str],
    children_of: Callable[[str, list[str]], Sequence[str]],
    seen: dict[str, list[list[str]]],
) -> None:
    chain = [node_id, *path_to_root]
    for child_id in children_of(node_id, path_to_root):
        if child_id in chain:
            logger.debug('Dropping cyclic edge', parent=node_id, child=child_id)
            continue
        chains = seen.setdefault(child_id, [])
        if chain in chains:
            continue
        chains.append(chain)
        _walk(child_id, chain, children_of, seen)


def discover_graph(
    root_id: str,
    children_of: Callable[[str], Sequence[str]],
    max_depth: int = GRAPH_MAX_DEPTH,
) -> dict[str, list[str]]:
    """
    Builds an adjacency graph by following sub-manifests, e.g. packaged
    charts nested in a chart archive.

    Each node is expanded once. Expansion stops `max_depth` levels below the
    root whatever the input looks like.
    """
    graph: dict[str, list[str]] = {}
    expanded: set[str] = {root_id}

    def expand(node_id: str, depth: int) -> None:
        if depth >= max_depth:
            logger.debug('Dependency depth limit reached', node=node_id)
            return
        for child_id in children_of(node_id):
            children = graph.setdefault(node_id, [])
            if child_id not in children:
                children.append(child_id)
            if child_id in expanded:
                continue
            expanded.add(child_id)
            expand(child_id, depth + 1)

    expand(root_id, 0)
    return graph


def truncate_requested_by(manifest: Manifest, max_length: int = REQUESTED_BY_MAX_LENGTH) -> Manifest:
    """
    Returns a copy of `manifest` keeping at most `max_length` chains per
    dependency. A non-positive `max_length` keeps everything.
    """
    truncated = manifest.model_copy(deep=True)
    if max_length <= 0:
        return truncated
    for module in truncated.modules:
        for dependency in module.dependencies:
            dependency.requested_by = dependency.requested_by[:max_length]
    return truncated
