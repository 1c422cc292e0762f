"""
Verification of a manifest against an expected fixture.

Collections are compared as multisets: every actual element has to match a
distinct expected element and the sizes have to agree. Identity-like string
fields on the expected side (ids, artifact names and paths, checksum digests)
are regular expressions; everything else is compared exactly. A mismatch is
reported as False; only an invalid expected pattern raises.
"""
from collections import Counter
from collections.abc import Callable
from collections.abc import Sequence
from typing import TypeVar

from buildinfo.core.matching import field_matches
from buildinfo.models.artifact import Artifact
from buildinfo.models.dependency import Dependency
from buildinfo.models.module import Module

T = TypeVar('T')


def artifact_matches(actual: Artifact, expected: Artifact) -> bool:
    return (
        field_matches(expected.name, actual.name)
        and field_matches(expected.path, actual.path)
        and actual.checksum.matches(expected.checksum)
        and actual.type == expected.type
    )


def dependency_matches(actual: Dependency, expected: Dependency) -> bool:
    return (
        actual.checksum.matches(expected.checksum)
        and field_matches(expected.id, actual.id)
        and actual.type == expected.type
        and set(actual.scopes) == set(expected.scopes)
        and _same_chains(actual.requested_by, expected.requested_by)
    )


def module_matches(actual: Module, expected: Module) -> bool:
    return (
        actual.checksum.matches(expected.checksum)
        and artifacts_match(actual.artifacts, expected.artifacts)
        and artifacts_match(actual.excluded_artifacts, expected.excluded_artifacts)
        and dependencies_match(actual.dependencies, expected.dependencies)
        and field_matches(expected.id, actual.id)
        and actual.type == expected.type
    )


def _same_chains(actual: list[list[str]], expected: list[list[str]]) -> bool:
    # Positional inside a chain, order-free across chains
    return Counter(map(tuple, actual)) == Counter(map(tuple, expected))


def _match_all(
    actual: Sequence[T],
    expected: Sequence[T],
    pair_matches: Callable[[T, T], bool],
) -> tuple[list[int], list[int]]:
    """Returns the indices left unmatched on the actual and expected sides."""
    consumed = [False] * len(expected)
    unmatched = []
    for actual_index, element in enumerate(actual):
        for index, candidate in enumerate(expected):
            if consumed[index]:
                continue
            if pair_matches(element, candidate):
                consumed[index] = True
                break
        else:
            unmatched.append(actual_index)
    leftover = [index for index, used in enumerate(consumed) if not used]
    return unmatched, leftover


def _multiset_match(actual, expected, pair_matches) -> bool:
    if len(actual) != len(expected):
        return False
    unmatched, _ = _match_all(actual, expected, pair_matches)
    return not unmatched


def artifacts_match(actual: Sequence[Artifact], expected: Sequence[Artifact]) -> bool:
    return _multiset_match(actual, expected, artifact_matches)


def dependencies_match(actual: Sequence[Dependency], expected: Sequence[Dependency]) -> bool:
    return _multiset_match(actual, expected, dependency_matches)


def modules_match(actual: Sequence[Module], expected: Sequence[Module]) -> bool:
    return _multiset_match(actual, expected, module_matches)


_PAIR_MATCHERS: dict[type, Callable] = {
    Module: module_matches,
    Dependency: dependency_matches,
    Artifact: artifact_matches,
}


def _matcher_for(actual: Sequence, expected: Sequence) -> Callable:
    sample = actual[0] if actual else expected[0]
    for record_type, matcher in _PAIR_MATCHERS.items():
        if isinstance(sample, record_type):
            return matcher
    raise TypeError(f"cannot compare collections of {type(sample).__name__}")


def matches(actual: Sequence, expected: Sequence) -> bool:
    """Compares collections of modules, dependencies or artifacts."""
    if not actual and not expected:
        return True
    return _multiset_match(actual, expected, _matcher_for(actual, expected))


def explain_mismatch(actual: Sequence, expected: Sequence) -> list[str]:
    """Human-readable reasons for a failed match, empty when they match."""
    if not actual and not expected:
        return []
    pair_matches = _matcher_for(actual, expected)
    reasons = []
    if len(actual) != len(expected):
        reasons.append(
            f"expected {len(expected)} elements, got {len(actual)}",
        )
    unmatched, leftover = _match_all(actual, expected, pair_matches)
    for index in unmatched:
        reasons.append(f"unexpected: {_describe(actual[index])}")
    for index in leftover:
        reasons.append(f"missing: {_describe(expected[index])}")
    return reasons


def _describe(record) -> str:
    if isinstance(record, Artifact):
        return f"artifact {record.name!r} at {record.path!r}"
    return f"{type(record).__name__.lower()} {record.id!r}"
