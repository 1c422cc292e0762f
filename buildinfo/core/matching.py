"""Pattern helpers shared by verification and environment filtering."""
import fnmatch
import re
from functools import lru_cache

from buildinfo.core.errors import PatternError


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternError(f"invalid pattern {pattern!r}: {e}") from e


def field_matches(pattern: str, value: str) -> bool:
    """
    Match an expected-side pattern against an actual value.

    The pattern is searched anywhere in the value, so an empty pattern
    accepts every value and '.+' accepts any non-empty value.
    """
    return _compile(pattern).search(value) is not None


def wildcard_matches(pattern: str, value: str) -> bool:
    """Case-insensitive '*' wildcard match over the whole value."""
    return fnmatch.fnmatchcase(value.lower(), pattern.lower())
