from pydantic import BaseModel
from pydantic import ConfigDict

from buildinfo.core.matching import field_matches

CHECKSUM_FIELDS = ('sha1', 'md5', 'sha256')


class Checksum(BaseModel):
    """Content digests of a file. sha1 and md5 are kept for registry lookups."""
    sha1: str = ''
    md5: str = ''
    sha256: str = ''

    model_config = ConfigDict(frozen=True, extra='ignore')

    def is_empty(self) -> bool:
        return not (self.sha1 or self.md5 or self.sha256)

    def matches(self, expected: 'Checksum') -> bool:
        """Each digest of `expected` is a pattern for the same digest here."""
        return all(
            field_matches(getattr(expected, name), getattr(self, name))
            for name in CHECKSUM_FIELDS
        )
