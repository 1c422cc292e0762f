from pydantic import Field

from buildinfo.models.base import ChecksumRecord
from buildinfo.models.checksum import Checksum


class Dependency(ChecksumRecord):
    """A package consumed by a build module."""
    id: str = ''
    type: str = ''
    scopes: list[str] = Field(default_factory=list)
    # Each chain runs from the immediate requester up to the module id.
    requested_by: list[list[str]] = Field(
        default_factory=list, alias='requestedBy',
    )

    def identity(self) -> tuple[str, Checksum]:
        """Two records with the same id but different checksums stay distinct."""
        return self.id, self.checksum

    def has_loop(self) -> bool:
        return any(self.id in chain for chain in self.requested_by)
