"""File checksum calculation."""
import hashlib
from pathlib import Path
from typing import BinaryIO

from buildinfo.models.checksum import Checksum

CHUNK_SIZE = 64 * 1024


def calc_checksums(stream: BinaryIO) -> Checksum:
    """Calculates md5, sha1 and sha256 in a single pass over the stream."""
    md5 = hashlib.md5()
    sha1 = hashlib.sha1()
    sha256 = hashlib.sha256()
    while chunk := stream.read(CHUNK_SIZE):
        md5.update(chunk)
        sha1.update(chunk)
        sha256.update(chunk)
    return Checksum(
        sha1=sha1.hexdigest(),
        md5=md5.hexdigest(),
        sha256=sha256.hexdigest(),
    )


def file_checksums(file_path: str | Path) -> Checksum:
    with open(file_path, 'rb') as f:
        return calc_checksums(f)
