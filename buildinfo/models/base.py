from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_serializer
from pydantic import model_validator

from buildinfo.models.checksum import Checksum
from buildinfo.models.checksum import CHECKSUM_FIELDS


def omit_empty(value: Any) -> Any:
    """
    Drop empty members from serialized data, recursively.

    Empty strings, lists, maps, None, False and 0 are left out of the
    persisted manifest, the way downstream consumers expect them.
    """
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            item = omit_empty(item)
            if _is_empty(item):
                continue
            cleaned[key] = item
        return cleaned
    if isinstance(value, list):
        return [omit_empty(item) for item in value]
    return value


def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (str, list, dict)):
        return len(value) == 0
    if isinstance(value, int) and not isinstance(value, bool):
        return value == 0
    return False


class Record(BaseModel):
    """Base for every persisted manifest record."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    def to_dict(self) -> dict[str, Any]:
        return omit_empty(self.model_dump(mode='json', by_alias=True))


class ChecksumRecord(Record):
    """
    A record embedding a checksum.

    On the wire the digests are flat members of the record
    ('sha1', 'md5', 'sha256' next to 'id' or 'name'); in memory they live in
    a nested immutable Checksum.
    """
    checksum: Checksum = Field(default_factory=Checksum)

    @model_validator(mode='before')
    @classmethod
    def nest_checksum(cls, data: Any) -> Any:
        if not isinstance(data, dict) or 'checksum' in data:
            return data
        digests = {k: data[k] for k in CHECKSUM_FIELDS if data.get(k)}
        data = {k: v for k, v in data.items() if k not in CHECKSUM_FIELDS}
        data['checksum'] = digests
        return data

    @model_serializer(mode='wrap')
    def flatten_checksum(self, handler):
        data = handler(self)
        digests = data.pop('checksum', None) or {}
        data.update(digests)
        return data
