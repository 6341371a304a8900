"""
Public identifiers for bundles and channels.

Rows keep integer primary keys internally; devices, operators and
download URLs only ever see a GUID: a type prefix plus a UUIDv7 written
in lower-case Crockford Base32, e.g. ``bnd_01hgw2bbg0000000000000000``.
"""

import uuid as uuid_module
from typing import ClassVar, Optional

import base32_crockford
from sqlalchemy import Column, Uuid
from uuid_extensions import uuid7


# 128 bits in 5-bit symbols
GUID_ENCODED_LENGTH = 26


def encode_guid(prefix: str, value: uuid_module.UUID) -> str:
    """Render value as ``{prefix}_{base32}``."""
    encoded = base32_crockford.encode(value.int).zfill(GUID_ENCODED_LENGTH)
    return f"{prefix}_{encoded.lower()}"


def decode_guid(prefix: str, guid: str) -> uuid_module.UUID:
    """
    Inverse of encode_guid.

    Raises:
        ValueError: empty input, foreign prefix, wrong length or a
            body that is not Crockford Base32
    """
    if not guid:
        raise ValueError("GUID cannot be empty")

    head, sep, body = guid.partition("_")
    if not sep or head.lower() != prefix:
        raise ValueError(f"Expected a '{prefix}_' GUID, got '{guid}'")
    if len(body) != GUID_ENCODED_LENGTH:
        raise ValueError(
            f"GUID body must be {GUID_ENCODED_LENGTH} characters, got {len(body)}"
        )

    try:
        return uuid_module.UUID(int=base32_crockford.decode(body.upper()))
    except ValueError as e:
        raise ValueError(f"Invalid GUID encoding: {e}") from e


class GuidMixin:
    """
    Adds a UUIDv7 ``uuid`` column and the ``guid`` string built from it.

    Subclasses set GUID_PREFIX ("bnd", "chn").
    """

    GUID_PREFIX: ClassVar[str]

    uuid = Column(Uuid(), nullable=False, unique=True, index=True, default=uuid7)

    @property
    def guid(self) -> Optional[str]:
        """None until the row is flushed and the uuid default has run."""
        if self.uuid is None:
            return None
        return encode_guid(self.GUID_PREFIX, self.uuid)

    @classmethod
    def parse_guid(cls, guid: str) -> uuid_module.UUID:
        return decode_guid(cls.GUID_PREFIX, guid)

    @classmethod
    def find_by_guid(cls, db_session, guid: str):
        """Row for guid, or None when it is malformed or unknown."""
        try:
            value = cls.parse_guid(guid)
        except ValueError:
            return None
        return db_session.query(cls).filter(cls.uuid == value).first()
