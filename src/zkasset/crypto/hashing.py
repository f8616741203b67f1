"""
Hash functions and utilities for zkasset.

SHA-256 digests used to identify notes, bind proofs to transitions and build
signature messages.
"""

import logging

logger = logging.getLogger(__name__)
import hashlib
from dataclasses import dataclass
from typing import List, Union


@dataclass(frozen=True)
class Hash:
    """Immutable hash value with comparison and string representation."""

    value: bytes

    def __post_init__(self) -> None:
        if len(self.value) != 32:
            raise ValueError("Hash must be exactly 32 bytes")

    def __str__(self) -> str:
        return self.value.hex()

    def __repr__(self) -> str:
        return f"Hash('{self.value.hex()}')"

    def __lt__(self, other: "Hash") -> bool:
        return self.value < other.value

    @classmethod
    def from_hex(cls, hex_string: str) -> "Hash":
        """Create a Hash from a hexadecimal string."""
        return cls(bytes.fromhex(hex_string))

    @classmethod
    def zero(cls) -> "Hash":
        """Create a zero hash (all zeros)."""
        return cls(b"\x00" * 32)

    def to_hex(self) -> str:
        """Convert hash to hexadecimal string."""
        return self.value.hex()

    def to_int(self) -> int:
        """Convert hash to integer (big-endian)."""
        return int.from_bytes(self.value, byteorder="big")


Field = Union[bytes, str, int]


class SHA256Hasher:
    """SHA-256 hasher with ledger-specific utilities."""

    @staticmethod
    def hash(data: Union[bytes, str]) -> Hash:
        """
        Hash data using SHA-256.

        Args:
            data: Data to hash (bytes or string)

        Returns:
            Hash object containing the SHA-256 hash
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        digest = hashlib.sha256(data).digest()
        return Hash(digest)

    @staticmethod
    def hash_list(items: List[Union[bytes, str]]) -> Hash:
        """
        Hash a list of items by concatenating them.

        Args:
            items: List of items to hash

        Returns:
            Hash of the concatenated items
        """
        combined = b""
        for item in items:
            if isinstance(item, str):
                combined += item.encode("utf-8")
            else:
                combined += item

        return SHA256Hasher.hash(combined)

    @staticmethod
    def hash_fields(domain: str, *fields: Field) -> Hash:
        """
        Hash a domain tag followed by length-prefixed fields.

        Integers are encoded as signed decimal strings so negative public
        deltas hash unambiguously. Length prefixes keep ``("ab", "c")`` and
        ``("a", "bc")`` distinct.

        Args:
            domain: Domain separation tag
            *fields: bytes, str or int values

        Returns:
            Hash over the encoded fields
        """
        parts = [_encode_field(domain)]
        parts.extend(_encode_field(f) for f in fields)
        return SHA256Hasher.hash(b"".join(parts))


def _encode_field(value: Field) -> bytes:
    if isinstance(value, bool):
        raise TypeError("bool is not a hashable field")
    if isinstance(value, int):
        raw = str(value).encode("ascii")
    elif isinstance(value, str):
        raw = value.encode("utf-8")
    elif isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raise TypeError(f"Unsupported field type: {type(value).__name__}")
    return len(raw).to_bytes(4, byteorder="big") + raw
