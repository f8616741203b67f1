"""
Unit tests for hashing functions.
"""

import pytest

from zkasset.crypto.hashing import Hash, SHA256Hasher


class TestHash:
    """Test the Hash class."""

    def test_hash_invalid_length(self):
        """Test that invalid length raises ValueError."""
        with pytest.raises(ValueError, match="Hash must be exactly 32 bytes"):
            Hash(b"\x00" * 31)

    def test_hash_from_hex(self):
        hash_obj = Hash.from_hex("ab" * 32)
        assert hash_obj.to_hex() == "ab" * 32
        assert str(hash_obj) == "ab" * 32

    def test_hash_ordering(self):
        assert Hash.zero() < Hash.from_hex("01" + "00" * 31)
        assert Hash.from_hex("00" * 31 + "02").to_int() == 2


class TestSHA256Hasher:
    """Test the SHA256Hasher class."""

    def test_hash_known_value(self):
        assert (
            SHA256Hasher.hash("").to_hex()
            == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_hash_string_and_bytes_agree(self):
        assert SHA256Hasher.hash("note") == SHA256Hasher.hash(b"note")

    def test_hash_list_concatenates(self):
        assert SHA256Hasher.hash_list(["ab", b"c"]) == SHA256Hasher.hash("abc")

    def test_hash_fields_is_length_prefixed(self):
        assert SHA256Hasher.hash_fields("d", "ab", "c") != SHA256Hasher.hash_fields(
            "d", "a", "bc"
        )

    def test_hash_fields_domain_separates(self):
        assert SHA256Hasher.hash_fields("a", "x") != SHA256Hasher.hash_fields("b", "x")

    def test_hash_fields_distinguishes_sign(self):
        assert SHA256Hasher.hash_fields("d", 10) != SHA256Hasher.hash_fields("d", -10)

    def test_hash_fields_encodes_ints_as_decimal(self):
        assert SHA256Hasher.hash_fields("d", 1) == SHA256Hasher.hash_fields("d", "1")
        assert SHA256Hasher.hash_fields("d", 1) != SHA256Hasher.hash_fields("d", b"\x01")

    def test_hash_fields_rejects_bool(self):
        with pytest.raises(TypeError):
            SHA256Hasher.hash_fields("d", True)

    def test_hash_fields_rejects_unknown_type(self):
        with pytest.raises(TypeError, match="Unsupported field type"):
            SHA256Hasher.hash_fields("d", 1.5)
