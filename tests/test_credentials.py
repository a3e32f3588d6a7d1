"""
Test suite for credential hashing
"""

import pytest

from core_ledger.credentials import (
    PBKDF2CredentialProvider, CredentialProvider, encode_salt, decode_salt, SALT_BYTES
)
from core_ledger.exceptions import CredentialError


class TestPBKDF2CredentialProvider:
    """Test salted PBKDF2 hashing"""

    def setup_method(self):
        self.provider = PBKDF2CredentialProvider(iterations=1000)

    def test_is_a_provider(self):
        assert isinstance(self.provider, CredentialProvider)

    def test_salt(self):
        first = self.provider.generate_salt()
        second = self.provider.generate_salt()

        assert len(first) == SALT_BYTES == 16
        assert first != second

    def test_hash_is_deterministic_per_salt(self):
        salt = self.provider.generate_salt()

        assert self.provider.hash("1234", salt) == self.provider.hash("1234", salt)
        assert self.provider.hash("1234", salt) != self.provider.hash("1234", self.provider.generate_salt())
        assert self.provider.hash("1234", salt) != self.provider.hash("1235", salt)

    def test_hash_is_base64_of_key(self):
        """Test a 32-byte key encodes to 44 base64 characters"""
        digest = self.provider.hash("1234", self.provider.generate_salt())
        assert len(digest) == 44

    def test_verify(self):
        salt = self.provider.generate_salt()
        stored = self.provider.hash("admin123", salt)

        assert self.provider.verify("admin123", stored, salt)
        assert not self.provider.verify("admin124", stored, salt)
        assert not self.provider.verify("admin123", None, salt)

    def test_iterations_change_the_hash(self):
        salt = self.provider.generate_salt()
        other = PBKDF2CredentialProvider(iterations=1001)
        assert other.hash("1234", salt) != self.provider.hash("1234", salt)

    @pytest.mark.parametrize("kwargs", [{"iterations": 0}, {"key_length": 8}])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            PBKDF2CredentialProvider(**kwargs)


class TestSaltEncoding:

    def test_round_trip(self):
        salt = bytes(range(16))
        assert decode_salt(encode_salt(salt)) == salt

    @pytest.mark.parametrize("text", ["!!!", "abc", "é"])
    def test_malformed(self, text):
        with pytest.raises(CredentialError):
            decode_salt(text)
