"""
Credential Provider Module

Salted, iterated hashing of PINs and passwords behind a small capability
interface. The ledger stores only the opaque hash and a base64 salt string.
"""

import base64
import hmac
import logging
import secrets
from abc import ABC, abstractmethod

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .exceptions import CredentialError

logger = logging.getLogger(__name__)

SALT_BYTES = 16


def encode_salt(salt: bytes) -> str:
    return base64.b64encode(salt).decode('ascii')


def decode_salt(salt_text: str) -> bytes:
    try:
        return base64.b64decode(salt_text.encode('ascii'), validate=True)
    except (ValueError, UnicodeEncodeError) as e:
        raise CredentialError(f"Malformed salt: {e}") from e


class CredentialProvider(ABC):
    """Abstract capability for salt generation, hashing and verification"""

    @abstractmethod
    def generate_salt(self) -> bytes:
        """Return fresh random salt bytes"""
        pass

    @abstractmethod
    def hash(self, secret: str, salt: bytes) -> str:
        """Hash secret with salt and return an opaque string"""
        pass

    @abstractmethod
    def verify(self, secret: str, stored_hash: str, salt: bytes) -> bool:
        """Check secret against stored_hash in constant time"""
        pass


class PBKDF2CredentialProvider(CredentialProvider):
    """PBKDF2-HMAC-SHA256 provider using the cryptography library"""

    def __init__(self, iterations: int = 100_000, key_length: int = 32):
        if iterations < 1:
            raise ValueError("iterations must be positive")
        if key_length < 16:
            raise ValueError("key_length must be at least 16 bytes")
        self.iterations = iterations
        self.key_length = key_length

    def generate_salt(self) -> bytes:
        return secrets.token_bytes(SALT_BYTES)

    def hash(self, secret: str, salt: bytes) -> str:
        if secret is None:
            secret = ""
        try:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=self.key_length,
                salt=salt,
                iterations=self.iterations,
            )
            derived_key = kdf.derive(secret.encode('utf-8'))
        except (TypeError, ValueError) as e:
            logger.error(f"PBKDF2 derivation failed: {e}")
            raise CredentialError(f"PBKDF2 failure: {e}") from e
        return base64.b64encode(derived_key).decode('ascii')

    def verify(self, secret: str, stored_hash: str, salt: bytes) -> bool:
        if stored_hash is None:
            return False
        computed = self.hash(secret, salt)
        return hmac.compare_digest(computed.encode('ascii'), stored_hash.encode('utf-8'))
