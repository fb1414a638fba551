"""Encrypted-bundle codec for sensitive loan fields.

Bundles are sealed with AES-256-GCM and persisted as the colon-delimited
triple ``nonce_hex:tag_hex:ciphertext_hex``. A value without exactly
two colons, or one that is a JSON document, is legacy plaintext written
before encryption was introduced. Any other two-colon value must decrypt
or the open fails.
"""

import base64
import binascii
import hashlib
import json
import logging
import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from loan_tracker.config import EncryptionConfig
from loan_tracker.exceptions import ConfigurationError, DecryptionError, LoanTrackerError
from loan_tracker.models.loan import SensitiveFields
from loan_tracker.serialization import canonical_json

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
NONCE_LENGTH = 12
TAG_LENGTH = 16
DEV_KEY_PHRASE = "loan-tracker-insecure-development-key"
HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def derive_key(material: str) -> bytes:
    """Turn configured key material into 32 raw key bytes.

    Parameters
    ----------
    material : str
        64 hex characters, base64 of 32 bytes, or any passphrase.

    Returns
    -------
    bytes
        AES-256 key.
    """
    material = material.strip()
    if len(material) == KEY_LENGTH * 2 and set(material) <= HEX_DIGITS:
        return bytes.fromhex(material)
    try:
        decoded = base64.b64decode(material, validate=True)
    except (binascii.Error, ValueError):
        decoded = b""
    if len(decoded) == KEY_LENGTH:
        return decoded
    return hashlib.sha256(material.encode("utf-8")).digest()


def generate_key() -> str:
    """Generate a new random key as 64 hex characters."""
    return secrets.token_hex(KEY_LENGTH)


def is_sealed(value: str | None) -> bool:
    """Whether a stored value looks like a sealed triple."""
    return _split_sealed(value) is not None


def _is_triple(value: str) -> bool:
    """Exactly two colons and not a JSON document: must be a sealed triple."""
    return value.count(":") == 2 and not value.lstrip().startswith(("{", "["))


def _split_sealed(value: str | None) -> tuple[bytes, bytes, bytes] | None:
    if not value or not _is_triple(value):
        return None
    parts = value.split(":")
    if not all(part and set(part) <= HEX_DIGITS and len(part) % 2 == 0 for part in parts):
        return None
    nonce, tag, ciphertext = (bytes.fromhex(part) for part in parts)
    if len(tag) != TAG_LENGTH:
        return None
    return nonce, tag, ciphertext


class Codec:
    """Seal and open :class:`SensitiveFields` bundles with a single symmetric key."""

    def __init__(self, key: bytes) -> None:
        """Initialize codec.

        Parameters
        ----------
        key : bytes
            32-byte AES-256 key.
        """
        if len(key) != KEY_LENGTH:
            raise ConfigurationError(f"Encryption key must be {KEY_LENGTH} bytes, got {len(key)}")
        self._aead = AESGCM(key)

    @classmethod
    def from_config(cls, config: EncryptionConfig, production: bool = False) -> "Codec":
        """Build a codec from configuration.

        A missing key is fatal in production. Elsewhere it is only
        tolerated when ``allow_insecure_dev_key`` is set.
        """
        if config.key:
            return cls(derive_key(config.key))
        if production:
            raise ConfigurationError("LOAN_TRACKER_ENCRYPTION_KEY is required in production")
        if not config.allow_insecure_dev_key:
            raise ConfigurationError(
                "No encryption key configured. Set LOAN_TRACKER_ENCRYPTION_KEY "
                "or LOAN_TRACKER_ALLOW_DEV_KEY=true for local development"
            )
        logger.warning(
            "INSECURE: no encryption key configured, using the built-in development key. "
            "Never use this outside local development."
        )
        return cls(hashlib.sha256(DEV_KEY_PHRASE.encode("utf-8")).digest())

    def seal(self, bundle: SensitiveFields) -> str:
        """Encrypt a bundle with a fresh random nonce.

        Returns
        -------
        str
            ``nonce_hex:tag_hex:ciphertext_hex``.
        """
        plaintext = canonical_json(bundle.to_dict()).encode("utf-8")
        nonce = os.urandom(NONCE_LENGTH)
        sealed = self._aead.encrypt(nonce, plaintext, None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{nonce.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def open(self, value: str | None) -> SensitiveFields | None:
        """Decrypt a stored value.

        Returns ``None`` for empty input and for legacy plaintext that
        cannot be parsed. A value with exactly two colons that is not a
        JSON document is never treated as legacy plaintext.

        Raises
        ------
        DecryptionError
            If a triple is malformed, fails authentication or its plaintext
            is unreadable.
        """
        if not value:
            return None
        if not _is_triple(value):
            return self._open_legacy(value)

        parts = _split_sealed(value)
        if parts is None:
            raise DecryptionError("Encrypted bundle is malformed")

        nonce, tag, ciphertext = parts
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext + tag, None)
        except (InvalidTag, ValueError) as exc:
            raise DecryptionError("Encrypted bundle failed authentication") from exc

        try:
            return SensitiveFields.from_dict(json.loads(plaintext.decode("utf-8")))
        except (UnicodeDecodeError, ValueError, TypeError, KeyError, LoanTrackerError) as exc:
            raise DecryptionError("Encrypted bundle has unreadable content") from exc

    def _open_legacy(self, value: str) -> SensitiveFields | None:
        """Parse an unencrypted bundle written before sealing was introduced."""
        try:
            data = json.loads(value)
        except ValueError:
            logger.warning("Stored bundle is neither sealed nor JSON")
            return None
        if not isinstance(data, dict):
            return None
        try:
            return SensitiveFields.from_dict(data)
        except (ValueError, TypeError, KeyError, LoanTrackerError):
            logger.warning("Legacy plaintext bundle could not be parsed")
            return None
