# -*- coding: utf-8 -*-
"""Crypto helpers and key handling for Verdant Vista.

This module encapsulates *stateless* cryptographic helpers and the opaque
key container. It does **not** perform any database I/O.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict
import base64
import binascii
import json
import secrets

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import DecryptionError, DerivationError

# ---------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------

PBKDF2_ITERATIONS = 100_000
KEY_LEN = 32
SALT_LEN = 16
NONCE_LEN = 12


# ---------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------

class DerivedKey:
    """AES-256-GCM key bound to a session; the raw bytes are not kept.

    Only :func:`encrypt` and :func:`decrypt` can use it. It refuses to be
    pickled or copied and never shows its material in ``repr``.
    """

    __slots__ = ("_aead",)

    def __init__(self, aead: AESGCM) -> None:
        self._aead = aead

    def __repr__(self) -> str:
        return "<DerivedKey>"

    def __reduce__(self):
        raise TypeError("DerivedKey cannot be serialized")

    def __copy__(self):
        raise TypeError("DerivedKey cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("DerivedKey cannot be copied")


@dataclass(frozen=True)
class EncryptedBlob:
    """One AES-GCM ciphertext with the nonce it was sealed under."""

    iv: bytes
    ciphertext: bytes

    def to_dict(self) -> Dict[str, str]:
        """Storage form: ``{"iv": b64, "data": b64}``."""
        return {"iv": b64encode(self.iv), "data": b64encode(self.ciphertext)}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, obj: Any) -> "EncryptedBlob":
        """Parse the storage form; anything unusable is a DecryptionError."""
        if not isinstance(obj, dict):
            raise DecryptionError()
        iv, data = obj.get("iv"), obj.get("data")
        if not isinstance(iv, str) or not isinstance(data, str):
            raise DecryptionError()
        try:
            return cls(iv=b64decode(iv), ciphertext=b64decode(data))
        except ValueError as exc:
            raise DecryptionError() from exc

    @classmethod
    def from_json(cls, text: str) -> "EncryptedBlob":
        try:
            obj = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise DecryptionError() from exc
        return cls.from_dict(obj)


# ---------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------

def b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")

def b64decode(text: str) -> bytes:
    """Strict base64 decode; raises ValueError on bad input."""
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError("invalid base64") from exc

def canonical_bytes(payload: Any) -> bytes:
    """Compact UTF-8 JSON, the same text ``JSON.stringify`` produces."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


# ---------------------------------------------------------------------
# KDF / AEAD helpers
# ---------------------------------------------------------------------

def generate_salt() -> bytes:
    """Return a fresh random salt for a new installation."""
    return secrets.token_bytes(SALT_LEN)

def derive_key(password: str, salt: bytes) -> DerivedKey:
    """Derive the session key from *password* and the stored *salt*.

    PBKDF2-HMAC-SHA256, 100k iterations, 256-bit output. The same inputs
    always give the same key; there is no password verifier.
    """
    if len(salt) != SALT_LEN:
        raise ValueError(f"salt must be {SALT_LEN} bytes")
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LEN,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        raw = kdf.derive(password.encode("utf-8"))
        return DerivedKey(AESGCM(raw))
    except UnsupportedAlgorithm as exc:
        raise DerivationError(f"PBKDF2-SHA256/AES-GCM unavailable: {exc}") from exc

def encrypt(key: DerivedKey, payload: Any) -> EncryptedBlob:
    """Serialize *payload* and seal it under a fresh random nonce."""
    nonce = secrets.token_bytes(NONCE_LEN)
    ct = key._aead.encrypt(nonce, canonical_bytes(payload), None)
    return EncryptedBlob(iv=nonce, ciphertext=ct)

def decrypt(key: DerivedKey, blob: EncryptedBlob) -> Any:
    """Open *blob* and return the deserialized payload.

    Raises DecryptionError for a wrong key, any tampering, or a payload that
    is not UTF-8 JSON. Never returns partial data.
    """
    if len(blob.iv) != NONCE_LEN:
        raise DecryptionError()
    try:
        plaintext = key._aead.decrypt(blob.iv, blob.ciphertext, None)
    except InvalidTag as exc:
        raise DecryptionError() from exc
    try:
        return json.loads(plaintext.decode("utf-8"))
    except ValueError as exc:
        raise DecryptionError() from exc
