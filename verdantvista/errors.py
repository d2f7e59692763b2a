# -*- coding: utf-8 -*-
"""Typed failures raised by the Verdant Vista storage layer.

Everything derives from :class:`VaultError` so the UI can catch one type at
its button handlers. Some also derive from the builtin they refine, so callers
that only know about ``ValueError`` or ``KeyError`` keep working.
"""
from __future__ import annotations


class VaultError(Exception):
    """Base class for all storage-layer failures."""


class DerivationError(VaultError):
    """The password KDF could not run (primitive missing or misconfigured)."""


class DecryptionError(VaultError):
    """Wrong password or corrupted data.

    The two causes are indistinguishable by design of AES-GCM and are never
    reported separately.
    """

    def __init__(self, message: str = "Wrong password or corrupted data") -> None:
        super().__init__(message)


class NotUnlockedError(VaultError):
    """A save was attempted without a live session key."""

    def __init__(self, message: str = "Vault is not unlocked") -> None:
        super().__init__(message)


class MalformedBackupError(VaultError, ValueError):
    """A backup document is missing required fields or is not decodable."""


class NothingToExportError(VaultError):
    """There is no stored journal to export."""

    def __init__(self, message: str = "No journal data stored yet") -> None:
        super().__init__(message)


class CollaboratorResponseError(VaultError, ValueError):
    """An analysis collaborator returned data outside its contract."""


class EntryNotFoundError(VaultError, KeyError):
    """No entry or event with the requested id exists in the dataset."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Entry not found"
