# -*- coding: utf-8 -*-
"""The vault: salt lifecycle, the unlocked session, and dataset load/save.

A :class:`Vault` owns at most one :class:`VaultSession`. The session is the
only place the derived key lives; locking drops it and every unlock derives
a new one from the password.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
import asyncio
import logging

from . import db
from .crypto import (
    SALT_LEN,
    DerivedKey,
    EncryptedBlob,
    b64decode,
    b64encode,
    decrypt,
    derive_key,
    encrypt,
    generate_salt,
)
from .errors import DecryptionError, NotUnlockedError
from .models import Dataset

logger = logging.getLogger("verdantvista.vault")


class VaultState(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    FAILED = "failed"


@dataclass
class VaultSession:
    """Key material bound to one unlocked session."""

    key: DerivedKey
    salt: bytes
    opened_at: str


def _decode_salt(text: str) -> bytes:
    try:
        salt = b64decode(text)
    except ValueError as exc:
        raise DecryptionError() from exc
    if len(salt) != SALT_LEN:
        raise DecryptionError()
    return salt


def _open_slot(key: DerivedKey, text: Optional[str]) -> Any:
    """Decrypt one stored blob; an empty slot yields None."""
    if text is None:
        return None
    return decrypt(key, EncryptedBlob.from_json(text))


class Vault:
    """Mediates every read and write of the encrypted dataset."""

    def __init__(self) -> None:
        self._session: Optional[VaultSession] = None
        self.state = VaultState.LOCKED

    # -----------------------------------------------------------------
    # Session
    # -----------------------------------------------------------------

    @property
    def is_unlocked(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> VaultSession:
        if self._session is None:
            raise NotUnlockedError()
        return self._session

    def lock(self) -> None:
        """End the session and forget the key."""
        if self._session is not None:
            logger.info("vault locked")
        self._session = None
        if self.state is VaultState.UNLOCKED:
            self.state = VaultState.LOCKED

    async def __aenter__(self) -> "Vault":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.lock()

    async def has_data(self) -> bool:
        """True once a salt has been stored (i.e. after the first unlock)."""
        return await db.get_slot(db.SALT_SLOT) is not None

    # -----------------------------------------------------------------
    # Load / save
    # -----------------------------------------------------------------

    async def _load_or_create_salt(self) -> bytes:
        stored = await db.get_slot(db.SALT_SLOT)
        if stored is not None:
            return _decode_salt(stored)
        salt = generate_salt()
        await db.put_slot(db.SALT_SLOT, b64encode(salt))
        logger.info("first run: generated and stored a new salt")
        return salt

    async def unlock(self, password: str) -> Dataset:
        """Derive the key from *password* and decrypt the stored dataset.

        Returns an empty dataset when nothing has been saved yet. Raises
        DecryptionError for a wrong password or corrupted storage, leaving
        the vault in the FAILED state with no session. DerivationError (no
        usable KDF/cipher) propagates and leaves the state alone.
        """
        self.lock()
        try:
            salt = await self._load_or_create_salt()
            key = await asyncio.to_thread(derive_key, password, salt)
            slots = await db.get_slots((db.ENTRIES_SLOT, db.EVENTS_SLOT))
            entries = _open_slot(key, slots[db.ENTRIES_SLOT])
            events = _open_slot(key, slots[db.EVENTS_SLOT])
            try:
                dataset = Dataset.from_payloads(entries, events)
            except (KeyError, TypeError, AttributeError) as exc:
                raise DecryptionError() from exc
        except DecryptionError:
            self.state = VaultState.FAILED
            logger.warning("unlock failed: wrong password or corrupted data")
            raise

        self._session = VaultSession(
            key=key,
            salt=salt,
            opened_at=datetime.now(timezone.utc).isoformat(),
        )
        self.state = VaultState.UNLOCKED
        logger.info(
            "vault unlocked (%d entries, %d events)",
            len(dataset.entries),
            len(dataset.events),
        )
        return dataset

    async def save(self, dataset: Dataset) -> None:
        """Encrypt the whole dataset and replace both stored blobs.

        Nothing is written unless both blobs were sealed successfully. If the
        stored salt no longer matches the session (a backup was imported
        meanwhile) the session is dropped and NotUnlockedError is raised.
        """
        session = self.session
        entries_blob = encrypt(session.key, dataset.entries_payload())
        events_blob = encrypt(session.key, dataset.events_payload())

        stored = await db.get_slot(db.SALT_SLOT)
        try:
            current = b64decode(stored) if stored is not None else None
        except ValueError:
            current = None
        if current != session.salt:
            self.lock()
            raise NotUnlockedError("Stored salt changed since unlock; unlock again")

        await db.put_slots(
            {
                db.ENTRIES_SLOT: entries_blob.to_json(),
                db.EVENTS_SLOT: events_blob.to_json(),
            }
        )
        logger.info(
            "saved %d entries and %d events",
            len(dataset.entries),
            len(dataset.events),
        )
