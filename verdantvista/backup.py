# -*- coding: utf-8 -*-
"""Portable backup documents built from the raw ciphertext slots.

Export and import copy the stored salt and blobs verbatim. Neither needs the
key, so both work whether or not the vault is unlocked. The file format is
the JSON object ``{"salt": str, "data": str, "events"?: str}`` where
``data``/``events`` are the JSON text of ``{"iv", "data"}`` blobs.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging

from . import db
from .crypto import NONCE_LEN, SALT_LEN, b64decode
from .errors import MalformedBackupError, NothingToExportError

logger = logging.getLogger("verdantvista.backup")


@dataclass(frozen=True)
class BackupDocument:
    """Transport-only aggregate; carries ciphertext, never plaintext."""

    salt: str
    data: str
    events: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        out = {"salt": self.salt, "data": self.data}
        if self.events is not None:
            out["events"] = self.events
        return out

    @classmethod
    def from_dict(cls, obj: Any) -> "BackupDocument":
        """Validate the document structure; raise MalformedBackupError."""
        if not isinstance(obj, dict):
            raise MalformedBackupError("Backup must be a JSON object")
        for required in ("salt", "data"):
            if required not in obj or obj[required] is None:
                raise MalformedBackupError(f"Backup is missing '{required}'")

        salt = obj["salt"]
        if not isinstance(salt, str):
            raise MalformedBackupError("'salt' must be a string")
        try:
            raw_salt = b64decode(salt)
        except ValueError as exc:
            raise MalformedBackupError("'salt' is not valid base64") from exc
        if len(raw_salt) != SALT_LEN:
            raise MalformedBackupError(f"'salt' must decode to {SALT_LEN} bytes")

        data = _check_blob_text("data", obj["data"])
        events = obj.get("events")
        if events is not None:
            events = _check_blob_text("events", events)
        return cls(salt=salt, data=data, events=events)


def _check_blob_text(field: str, value: Any) -> str:
    """A blob field is the JSON text of ``{"iv": b64, "data": b64}``."""
    if not isinstance(value, str):
        raise MalformedBackupError(f"'{field}' must be a string")
    try:
        blob = json.loads(value)
    except ValueError as exc:
        raise MalformedBackupError(f"'{field}' is not JSON") from exc
    if not isinstance(blob, dict):
        raise MalformedBackupError(f"'{field}' must hold an object")
    iv, ct = blob.get("iv"), blob.get("data")
    if not isinstance(iv, str) or not isinstance(ct, str):
        raise MalformedBackupError(f"'{field}' needs string 'iv' and 'data'")
    try:
        raw_iv = b64decode(iv)
        b64decode(ct)
    except ValueError as exc:
        raise MalformedBackupError(f"'{field}' holds invalid base64") from exc
    if len(raw_iv) != NONCE_LEN:
        raise MalformedBackupError(f"'{field}' iv must be {NONCE_LEN} bytes")
    return value


# ---------------------------------------------------------------------
# Export / import
# ---------------------------------------------------------------------

async def export_backup() -> BackupDocument:
    """Read the raw slots exactly as stored."""
    slots = await db.get_slots(db.ALL_SLOTS)
    salt, data = slots[db.SALT_SLOT], slots[db.ENTRIES_SLOT]
    if salt is None or data is None:
        raise NothingToExportError()
    logger.info("exported backup (events included: %s)", slots[db.EVENTS_SLOT] is not None)
    return BackupDocument(salt=salt, data=data, events=slots[db.EVENTS_SLOT])


async def import_backup(doc: Union[BackupDocument, Dict[str, Any]]) -> None:
    """Replace all stored slots with the document's contents.

    Destructive and unconditional. The document is validated before anything
    is written; a document without events clears the events slot.
    """
    if not isinstance(doc, BackupDocument):
        doc = BackupDocument.from_dict(doc)
    else:
        doc = BackupDocument.from_dict(doc.to_dict())
    await db.put_slots(
        {
            db.SALT_SLOT: doc.salt,
            db.ENTRIES_SLOT: doc.data,
            db.EVENTS_SLOT: doc.events,
        }
    )
    logger.info("imported backup; previous journal replaced")


# ---------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------

def write_backup_file(path: Union[str, Path], doc: BackupDocument) -> Path:
    """Write *doc* as pretty JSON and return the path."""
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as f:
        json.dump(doc.to_dict(), f, indent=2)
    return target


def read_backup_file(path: Union[str, Path]) -> BackupDocument:
    """Parse and validate a backup file."""
    source = Path(path).expanduser()
    try:
        with source.open("r", encoding="utf-8") as f:
            obj = json.load(f)
    except ValueError as exc:
        raise MalformedBackupError(f"{source.name} is not a JSON backup") from exc
    return BackupDocument.from_dict(obj)
