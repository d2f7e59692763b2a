# -*- coding: utf-8 -*-
"""Application logic that composes the vault, backup and collaborator layers.

This module provides the public API used by the UI. It does not contain any
Textual UI code. All side effects (DB + config I/O) are explicit and local.
Every journal mutation builds a new :class:`Dataset`, saves it through the
vault, and only then hands it back, so memory never runs ahead of disk.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple, Union
from pathlib import Path
from datetime import datetime, timezone
import json
import logging
import os
import shutil
import uuid

from . import backup, db
from .collaborators import (
    DEFAULT_EVENT_HOUR,
    EventRecognition,
    EventRecognizer,
    MoodRetriever,
    recognize_event,
    retrieve_by_mood,
)
from .errors import EntryNotFoundError
from .models import AppEvent, Dataset, DiaryEntry
from .vault import Vault

logger = logging.getLogger("verdantvista.logic")

# ---------------------------------------------------------------------
# Config management (JSON on disk)
# ---------------------------------------------------------------------

APP_NAME = "verdantvista"

DEFAULT_CONFIG: Dict[str, object] = {
    "active_theme": "vt220_green",
    "backup_dir": "~/VerdantVistaBackups",
    "default_event_hour": DEFAULT_EVENT_HOUR,
    "log_level": "INFO",
}

def _config_dir() -> Path:
    """Return the config directory path for this platform."""
    if os.name == "nt":
        base = os.environ.get("APPDATA", os.path.expanduser("~\\AppData\\Roaming"))
        return Path(base) / APP_NAME
    base = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(base) / APP_NAME

def _config_path() -> Path:
    return _config_dir() / "config.json"

def load_config() -> Dict[str, object]:
    """Load the merged configuration (defaults + file)."""
    path = _config_path()
    if not path.exists():
        save_config(DEFAULT_CONFIG)
        return dict(DEFAULT_CONFIG)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    merged = dict(DEFAULT_CONFIG)
    merged.update(data)
    return merged

def save_config(cfg: Dict[str, object]) -> None:
    """Persist *cfg* to the JSON config file."""
    _config_dir().mkdir(parents=True, exist_ok=True)
    with _config_path().open("w", encoding="utf-8") as f:
        json.dump(cfg, f, indent=2)

def configure_logging(cfg: Optional[Dict[str, object]] = None) -> Path:
    """Send log records to a file in the config dir; the terminal is the TUI's."""
    cfg = cfg or load_config()
    _config_dir().mkdir(parents=True, exist_ok=True)
    log_path = _config_dir() / "verdantvista.log"
    logging.basicConfig(
        filename=str(log_path),
        level=str(cfg.get("log_level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return log_path


# ---------------------------------------------------------------------
# DB bridge
# ---------------------------------------------------------------------

async def init_db() -> None:
    """Initialize the SQLite slot store (create tables on first run)."""
    await db.init_db()


# ---------------------------------------------------------------------
# Backup helpers
# ---------------------------------------------------------------------

def snapshot_database() -> Optional[Path]:
    """Copy the SQLite file to ``backups/`` with a timestamp; None if absent."""
    db_path = Path(db.DB_PATH).expanduser()
    if not db_path.is_absolute():
        db_path = (Path.cwd() / db_path).resolve()
    if not db_path.exists():
        return None

    backups_dir = db_path.parent / "backups"
    backups_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    backup_path = backups_dir / f"{db_path.name}.bak-{timestamp}"
    shutil.copy2(db_path, backup_path)
    return backup_path

def default_backup_path(cfg: Optional[Dict[str, object]] = None) -> Path:
    """Suggested export file name inside the configured backup dir."""
    cfg = cfg or load_config()
    folder = Path(str(cfg.get("backup_dir", DEFAULT_CONFIG["backup_dir"]))).expanduser()
    stamp = datetime.now().strftime("%Y-%m-%d")
    return folder / f"verdant-vista-backup-{stamp}.json"

async def export_backup_file(path: Union[str, Path]) -> Path:
    """Write the stored ciphertext to a portable backup file."""
    doc = await backup.export_backup()
    target = backup.write_backup_file(path, doc)
    logger.info("backup written to %s", target)
    return target

async def import_backup_file(path: Union[str, Path], vault: Optional[Vault] = None) -> None:
    """Replace the stored journal with a backup file.

    The file is validated first; an invalid file leaves storage untouched.
    The current database is snapshotted, and *vault* (if given) is locked
    because its key was derived from the old salt.
    """
    doc = backup.read_backup_file(path)
    snap = snapshot_database()
    if snap is not None:
        logger.info("pre-import snapshot at %s", snap)
    await backup.import_backup(doc)
    if vault is not None:
        vault.lock()


# ---------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _sort_key(value: str) -> datetime:
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)

def display_date(value: str, with_time: bool = False) -> str:
    """Render a stored date in the local calendar (and clock, if asked).

    Stored values are UTC; offset-less ones are already local wall time.
    Unparseable values are shown as stored.
    """
    fmt = "%Y-%m-%d %H:%M" if with_time else "%Y-%m-%d"
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value[:16] if with_time else value[:10]
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime(fmt)

def _find_entry(dataset: Dataset, entry_id: str) -> DiaryEntry:
    for entry in dataset.entries:
        if entry.id == entry_id:
            return entry
    raise EntryNotFoundError(f"Entry {entry_id} not found")

async def add_entry(
    vault: Vault, dataset: Dataset, content: str, date: Optional[str] = None
) -> Tuple[Dataset, DiaryEntry]:
    """Prepend a new entry, save, and return (new dataset, entry)."""
    if not content.strip():
        raise ValueError("Your entry cannot be empty.")
    entry = DiaryEntry(id=str(uuid.uuid4()), date=date or _now_iso(), content=content)
    updated = Dataset(entries=[entry, *dataset.entries], events=list(dataset.events))
    await vault.save(updated)
    return updated, entry

async def update_entry(
    vault: Vault,
    dataset: Dataset,
    entry_id: str,
    content: Optional[str] = None,
    date: Optional[str] = None,
) -> Dataset:
    """Replace content and/or date of one entry and save."""
    current = _find_entry(dataset, entry_id)
    if content is not None and not content.strip():
        raise ValueError("Your entry cannot be empty.")
    changed = DiaryEntry(
        id=current.id,
        date=date if date is not None else current.date,
        content=content if content is not None else current.content,
        extra=dict(current.extra),
    )
    updated = Dataset(
        entries=[changed if e.id == entry_id else e for e in dataset.entries],
        events=list(dataset.events),
    )
    await vault.save(updated)
    return updated

async def delete_entry(vault: Vault, dataset: Dataset, entry_id: str) -> Dataset:
    _find_entry(dataset, entry_id)
    updated = Dataset(
        entries=[e for e in dataset.entries if e.id != entry_id],
        events=list(dataset.events),
    )
    await vault.save(updated)
    return updated

def get_entry(dataset: Dataset, entry_id: str) -> DiaryEntry:
    return _find_entry(dataset, entry_id)

def sorted_entries(dataset: Dataset) -> List[DiaryEntry]:
    """Entries newest first."""
    return sorted(dataset.entries, key=lambda e: _sort_key(e.date), reverse=True)

def search_entries(dataset: Dataset, query: str) -> List[DiaryEntry]:
    """Case-insensitive substring match on content, newest first."""
    needle = query.lower()
    return [e for e in sorted_entries(dataset) if needle in e.content.lower()]


# ---------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------

async def add_event(vault: Vault, dataset: Dataset, event: AppEvent) -> Dataset:
    if not event.title.strip():
        raise ValueError("Event title required")
    updated = Dataset(entries=list(dataset.entries), events=[*dataset.events, event])
    await vault.save(updated)
    return updated

async def delete_event(vault: Vault, dataset: Dataset, event_id: str) -> Dataset:
    if not any(ev.id == event_id for ev in dataset.events):
        raise EntryNotFoundError(f"Event {event_id} not found")
    updated = Dataset(
        entries=list(dataset.entries),
        events=[ev for ev in dataset.events if ev.id != event_id],
    )
    await vault.save(updated)
    return updated

def upcoming_events(dataset: Dataset, now: Optional[datetime] = None) -> List[AppEvent]:
    """Events at or after *now*, soonest first."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    future = [ev for ev in dataset.events if _sort_key(ev.date) >= now]
    return sorted(future, key=lambda ev: _sort_key(ev.date))


# ---------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------

async def recognize_event_for_entry(
    recognizer: EventRecognizer,
    entry: DiaryEntry,
    now: Optional[datetime] = None,
    default_hour: Optional[int] = None,
) -> EventRecognition:
    """Ask the recognizer whether *entry* mentions a future event."""
    now = now or datetime.now(timezone.utc)
    hour = default_hour if default_hour is not None else int(
        load_config().get("default_event_hour", DEFAULT_EVENT_HOUR)
    )
    return await recognize_event(recognizer, entry.content, now.isoformat(), hour)

async def retrieve_entries_by_mood(
    retriever: MoodRetriever, mood_description: str, dataset: Dataset
) -> List[DiaryEntry]:
    """Entries the retriever judged relevant to the mood, newest first.

    Pairs the retriever returns that match no stored entry are dropped.
    """
    if not mood_description.strip():
        raise ValueError("Describe your mood first")
    pairs = [{"date": e.date, "content": e.content} for e in dataset.entries]
    relevant = await retrieve_by_mood(retriever, mood_description, pairs)
    wanted = {(p["date"], p["content"]) for p in relevant}
    return [e for e in sorted_entries(dataset) if (e.date, e.content) in wanted]
