#! /usr/bin/python3
# -*- coding: utf-8 -*-
"""SQLite slot store and async data access for Verdant Vista.

The journal lives in three named slots (salt, entries blob, events blob).
The store never sees plaintext; values are the base64/JSON text written by
the vault.
"""
from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional
import os
import aiosqlite

DB_PATH = os.environ.get("VERDANTVISTA_DB", "journal_vault.sqlite3")

SALT_SLOT = "verdant-vista-salt"
ENTRIES_SLOT = "verdant-vista-data"
EVENTS_SLOT = "verdant-vista-events"

ALL_SLOTS = (SALT_SLOT, ENTRIES_SLOT, EVENTS_SLOT)


# ---------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS slots (
    name        TEXT PRIMARY KEY,
    value       TEXT NOT NULL
);
"""


# ---------------------------------------------------------------------
# Connection / initialization
# ---------------------------------------------------------------------

async def init_db() -> None:
    """Create the slot table if it doesn't exist."""
    async with aiosqlite.connect(DB_PATH) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()


# ---------------------------------------------------------------------
# Slots
# ---------------------------------------------------------------------

async def get_slot(name: str) -> Optional[str]:
    """Return the stored value for *name* or None."""
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute("SELECT value FROM slots WHERE name = ?", (name,))
        row = await cur.fetchone()
        await cur.close()
        return row[0] if row else None


async def get_slots(names: Iterable[str]) -> Dict[str, Optional[str]]:
    """Return a mapping of every requested slot name to its value (or None)."""
    wanted = list(names)
    out: Dict[str, Optional[str]] = {name: None for name in wanted}
    if not wanted:
        return out
    marks = ", ".join("?" for _ in wanted)
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute(
            f"SELECT name, value FROM slots WHERE name IN ({marks})",
            wanted,
        )
        rows = await cur.fetchall()
        await cur.close()
    for name, value in rows:
        out[name] = value
    return out


async def put_slots(values: Mapping[str, Optional[str]]) -> None:
    """Write several slots in one transaction; a None value deletes the slot.

    Either every slot is replaced or none is: the statements share one
    implicit transaction and closing without commit rolls it back.
    """
    if not values:
        return
    async with aiosqlite.connect(DB_PATH) as db:
        for name, value in values.items():
            if value is None:
                await db.execute("DELETE FROM slots WHERE name = ?", (name,))
            else:
                await db.execute(
                    """
                    INSERT INTO slots (name, value) VALUES (?, ?)
                    ON CONFLICT(name) DO UPDATE SET value = excluded.value
                    """,
                    (name, value),
                )
        await db.commit()


async def put_slot(name: str, value: str) -> None:
    """Write a single slot."""
    await put_slots({name: value})


async def delete_slots(names: Iterable[str]) -> None:
    """Remove the named slots (missing ones are ignored)."""
    await put_slots({name: None for name in names})
