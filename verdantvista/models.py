# -*- coding: utf-8 -*-
"""Plain journal data structures.

These are what the vault encrypts. The dict shapes (``id``/``date``/
``content`` and ``id``/``title``/``date``) are the wire format inside the
encrypted blobs and must not change. Keys this client does not know about
(written by another client of the same store) are kept in ``extra`` and
written back unchanged on the next save.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


def _split(obj: Dict[str, Any], known: Tuple[str, ...]) -> Dict[str, Any]:
    return {k: v for k, v in obj.items() if k not in known}


@dataclass
class DiaryEntry:
    id: str
    date: str
    content: str
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    FIELDS = ("id", "date", "content")

    def to_dict(self) -> Dict[str, Any]:
        return {**self.extra, "id": self.id, "date": self.date, "content": self.content}

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "DiaryEntry":
        return cls(
            id=str(obj["id"]),
            date=str(obj["date"]),
            content=str(obj["content"]),
            extra=_split(obj, cls.FIELDS),
        )


@dataclass
class AppEvent:
    id: str
    title: str
    date: str
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    FIELDS = ("id", "title", "date")

    def to_dict(self) -> Dict[str, Any]:
        return {**self.extra, "id": self.id, "title": self.title, "date": self.date}

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "AppEvent":
        return cls(
            id=str(obj["id"]),
            title=str(obj["title"]),
            date=str(obj["date"]),
            extra=_split(obj, cls.FIELDS),
        )


@dataclass
class Dataset:
    """Everything a session holds in memory: entries plus derived events."""

    entries: List[DiaryEntry] = field(default_factory=list)
    events: List[AppEvent] = field(default_factory=list)

    def entries_payload(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self.entries]

    def events_payload(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self.events]

    @classmethod
    def from_payloads(cls, entries: Any, events: Any) -> "Dataset":
        """Build from decrypted JSON lists (``None`` means the slot was empty)."""
        return cls(
            entries=[DiaryEntry.from_dict(e) for e in (entries or [])],
            events=[AppEvent.from_dict(e) for e in (events or [])],
        )
