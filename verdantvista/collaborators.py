# -*- coding: utf-8 -*-
"""Boundary to the text-analysis collaborators.

The journal core does not prompt models. It hands plain data to two injected
async callables and validates what comes back:

- event recognition: ``(entry_content, current_date_iso) ->
  {"hasEvent": bool, "event"?: {"title", "date", "timeProvided"?}}``
- mood retrieval: ``(mood_description, [{"date", "content"}]) ->
  {"relevantEntries": [{"date", "content"}]}``

Failures raised by the callables propagate unchanged; nothing here retries.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, time, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional
import uuid

from .errors import CollaboratorResponseError
from .models import AppEvent

EventRecognizer = Callable[[str, str], Awaitable[Mapping[str, Any]]]
MoodRetriever = Callable[[str, List[Dict[str, str]]], Awaitable[Mapping[str, Any]]]

DEFAULT_EVENT_HOUR = 9


# ---------------------------------------------------------------------
# Event recognition
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class RecognizedEvent:
    title: str
    date: str
    time_provided: Optional[bool]

    @property
    def needs_explicit_time(self) -> bool:
        """Older collaborators omit timeProvided; their times are not trusted."""
        return self.time_provided is None


@dataclass(frozen=True)
class EventRecognition:
    has_event: bool
    event: Optional[RecognizedEvent] = None


def _parse_iso(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise CollaboratorResponseError(f"Event date is not ISO-8601: {value!r}") from exc


def _to_utc_iso(dt: datetime) -> str:
    """Serialize like ``Date.toISOString()``; naive values are local time."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def _at_local_time(value: str, hour: int, minute: int = 0) -> str:
    """Move *value* to hour:minute local time on its local calendar day.

    The wall-clock time is rebuilt without an offset so the local offset is
    looked up again for the new time; it differs on DST-change days.
    """
    dt = _parse_iso(value)
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return _to_utc_iso(dt.replace(hour=hour, minute=minute, second=0, microsecond=0))


def parse_event_recognition(payload: Any) -> EventRecognition:
    """Validate a raw event-recognition response."""
    if not isinstance(payload, Mapping) or not isinstance(payload.get("hasEvent"), bool):
        raise CollaboratorResponseError("Event recognition must return 'hasEvent'")
    raw = payload.get("event")
    # hasEvent without details is treated as no event
    if not payload["hasEvent"] or raw is None:
        return EventRecognition(has_event=False)
    if not isinstance(raw, Mapping):
        raise CollaboratorResponseError("'event' must be an object")
    title, date = raw.get("title"), raw.get("date")
    if not isinstance(title, str) or not title.strip():
        raise CollaboratorResponseError("Event needs a title")
    if not isinstance(date, str):
        raise CollaboratorResponseError("Event needs a date")
    _parse_iso(date)
    provided = raw.get("timeProvided")
    if provided is not None and not isinstance(provided, bool):
        raise CollaboratorResponseError("'timeProvided' must be a boolean")
    return EventRecognition(
        has_event=True,
        event=RecognizedEvent(title=title.strip(), date=date, time_provided=provided),
    )


def apply_event_time_policy(
    event: RecognizedEvent, default_hour: int = DEFAULT_EVENT_HOUR
) -> RecognizedEvent:
    """Pin events without a stated time to *default_hour* local time.

    Events whose ``time_provided`` is unknown are returned untouched; the
    front end must collect a time before saving them.
    """
    if event.time_provided is not False:
        return event
    return replace(event, date=_at_local_time(event.date, default_hour))


async def recognize_event(
    recognizer: EventRecognizer,
    entry_content: str,
    current_date: str,
    default_hour: int = DEFAULT_EVENT_HOUR,
) -> EventRecognition:
    """Ask the collaborator for an event and apply the time policy."""
    result = parse_event_recognition(await recognizer(entry_content, current_date))
    if result.event is None:
        return result
    return replace(result, event=apply_event_time_policy(result.event, default_hour))


def event_from_recognition(
    event: RecognizedEvent, explicit_time: Optional[time] = None
) -> AppEvent:
    """Turn a recognized event into a stored calendar event.

    An *explicit_time* (local) overrides the recognized time and is required
    when the collaborator did not say whether a time was given.
    """
    date = event.date
    if explicit_time is not None:
        date = _at_local_time(date, explicit_time.hour, explicit_time.minute)
    elif event.needs_explicit_time:
        raise ValueError("Event time unknown; an explicit time is required")
    return AppEvent(id=str(uuid.uuid4()), title=event.title, date=date)


# ---------------------------------------------------------------------
# Mood retrieval
# ---------------------------------------------------------------------

async def retrieve_by_mood(
    retriever: MoodRetriever,
    mood_description: str,
    entries: List[Dict[str, str]],
) -> List[Dict[str, str]]:
    """Return the ``{date, content}`` pairs the collaborator judged relevant."""
    payload = await retriever(mood_description, entries)
    if not isinstance(payload, Mapping):
        raise CollaboratorResponseError("Mood retrieval must return an object")
    relevant = payload.get("relevantEntries")
    if not isinstance(relevant, list):
        raise CollaboratorResponseError("Mood retrieval must return 'relevantEntries'")
    out: List[Dict[str, str]] = []
    for item in relevant:
        if (
            not isinstance(item, Mapping)
            or not isinstance(item.get("date"), str)
            or not isinstance(item.get("content"), str)
        ):
            raise CollaboratorResponseError("Relevant entries need 'date' and 'content'")
        out.append({"date": item["date"], "content": item["content"]})
    return out
