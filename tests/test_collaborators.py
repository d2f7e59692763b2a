"""
Tests for the analysis-collaborator boundary.

The collaborators themselves are replaced by AsyncMock callables.
"""

from datetime import datetime, time
from unittest.mock import AsyncMock

import pytest

from verdantvista.collaborators import (
    RecognizedEvent,
    apply_event_time_policy,
    event_from_recognition,
    parse_event_recognition,
    recognize_event,
    retrieve_by_mood,
)
from verdantvista.errors import CollaboratorResponseError


def _local(iso: str) -> datetime:
    return datetime.fromisoformat(iso.replace("Z", "+00:00")).astimezone()


class TestParseEventRecognition:

    def test_no_event(self):
        result = parse_event_recognition({"hasEvent": False})
        assert result.has_event is False
        assert result.event is None

    def test_has_event_without_details_is_no_event(self):
        assert parse_event_recognition({"hasEvent": True}).has_event is False

    def test_full_event(self):
        result = parse_event_recognition(
            {
                "hasEvent": True,
                "event": {"title": " Dentist ", "date": "2024-02-11T15:00:00Z", "timeProvided": True},
            }
        )
        assert result.has_event is True
        assert result.event == RecognizedEvent("Dentist", "2024-02-11T15:00:00Z", True)

    def test_missing_time_provided_is_unknown(self):
        result = parse_event_recognition(
            {"hasEvent": True, "event": {"title": "Party", "date": "2024-02-11T15:00:00Z"}}
        )
        assert result.event.time_provided is None
        assert result.event.needs_explicit_time is True

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            {},
            {"hasEvent": "yes"},
            {"hasEvent": True, "event": "Dentist"},
            {"hasEvent": True, "event": {"date": "2024-02-11"}},
            {"hasEvent": True, "event": {"title": "x", "date": "next friday"}},
            {"hasEvent": True, "event": {"title": "x", "date": "2024-02-11", "timeProvided": "no"}},
        ],
    )
    def test_contract_violations(self, payload):
        with pytest.raises(CollaboratorResponseError):
            parse_event_recognition(payload)


class TestTimePolicy:

    def test_no_time_pins_to_nine_local(self):
        event = RecognizedEvent("Dentist", "2024-05-02T15:30:00Z", False)
        pinned = apply_event_time_policy(event)
        local = _local(pinned.date)
        assert (local.hour, local.minute, local.second) == (9, 0, 0)
        assert pinned.date.endswith("Z")

    def test_naive_date_is_treated_as_local(self):
        pinned = apply_event_time_policy(RecognizedEvent("Lunch", "2024-05-02T13:00:00", False))
        local = _local(pinned.date)
        assert (local.year, local.month, local.day, local.hour) == (2024, 5, 2, 9)

    def test_custom_hour(self):
        pinned = apply_event_time_policy(RecognizedEvent("Gym", "2024-05-02", False), default_hour=7)
        assert _local(pinned.date).hour == 7

    def test_pinned_hour_uses_the_offset_of_the_new_time(self, berlin_tz):
        """Clocks spring forward at 02:00 on 2024-03-31; 09:00 that day is CEST."""
        event = RecognizedEvent("Brunch", "2024-03-30T23:30:00Z", False)
        pinned = apply_event_time_policy(event)
        assert pinned.date == "2024-03-31T07:00:00.000Z"
        local = _local(pinned.date)
        assert (local.day, local.hour) == (31, 9)
        assert local.utcoffset().total_seconds() == 2 * 3600

    @pytest.mark.parametrize("provided", [True, None])
    def test_other_events_are_untouched(self, provided):
        event = RecognizedEvent("Call", "2024-05-02T15:30:00Z", provided)
        assert apply_event_time_policy(event) is event


class TestRecognizeEvent:

    @pytest.mark.asyncio
    async def test_calls_collaborator_and_applies_policy(self):
        recognizer = AsyncMock(
            return_value={
                "hasEvent": True,
                "event": {"title": "Birthday", "date": "2024-06-01T18:45:00Z", "timeProvided": False},
            }
        )
        result = await recognize_event(recognizer, "Sam's birthday on June 1st", "2024-05-20T10:00:00Z")

        recognizer.assert_awaited_once_with("Sam's birthday on June 1st", "2024-05-20T10:00:00Z")
        assert _local(result.event.date).hour == 9

    @pytest.mark.asyncio
    async def test_collaborator_failures_propagate(self):
        recognizer = AsyncMock(side_effect=TimeoutError("model timed out"))
        with pytest.raises(TimeoutError):
            await recognize_event(recognizer, "text", "2024-05-20")
        assert recognizer.await_count == 1


class TestEventFromRecognition:

    def test_builds_app_event(self):
        ev = event_from_recognition(RecognizedEvent("Dentist", "2024-02-11T15:00:00.000Z", True))
        assert ev.title == "Dentist"
        assert ev.date == "2024-02-11T15:00:00.000Z"
        assert ev.id

    def test_unknown_time_requires_explicit_time(self):
        event = RecognizedEvent("Party", "2024-02-11T15:00:00Z", None)
        with pytest.raises(ValueError):
            event_from_recognition(event)

        ev = event_from_recognition(event, time(20, 30))
        local = _local(ev.date)
        assert (local.hour, local.minute) == (20, 30)

    def test_explicit_time_on_a_dst_change_day(self, berlin_tz):
        """Clocks fall back at 03:00 on 2024-10-27; 20:30 that day is CET."""
        event = RecognizedEvent("Concert", "2024-10-26T22:30:00Z", None)
        ev = event_from_recognition(event, time(20, 30))
        assert ev.date == "2024-10-27T19:30:00.000Z"
        assert (_local(ev.date).day, _local(ev.date).hour) == (27, 20)


class TestRetrieveByMood:

    @pytest.mark.asyncio
    async def test_returns_validated_pairs(self):
        pairs = [{"date": "2024-01-01", "content": "sunny walk"}, {"date": "2024-01-02", "content": "rain"}]
        retriever = AsyncMock(return_value={"relevantEntries": [pairs[0]]})

        result = await retrieve_by_mood(retriever, "happy", pairs)

        retriever.assert_awaited_once_with("happy", pairs)
        assert result == [pairs[0]]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {},
            {"relevantEntries": "all of them"},
            {"relevantEntries": [{"date": "2024-01-01"}]},
        ],
    )
    async def test_contract_violations(self, payload):
        retriever = AsyncMock(return_value=payload)
        with pytest.raises(CollaboratorResponseError):
            await retrieve_by_mood(retriever, "sad", [])
