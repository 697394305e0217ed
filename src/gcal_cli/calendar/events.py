"""Conversion and post-processing of raw Calendar API events."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from gcal_cli.models import Event

EVENT_STATUS_CANCELLED = "cancelled"
RESPONSE_STATUS_ACCEPTED = "accepted"

# Tried in order; the first pattern that matches anywhere wins.
MEETING_PATTERNS = [
    re.compile(r'https://[a-z0-9.-]*zoom\.us/[^\s<>"]+'),
    re.compile(r"https://meet\.google\.com/[a-z0-9-]+"),
    re.compile(r'https://teams\.microsoft\.com/[^\s<>"]+'),
    re.compile(r'https://[a-z0-9.-]*webex\.com/[^\s<>"]+'),
]

RFC3339_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})"
)


def convert_event(item: dict[str, Any]) -> Event | None:
    """Convert a Calendar API event resource to an Event.

    Cancelled events, all-day events, events without other attendees
    (focus time, personal blocks) and events the user has not accepted
    are dropped.

    Args:
        item: Event resource as returned by ``events().list()``.

    Returns:
        The converted Event, or None if the event is filtered out.
    """
    if item.get("status") == EVENT_STATUS_CANCELLED:
        return None

    start = (item.get("start") or {}).get("dateTime", "")
    if not start:
        return None

    event = Event(
        id=item.get("id", ""),
        title=item.get("summary", ""),
        start=start,
        end=(item.get("end") or {}).get("dateTime", ""),
    )

    for attendee in item.get("attendees") or []:
        if attendee.get("self"):
            event.response_status = attendee.get("responseStatus", "")
        elif attendee.get("email"):
            event.attendees.append(attendee.get("displayName") or attendee["email"])
    event.attendee_count = len(event.attendees)

    if event.attendee_count == 0:
        return None

    # A missing self entry leaves the status empty and is filtered the same way
    if event.response_status != RESPONSE_STATUS_ACCEPTED:
        return None

    event.meeting_url = extract_meeting_url(item)
    return event


def extract_meeting_url(item: dict[str, Any]) -> str:
    """Find the video meeting URL for an event.

    Checks the Meet link, then video conference entry points, then known
    meeting URLs in the description and location.

    Returns:
        The URL, or an empty string if none was found.
    """
    if item.get("hangoutLink"):
        return item["hangoutLink"]

    conference = item.get("conferenceData") or {}
    for entry_point in conference.get("entryPoints") or []:
        if entry_point.get("entryPointType") == "video" and entry_point.get("uri"):
            return entry_point["uri"]

    search_in = f"{item.get('description', '')} {item.get('location', '')}"
    for pattern in MEETING_PATTERNS:
        match = pattern.search(search_in)
        if match:
            return match.group(0).strip()

    return ""


def sort_events(events: list[Event]) -> list[Event]:
    """Sort events by start time, keeping discovery order for equal starts."""
    return sorted(events, key=lambda event: event.start)


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC3339 timestamp.

    Raises:
        ValueError: If the value is not a timestamp with a UTC offset.
    """
    if not RFC3339_PATTERN.fullmatch(value):
        raise ValueError(f"not an RFC3339 timestamp: {value}")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def events_overlap(a: Event, b: Event) -> bool:
    """Check whether two events overlap; touching events do not.

    Raises:
        ValueError: If any of the four timestamps cannot be parsed.
    """
    start_a, end_a = parse_timestamp(a.start), parse_timestamp(a.end)
    start_b, end_b = parse_timestamp(b.start), parse_timestamp(b.end)
    return end_a > start_b and start_a < end_b


def detect_conflicts(events: list[Event]) -> None:
    """Mark every event that overlaps another one.

    Pairs with unparseable timestamps are skipped.
    """
    # TODO: switch to a sweep over start-sorted events if lists grow past a day's worth
    for i, first in enumerate(events):
        for second in events[i + 1 :]:
            try:
                overlap = events_overlap(first, second)
            except ValueError:
                continue
            if overlap:
                first.has_conflict = True
                second.has_conflict = True
