"""JSON output models for scripting and status-bar consumers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Machine-readable error codes
ERR_NOT_CONFIGURED = "not_configured"
ERR_TOKEN_EXPIRED = "token_expired"
ERR_NETWORK_ERROR = "network_error"
ERR_API_ERROR = "api_error"


@dataclass
class Event:
    """A calendar event as reported to callers."""

    id: str
    title: str
    start: str
    end: str
    attendees: list[str] = field(default_factory=list)
    attendee_count: int = 0
    meeting_url: str = ""
    has_conflict: bool = False
    response_status: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "start": self.start,
            "end": self.end,
            "attendees": list(self.attendees),
            "attendeeCount": self.attendee_count,
        }
        if self.meeting_url:
            data["meetingUrl"] = self.meeting_url
        data["hasConflict"] = self.has_conflict
        data["responseStatus"] = self.response_status
        return data


@dataclass
class CalendarInfo:
    """A calendar the user has access to."""

    id: str
    summary: str
    primary: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "summary": self.summary, "primary": self.primary}


@dataclass
class EventsResponse:
    """Response envelope for event queries."""

    success: bool
    last_sync: str = ""
    events: list[Event] = field(default_factory=list)
    error: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.last_sync:
            data["lastSync"] = self.last_sync
        if self.events:
            data["events"] = [event.to_dict() for event in self.events]
        if self.error:
            data["error"] = self.error
        if self.message:
            data["message"] = self.message
        return data


@dataclass
class CalendarsResponse:
    """Response envelope for calendar listing."""

    success: bool
    calendars: list[CalendarInfo] = field(default_factory=list)
    error: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.calendars:
            data["calendars"] = [calendar.to_dict() for calendar in self.calendars]
        if self.error:
            data["error"] = self.error
        if self.message:
            data["message"] = self.message
        return data


def now_rfc3339() -> str:
    """Current local time as RFC3339 with offset, to the second."""
    return datetime.now().astimezone().replace(microsecond=0).isoformat()


def success_response(events: list[Event]) -> EventsResponse:
    return EventsResponse(success=True, last_sync=now_rfc3339(), events=events)


def error_response(code: str, message: str) -> EventsResponse:
    return EventsResponse(success=False, error=code, message=message)
