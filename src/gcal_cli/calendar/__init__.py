"""Google Calendar event fetching and post-processing.

Usage:
    from gcal_cli.calendar import CalendarClient

    # Initialize (requires OAuth authorization)
    client = CalendarClient()

    # Today's accepted meetings, sorted and conflict-tagged
    events = client.fetch_today()

    # Next 4 hours across two calendars
    events = client.fetch_upcoming(["primary", "team@example.com"], hours=4)

OAuth Setup:
    1. Download OAuth client credentials from Google Cloud Console
    2. Import: gcal import ~/Downloads/gcal-credentials.json
    3. Authorize: gcal auth
"""

from __future__ import annotations

from gcal_cli.calendar.client import CalendarClient
from gcal_cli.calendar.events import convert_event, detect_conflicts, extract_meeting_url
from gcal_cli.calendar.exceptions import APIError, NetworkError

__all__ = [
    "CalendarClient",
    "convert_event",
    "detect_conflicts",
    "extract_meeting_url",
    "APIError",
    "NetworkError",
]
