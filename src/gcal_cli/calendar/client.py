"""Google Calendar API client implementation."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from gcal_cli.calendar.events import convert_event, detect_conflicts, sort_events
from gcal_cli.calendar.exceptions import APIError, NetworkError
from gcal_cli.google import GoogleOAuth, TokenExpiredError
from gcal_cli.models import CalendarInfo, Event

logger = logging.getLogger(__name__)

PRIMARY_CALENDAR = "primary"
DEFAULT_UPCOMING_HOURS = 4

# Failures that mean the API was never reached
NETWORK_ERRORS = (httplib2.HttpLib2Error, TransportError, OSError)


class CalendarClient:
    """Read-only Google Calendar client.

    Fetches events across calendars and returns them filtered, merged,
    sorted and tagged with conflicts.

    Usage:
        client = CalendarClient()

        # List calendars
        calendars = client.list_calendars()

        # Today's accepted meetings from two calendars
        events = client.fetch_today(["primary", "team@example.com"])

    Note:
        Requires OAuth authorization. Run `gcal auth` to authorize.
    """

    def __init__(self, auth: GoogleOAuth | None = None, service: Any = None) -> None:
        """Initialize Calendar client.

        Args:
            auth: OAuth manager. Defaults to GoogleOAuth() with standard paths.
            service: Pre-built Calendar API service (skips authentication).
        """
        self._auth = auth
        self._service = service

    def _get_service(self) -> Any:
        """Get or create Calendar API service."""
        if self._service is None:
            if self._auth is None:
                self._auth = GoogleOAuth()
            self._service = self._auth.get_session().build_service("calendar", "v3")
        return self._service

    # =========================================================================
    # Calendars
    # =========================================================================

    def list_calendars(self) -> list[CalendarInfo]:
        """List all calendars.

        Returns:
            List of CalendarInfo objects in provider order.

        Raises:
            APIError: If the request fails.
            TokenExpiredError: If the token was rejected on refresh.
        """
        service = self._get_service()
        try:
            results = service.calendarList().list().execute()
        except HttpError as e:
            raise APIError(f"failed to list calendars: {e}", status_code=e.resp.status) from e
        except RefreshError as e:
            raise TokenExpiredError(f"failed to refresh token: {e}") from e
        except NETWORK_ERRORS as e:
            raise NetworkError(f"failed to list calendars: {e}") from e

        return [self._parse_calendar(item) for item in results.get("items", [])]

    def _parse_calendar(self, data: dict) -> CalendarInfo:
        """Parse calendar from API response."""
        return CalendarInfo(
            id=data.get("id", ""),
            summary=data.get("summary", ""),
            primary=bool(data.get("primary", False)),
        )

    # =========================================================================
    # Events
    # =========================================================================

    def _list_raw_events(
        self, service: Any, calendar_id: str, time_min: str, time_max: str
    ) -> list[dict]:
        results = (
            service.events()
            .list(
                calendarId=calendar_id,
                timeMin=time_min,
                timeMax=time_max,
                singleEvents=True,
                orderBy="startTime",
            )
            .execute()
        )
        return results.get("items") or []

    def fetch_window(
        self,
        calendar_ids: list[str] | None,
        start: datetime,
        end: datetime,
    ) -> list[Event]:
        """Fetch accepted meetings between two times across calendars.

        Each calendar is queried on its own; failures are tolerated as long
        as at least one calendar answers.

        Args:
            calendar_ids: Calendar IDs to query. Empty means the primary calendar.
            start: Start of the window (timezone-aware).
            end: End of the window (timezone-aware).

        Returns:
            Events sorted by start time with conflicts marked.

        Raises:
            APIError: If every calendar query failed.
            NetworkError: If every calendar query failed to reach the API.
            TokenExpiredError: If the token was rejected on refresh.
        """
        service = self._get_service()
        calendar_ids = list(calendar_ids or [PRIMARY_CALENDAR])

        time_min = self._format_datetime(start)
        time_max = self._format_datetime(end)

        all_events: list[Event] = []
        errors: list[str] = []
        network_failures = 0

        for calendar_id in calendar_ids:
            try:
                items = self._list_raw_events(service, calendar_id, time_min, time_max)
            except HttpError as e:
                errors.append(f"calendar {calendar_id}: {e}")
                continue
            except RefreshError as e:
                # The token is shared by every calendar
                raise TokenExpiredError(f"failed to refresh token: {e}") from e
            except NETWORK_ERRORS as e:
                errors.append(f"calendar {calendar_id}: {e}")
                network_failures += 1
                continue

            for item in items:
                event = convert_event(item)
                if event is not None:
                    all_events.append(event)

        if errors and len(errors) == len(calendar_ids):
            message = f"failed to fetch events: {'; '.join(errors)}"
            if network_failures == len(errors):
                raise NetworkError(message)
            raise APIError(message)

        for error in errors:
            logger.warning(f"Skipping {error}")

        all_events = sort_events(all_events)
        detect_conflicts(all_events)
        return all_events

    def fetch_today(self, calendar_ids: list[str] | None = None) -> list[Event]:
        """Fetch today's events in the local timezone."""
        now = datetime.now().astimezone()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(hours=24)
        return self.fetch_window(calendar_ids, start_of_day, end_of_day)

    def fetch_upcoming(
        self,
        calendar_ids: list[str] | None = None,
        hours: int = DEFAULT_UPCOMING_HOURS,
    ) -> list[Event]:
        """Fetch events from now until ``hours`` from now."""
        now = datetime.now().astimezone().replace(microsecond=0)
        return self.fetch_window(calendar_ids, now, now + timedelta(hours=hours))

    def _format_datetime(self, dt: datetime) -> str:
        """Format datetime for API."""
        if dt.tzinfo is None:
            dt = dt.astimezone()
        return dt.replace(microsecond=0).isoformat()
