"""Google Calendar client for the events mirrored from the sheet."""

import logging
from typing import List, Optional, Tuple

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .dispatcher import RateLimiter, is_not_found

logger = logging.getLogger("sheetcal.calendar")

SCOPES = ["https://www.googleapis.com/auth/calendar"]

LIST_PAGE_SIZE = 2500


class CalendarClient:
    """Thin wrapper over the Calendar v3 events resource.

    Every request runs through the Calendar RateLimiter.
    """

    def __init__(self, credentials_path: str, limiter: RateLimiter, service=None):
        self.credentials_path = credentials_path
        self.limiter = limiter
        self._service = service

    def connect(self):
        credentials = Credentials.from_service_account_file(
            self.credentials_path, scopes=SCOPES
        )
        self._service = build('calendar', 'v3', credentials=credentials, cache_discovery=False)
        logger.info("Calendar service ready")

    @property
    def service(self):
        if self._service is None:
            self.connect()
        return self._service

    def _execute(self, request):
        return self.limiter.call(request.execute)

    def insert_event(self, calendar_id: str, body: dict) -> dict:
        return self._execute(self.service.events().insert(calendarId=calendar_id, body=body))

    def update_event(self, calendar_id: str, event_id: str, body: dict) -> dict:
        return self._execute(
            self.service.events().update(calendarId=calendar_id, eventId=event_id, body=body)
        )

    def get_event(self, calendar_id: str, event_id: str) -> Optional[dict]:
        """The event, or None when it no longer exists."""
        try:
            return self._execute(
                self.service.events().get(calendarId=calendar_id, eventId=event_id)
            )
        except HttpError as e:
            if is_not_found(e):
                return None
            raise

    def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """Delete an event. False when it was already gone (404/410)."""
        try:
            self._execute(
                self.service.events().delete(calendarId=calendar_id, eventId=event_id)
            )
            return True
        except HttpError as e:
            if is_not_found(e):
                logger.info("Event %s already gone", event_id)
                return False
            raise

    def list_events(self, calendar_id: str, time_min: str, time_max: str,
                    page_token: Optional[str] = None) -> Tuple[List[dict], Optional[str]]:
        """One page of expanded events in [time_min, time_max)."""
        result = self._execute(
            self.service.events().list(
                calendarId=calendar_id,
                timeMin=time_min,
                timeMax=time_max,
                maxResults=LIST_PAGE_SIZE,
                singleEvents=True,
                orderBy='startTime',
                pageToken=page_token,
            )
        )
        return result.get('items', []), result.get('nextPageToken')

    def list_all_events(self, calendar_id: str, time_min: str, time_max: str) -> List[dict]:
        events = []
        page_token = None
        while True:
            items, page_token = self.list_events(calendar_id, time_min, time_max, page_token)
            events.extend(items)
            if not page_token:
                break
        return events

    def verify_connection(self, calendar_id: str) -> bool:
        """Verify the calendar is reachable. Returns True if OK."""
        try:
            info = self._execute(self.service.calendars().get(calendarId=calendar_id))
            logger.info("Calendar access verified: %s", info.get('summary', calendar_id))
            return True
        except Exception as e:
            logger.error("Calendar access failed: %s", e)
            return False
