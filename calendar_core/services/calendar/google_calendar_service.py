# calendar_core/services/calendar/google_calendar_service.py
import logging
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo

from calendar_core.exceptions import ApiError
from calendar_core.schemas import (
    CalendarEvent,
    CalendarEventResponse,
    CalendarProvider,
    FreeBusyQuery,
    FreeBusyResponse,
    ProviderAccount,
    TimeSlot,
)
from calendar_core.services.calendar.base import CalendarService, calculate_free_slots

logger = logging.getLogger(__name__)


def _parse_google_time(value: Optional[Dict[str, Any]]) -> Optional[datetime]:
    """Google sends dateTime (RFC3339) for timed events and date for all-day ones"""
    if not value:
        return None
    if value.get("dateTime"):
        return datetime.fromisoformat(value["dateTime"])
    if value.get("date"):
        tz = ZoneInfo(value.get("timeZone") or "UTC")
        return datetime.combine(date.fromisoformat(value["date"]), time.min, tzinfo=tz)
    return None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class GoogleCalendarService(CalendarService):
    """Google Calendar API v3 client"""

    provider = CalendarProvider.GOOGLE
    base_url = "https://www.googleapis.com/calendar/v3"

    def _events_path(self, account: ProviderAccount, event_id: Optional[str] = None) -> str:
        path = f"/calendars/{quote(account.calendar_id, safe='')}/events"
        if event_id:
            path += f"/{quote(event_id, safe='')}"
        return path

    def create_event(self, account: ProviderAccount, event: CalendarEvent) -> CalendarEventResponse:
        def operation(current: ProviderAccount) -> CalendarEventResponse:
            body = self._call(
                current, "POST", self._events_path(current), "create event",
                json=self._build_event_body(event)
            )
            created = self._map_event(self._require(body, "id", "create event"))
            logger.info(f"Created Google event {created.event_id} for account {current.id}")
            return created

        return self.execute_with_retry(account, "create_event", operation)

    def update_event(self, account: ProviderAccount, event_id: str, event: CalendarEvent) -> CalendarEventResponse:
        def operation(current: ProviderAccount) -> CalendarEventResponse:
            body = self._call(
                current, "PUT", self._events_path(current, event_id), "update event",
                json=self._build_event_body(event)
            )
            return self._map_event(self._require(body, "id", "update event"))

        return self.execute_with_retry(account, "update_event", operation)

    def delete_event(self, account: ProviderAccount, event_id: str) -> None:
        def operation(current: ProviderAccount) -> None:
            self._call(current, "DELETE", self._events_path(current, event_id), "delete event")
            logger.info(f"Deleted Google event {event_id}")

        self.execute_with_retry(account, "delete_event", operation)

    def get_event(self, account: ProviderAccount, event_id: str) -> CalendarEventResponse:
        def operation(current: ProviderAccount) -> CalendarEventResponse:
            body = self._call(current, "GET", self._events_path(current, event_id), "get event")
            return self._map_event(self._require(body, "id", "get event"))

        return self.execute_with_retry(account, "get_event", operation)

    def list_events(self, account: ProviderAccount, start: datetime, end: datetime) -> List[CalendarEventResponse]:
        def operation(current: ProviderAccount) -> List[CalendarEventResponse]:
            body = self._call(
                current, "GET", self._events_path(current), "list events",
                params={
                    "timeMin": start.isoformat(),
                    "timeMax": end.isoformat(),
                    "singleEvents": "true",
                    "orderBy": "startTime",
                }
            )
            items = (body or {}).get("items") or []
            return [self._map_event(item) for item in items]

        return self.execute_with_retry(account, "list_events", operation)

    def get_free_busy(self, account: ProviderAccount, query: FreeBusyQuery) -> FreeBusyResponse:
        def operation(current: ProviderAccount) -> FreeBusyResponse:
            calendar_id = current.calendar_id
            body = self._call(
                current, "POST", "/freeBusy", "query free/busy",
                json={
                    "timeMin": query.start_time.isoformat(),
                    "timeMax": query.end_time.isoformat(),
                    "timeZone": query.time_zone,
                    "items": [{"id": calendar_id}],
                }
            )
            body = self._require(body, "calendars", "query free/busy")
            entry = body["calendars"].get(calendar_id)
            if entry is None:
                raise ApiError(
                    f"Free/busy response did not include calendar {calendar_id}",
                    status_code=500,
                )
            if entry.get("errors"):
                # e.g. notFound for a deleted or unshared calendar
                reasons = ", ".join(str(error.get("reason")) for error in entry["errors"])
                raise ApiError(
                    f"Free/busy lookup failed for calendar {calendar_id}: {reasons}",
                    status_code=500,
                    error_code=str(entry["errors"][0].get("reason")),
                )
            busy = entry.get("busy") or []
            busy_slots = [
                TimeSlot(
                    start_time=datetime.fromisoformat(interval["start"]),
                    end_time=datetime.fromisoformat(interval["end"]),
                )
                for interval in busy
            ]
            return FreeBusyResponse(
                calendar_id=calendar_id,
                start_time=query.start_time,
                end_time=query.end_time,
                busy_slots=busy_slots,
                free_slots=calculate_free_slots(query.start_time, query.end_time, busy_slots),
            )

        return self.execute_with_retry(account, "get_free_busy", operation)

    # ========== MAPPING ==========

    @staticmethod
    def _build_event_body(event: CalendarEvent) -> Dict[str, Any]:
        tz = ZoneInfo(event.time_zone)
        body: Dict[str, Any] = {
            "summary": event.summary,
            "start": {
                "dateTime": event.start_time.astimezone(tz).isoformat(),
                "timeZone": event.time_zone,
            },
            "end": {
                "dateTime": event.end_time.astimezone(tz).isoformat(),
                "timeZone": event.time_zone,
            },
        }
        if event.description:
            body["description"] = event.description
        if event.location:
            body["location"] = event.location
        if event.attendee_emails:
            body["attendees"] = [{"email": email} for email in event.attendee_emails]
        return body

    @staticmethod
    def _map_event(item: Dict[str, Any]) -> CalendarEventResponse:
        start = item.get("start") or {}
        return CalendarEventResponse(
            event_id=item["id"],
            summary=item.get("summary"),
            description=item.get("description") or "",
            start_time=_parse_google_time(start),
            end_time=_parse_google_time(item.get("end")),
            time_zone=start.get("timeZone") or "UTC",
            location=item.get("location") or "",
            attendee_emails=[a["email"] for a in item.get("attendees") or [] if a.get("email")],
            organizer_email=(item.get("organizer") or {}).get("email") or "",
            status=item.get("status") or "confirmed",
            html_link=item.get("htmlLink") or "",
            is_online_meeting=bool(item.get("hangoutLink")),
            online_meeting_url=item.get("hangoutLink"),
            created_at=_parse_timestamp(item.get("created")),
            updated_at=_parse_timestamp(item.get("updated")),
        )
