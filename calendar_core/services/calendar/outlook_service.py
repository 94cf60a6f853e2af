# calendar_core/services/calendar/outlook_service.py
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from calendar_core.exceptions import ApiError
from calendar_core.schemas import (
    PRIMARY_CALENDAR_ID,
    CalendarEvent,
    CalendarEventResponse,
    CalendarProvider,
    FreeBusyQuery,
    FreeBusyResponse,
    ProviderAccount,
    TimeSlot,
)
from calendar_core.services.calendar.base import CalendarService, calculate_free_slots
from calendar_core.utils.http import extract_error

logger = logging.getLogger(__name__)

DEFAULT_ONLINE_MEETING_PROVIDER = "teamsForBusiness"
AVAILABILITY_VIEW_INTERVAL = 30

# Graph sends up to seven fractional digits ("2024-01-15T09:00:00.0000000")
_FRACTION = re.compile(r"\.(\d{1,6})\d*")


def _zone(name: Optional[str]):
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        # Windows zone names ("Pacific Standard Time") are not IANA keys
        logger.debug(f"Unknown timezone {name!r} from Graph, reading as UTC")
        return timezone.utc


def parse_graph_datetime(value: Optional[Dict[str, Any]]) -> Optional[datetime]:
    """Read a Graph dateTimeTimeZone object into an aware datetime"""
    if not value or not value.get("dateTime"):
        return None
    raw = _FRACTION.sub(lambda m: "." + m.group(1), value["dateTime"])
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_zone(value.get("timeZone")))
    return parsed


def format_graph_datetime(moment: datetime, time_zone: str) -> Dict[str, str]:
    """Wall-clock time in ``time_zone`` plus the zone name, the way Graph expects it"""
    local = moment.astimezone(ZoneInfo(time_zone)).replace(tzinfo=None)
    return {"dateTime": local.isoformat(timespec="seconds"), "timeZone": time_zone}


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(_FRACTION.sub(lambda m: "." + m.group(1), value))


class OutlookCalendarService(CalendarService):
    """Microsoft Graph calendar client"""

    provider = CalendarProvider.OUTLOOK
    base_url = "https://graph.microsoft.com/v1.0"

    def _events_path(self, account: ProviderAccount, event_id: Optional[str] = None) -> str:
        calendar_id = account.calendar_id
        if calendar_id and calendar_id != PRIMARY_CALENDAR_ID:
            path = f"/me/calendars/{quote(calendar_id, safe='')}/events"
        else:
            path = "/me/events"
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
            logger.info(f"Created Outlook event {created.event_id} for account {current.id}")
            return created

        return self.execute_with_retry(account, "create_event", operation)

    def update_event(self, account: ProviderAccount, event_id: str, event: CalendarEvent) -> CalendarEventResponse:
        def operation(current: ProviderAccount) -> CalendarEventResponse:
            body = self._call(
                current, "PATCH", self._events_path(current, event_id), "update event",
                json=self._build_event_body(event)
            )
            return self._map_event(self._require(body, "id", "update event"))

        return self.execute_with_retry(account, "update_event", operation)

    def delete_event(self, account: ProviderAccount, event_id: str) -> None:
        def operation(current: ProviderAccount) -> None:
            self._call(current, "DELETE", self._events_path(current, event_id), "delete event")
            logger.info(f"Deleted Outlook event {event_id}")

        self.execute_with_retry(account, "delete_event", operation)

    def get_event(self, account: ProviderAccount, event_id: str) -> CalendarEventResponse:
        def operation(current: ProviderAccount) -> CalendarEventResponse:
            body = self._call(current, "GET", self._events_path(current, event_id), "get event")
            return self._map_event(self._require(body, "id", "get event"))

        return self.execute_with_retry(account, "get_event", operation)

    def list_events(self, account: ProviderAccount, start: datetime, end: datetime) -> List[CalendarEventResponse]:
        start_utc = start.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
        end_utc = end.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")

        def operation(current: ProviderAccount) -> List[CalendarEventResponse]:
            body = self._call(
                current, "GET", self._events_path(current), "list events",
                params={
                    "$filter": f"start/dateTime ge '{start_utc}' and end/dateTime le '{end_utc}'",
                    "$orderby": "start/dateTime",
                }
            )
            return [self._map_event(item) for item in (body or {}).get("value") or []]

        return self.execute_with_retry(account, "list_events", operation)

    def get_free_busy(self, account: ProviderAccount, query: FreeBusyQuery) -> FreeBusyResponse:
        def operation(current: ProviderAccount) -> FreeBusyResponse:
            body = self._call(
                current, "POST", "/me/calendar/getSchedule", "query free/busy",
                json={
                    "schedules": [current.account_email],
                    "startTime": format_graph_datetime(query.start_time, query.time_zone),
                    "endTime": format_graph_datetime(query.end_time, query.time_zone),
                    "availabilityViewInterval": AVAILABILITY_VIEW_INTERVAL,
                }
            )
            body = self._require(body, "value", "query free/busy")
            schedules = body["value"]
            if not schedules:
                raise ApiError(f"getSchedule returned no schedule for {current.account_email}", status_code=500)
            schedule = schedules[0]
            if schedule.get("error"):
                message, code = extract_error(schedule)
                raise ApiError(
                    f"getSchedule failed for {current.account_email}: {message}",
                    status_code=500,
                    error_code=code,
                )
            items = schedule.get("scheduleItems") or []
            busy_slots = [
                TimeSlot(
                    start_time=parse_graph_datetime(item["start"]),
                    end_time=parse_graph_datetime(item["end"]),
                )
                for item in items
                if item.get("status") == "busy"
            ]
            return FreeBusyResponse(
                calendar_id=current.calendar_id,
                start_time=query.start_time,
                end_time=query.end_time,
                busy_slots=busy_slots,
                free_slots=calculate_free_slots(query.start_time, query.end_time, busy_slots),
            )

        return self.execute_with_retry(account, "get_free_busy", operation)

    # ========== MAPPING ==========

    @staticmethod
    def _build_event_body(event: CalendarEvent) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "subject": event.summary,
            "body": {
                "contentType": "HTML",
                "content": event.description or "",
            },
            "start": format_graph_datetime(event.start_time, event.time_zone),
            "end": format_graph_datetime(event.end_time, event.time_zone),
        }
        if event.location:
            body["location"] = {"displayName": event.location}
        if event.attendee_emails:
            body["attendees"] = [
                {
                    "emailAddress": {"address": email},
                    "type": "required"
                }
                for email in event.attendee_emails
            ]
        if event.is_online_meeting:
            body["isOnlineMeeting"] = True
            body["onlineMeetingProvider"] = event.online_meeting_provider or DEFAULT_ONLINE_MEETING_PROVIDER
        return body

    @staticmethod
    def _map_event(item: Dict[str, Any]) -> CalendarEventResponse:
        start = item.get("start") or {}
        attendees = [
            (attendee.get("emailAddress") or {}).get("address")
            for attendee in item.get("attendees") or []
        ]
        return CalendarEventResponse(
            event_id=item["id"],
            summary=item.get("subject"),
            description=(item.get("body") or {}).get("content") or "",
            start_time=parse_graph_datetime(start),
            end_time=parse_graph_datetime(item.get("end")),
            time_zone=start.get("timeZone") or "UTC",
            location=(item.get("location") or {}).get("displayName") or "",
            attendee_emails=[address for address in attendees if address],
            organizer_email=((item.get("organizer") or {}).get("emailAddress") or {}).get("address") or "",
            status=item.get("showAs"),
            html_link=item.get("webLink") or "",
            is_online_meeting=bool(item.get("isOnlineMeeting")),
            online_meeting_url=(item.get("onlineMeeting") or {}).get("joinUrl"),
            created_at=_parse_timestamp(item.get("createdDateTime")),
            updated_at=_parse_timestamp(item.get("lastModifiedDateTime")),
        )
