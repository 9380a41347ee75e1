"""Calendar tools: schedule, list, find free slots and cancel.

Each tool wraps a ``GoogleCalendarClient`` call and returns a human-readable
string the model uses to formulate its reply.  Successful results start
with an emoji marker (✅ / 📅 / 🕐); failures always start with ❌ and are
never raised past the tool.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import httpx
from babel.dates import format_datetime
from pydantic import Field

from src.config import (
    GOOGLE_CALENDAR_ID,
    LOCALE,
    TIMEZONE,
    WORKING_HOURS_END,
    WORKING_HOURS_START,
)
from src.services.google_calendar import GoogleCalendarAPIError, GoogleCalendarClient
from src.tools.base import ToolArgs, ToolCapability

logger = logging.getLogger(__name__)

# Errors a calendar call can surface once the client's own retries give up
_CALENDAR_ERRORS = (GoogleCalendarAPIError, httpx.HTTPError)

MINUTES_PER_DAY = 24 * 60


# ── Argument models ─────────────────────────────────────────────────


class ScheduleEventArgs(ToolArgs):
    title: str
    description: str = ""
    start_date_time: str = Field(alias="startDateTime")
    end_date_time: str = Field(alias="endDateTime")
    attendee_emails: list[str] = Field(default_factory=list, alias="attendeeEmails")
    location: str = ""


class ListUpcomingEventsArgs(ToolArgs):
    max_results: int = Field(default=10, alias="maxResults", ge=1, le=250)
    time_min: str | None = Field(default=None, alias="timeMin")
    time_max: str | None = Field(default=None, alias="timeMax")


class FindAvailableSlotsArgs(ToolArgs):
    day: date = Field(alias="date")
    duration: int = Field(gt=0, le=MINUTES_PER_DAY)
    working_hours_start: str = Field(default=WORKING_HOURS_START, alias="workingHoursStart")
    working_hours_end: str = Field(default=WORKING_HOURS_END, alias="workingHoursEnd")


class CancelEventArgs(ToolArgs):
    event_id: str = Field(alias="eventId")
    send_updates: bool = Field(default=True, alias="sendUpdates")


# ── Pure helpers ────────────────────────────────────────────────────


def _parse_dt(iso_str: str) -> datetime:
    return datetime.fromisoformat(iso_str.replace("Z", "+00:00"))


def _hhmm_to_minutes(value: str) -> int:
    """Convert ``"HH:MM"`` to minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def _minutes_to_hhmm(value: int) -> str:
    return f"{value // 60:02d}:{value % 60:02d}"


def find_free_slots(
    busy: list[tuple[int, int]],
    work_start: int,
    work_end: int,
    duration: int,
) -> list[tuple[int, int]]:
    """Return one ``duration``-minute slot at the start of every free gap.

    ``busy`` holds ``(start, end)`` minute offsets within the day.  Gaps are
    searched between ``work_start`` and ``work_end``.
    """
    slots: list[tuple[int, int]] = []
    current = work_start
    for start, end in sorted(busy):
        if current + duration <= min(start, work_end):
            slots.append((current, current + duration))
        current = max(current, end)

    if current + duration <= work_end:
        slots.append((current, current + duration))
    return slots


class CalendarTools:
    """Calendar capabilities bound to one client, calendar and timezone."""

    def __init__(
        self,
        client: GoogleCalendarClient,
        *,
        calendar_id: str = GOOGLE_CALENDAR_ID,
        timezone: str = TIMEZONE,
        locale: str = LOCALE,
    ) -> None:
        self._client = client
        self._calendar_id = calendar_id
        self._timezone = timezone
        self._tz = ZoneInfo(timezone)
        self._locale = locale

    def _format_dt(self, value: str) -> str:
        """Friendly local rendering of an ISO timestamp or all-day date."""
        if "T" not in value:
            return value
        return format_datetime(_parse_dt(value), "short", tzinfo=self._tz, locale=self._locale)

    def _minute_of_day(self, moment: datetime, day: date) -> int:
        local = moment.astimezone(self._tz)
        if local.date() < day:
            return 0
        if local.date() > day:
            return MINUTES_PER_DAY
        return local.hour * 60 + local.minute

    # ── Tool: schedule_event ────────────────────────────────────────

    async def schedule_event(self, args: ScheduleEventArgs) -> str:
        event = {
            "summary": args.title,
            "description": args.description,
            "location": args.location,
            "start": {"dateTime": args.start_date_time, "timeZone": self._timezone},
            "end": {"dateTime": args.end_date_time, "timeZone": self._timezone},
            "attendees": [{"email": email} for email in args.attendee_emails],
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 30},
                ],
            },
        }
        try:
            created = await self._client.insert_event(self._calendar_id, event, send_updates="all")
        except _CALENDAR_ERRORS as e:
            logger.error("Failed to schedule meeting: %s", e)
            return f"❌ Error scheduling meeting: {e}"

        entry_points = (created.get("conferenceData") or {}).get("entryPoints") or []
        meet_link = entry_points[0].get("uri") if entry_points else "No meet link generated"
        invited = ", ".join(args.attendee_emails) or "No attendees"
        return (
            "✅ Meeting scheduled successfully!\n"
            f"📅 Event ID: {created.get('id')}\n"
            f"🔗 Calendar Link: {created.get('htmlLink')}\n"
            f"📹 Meet Link: {meet_link}\n"
            f"📧 Invitations sent to: {invited}"
        )

    # ── Tool: list_upcoming_events ──────────────────────────────────

    async def list_upcoming_events(self, args: ListUpcomingEventsArgs) -> str:
        time_min = args.time_min or datetime.now(self._tz).isoformat()
        try:
            events = await self._client.list_events(
                self._calendar_id,
                time_min=time_min,
                time_max=args.time_max,
                max_results=args.max_results,
            )
        except _CALENDAR_ERRORS as e:
            logger.error("Failed to list events: %s", e)
            return f"❌ Error getting events: {e}"

        if not events:
            return "📅 No upcoming events found."

        lines = [f"📅 Upcoming Events ({len(events)}):\n"]
        for index, event in enumerate(events, start=1):
            start = event.get("start", {})
            end = event.get("end", {})
            start_str = self._format_dt(start.get("dateTime") or start.get("date", ""))
            end_str = self._format_dt(end.get("dateTime") or end.get("date", ""))
            lines.append(f"{index}. 📝 {event.get('summary') or 'No title'}")
            lines.append(f"   🆔 {event.get('id')}")
            lines.append(f"   ⏰ {start_str} - {end_str}")
            if event.get("location"):
                lines.append(f"   📍 {event['location']}")
            if event.get("description"):
                lines.append(f"   📄 {event['description']}")
            if event.get("htmlLink"):
                lines.append(f"   🔗 {event['htmlLink']}")
            lines.append("")
        return "\n".join(lines)

    # ── Tool: find_available_slots ──────────────────────────────────

    async def find_available_slots(self, args: FindAvailableSlotsArgs) -> str:
        try:
            work_start = _hhmm_to_minutes(args.working_hours_start)
            work_end = _hhmm_to_minutes(args.working_hours_end)
        except ValueError:
            return (
                f"❌ Error finding available slots: invalid working hours "
                f"{args.working_hours_start!r}-{args.working_hours_end!r}, expected HH:MM"
            )

        day_start = datetime.combine(args.day, time(), self._tz)
        time_min = day_start + timedelta(minutes=work_start)
        time_max = day_start + timedelta(minutes=work_end)
        try:
            events = await self._client.list_events(
                self._calendar_id,
                time_min=time_min.isoformat(),
                time_max=time_max.isoformat(),
            )
        except _CALENDAR_ERRORS as e:
            logger.error("Failed to find available slots: %s", e)
            return f"❌ Error finding available slots: {e}"

        busy: list[tuple[int, int]] = []
        for event in events:
            start = event.get("start", {}).get("dateTime")
            end = event.get("end", {}).get("dateTime")
            if not (start and end):
                continue  # all-day events do not block time slots
            busy.append((
                self._minute_of_day(_parse_dt(start), args.day),
                self._minute_of_day(_parse_dt(end), args.day),
            ))

        slots = find_free_slots(busy, work_start, work_end, args.duration)
        if not slots:
            return f"❌ No available slots found for {args.day} ({args.duration} minutes duration)"

        lines = [f"🕐 Available time slots for {args.day} ({args.duration} minutes each):\n"]
        for index, (start, end) in enumerate(slots, start=1):
            lines.append(f"{index}. {_minutes_to_hhmm(start)} - {_minutes_to_hhmm(end)}")
        return "\n".join(lines)

    # ── Tool: cancel_event ──────────────────────────────────────────

    async def cancel_event(self, args: CancelEventArgs) -> str:
        try:
            await self._client.delete_event(
                self._calendar_id,
                args.event_id,
                send_updates="all" if args.send_updates else "none",
            )
        except _CALENDAR_ERRORS as e:
            logger.error("Failed to cancel meeting %s: %s", args.event_id, e)
            return f"❌ Error cancelling meeting: {e}"
        return f"✅ Meeting cancelled successfully! Event ID: {args.event_id}"

    def capabilities(self) -> list[ToolCapability]:
        return [
            ToolCapability("schedule_event", ScheduleEventArgs, self.schedule_event),
            ToolCapability("list_upcoming_events", ListUpcomingEventsArgs, self.list_upcoming_events),
            ToolCapability("find_available_slots", FindAvailableSlotsArgs, self.find_available_slots),
            ToolCapability("cancel_event", CancelEventArgs, self.cancel_event),
        ]
