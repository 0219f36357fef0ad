"""Event mapper - builds Google Calendar payloads from sheet rows.

The description text is parsed back by extract_technicians() during drift
scans, so its layout (especially TECHNICIANS_HEADING) is a contract:

    <a href="URL">דף תיאום</a>          (or "דף תיאום: TEXT", or omitted)

    מנהל אירוע: MANAGER                 (omitted when blank)

    טכנאים משובצים:
    Alice
    Bob                                 (or "אין טכנאים משובצים")
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

import pytz

from .config import SyncConfig
from .rows import SheetRow, parse_time


CANCELED_PREFIX = "Canceled: "
COORDINATION_LABEL = "דף תיאום"
MANAGER_LABEL = "מנהל אירוע"
TECHNICIANS_HEADING = "טכנאים משובצים:"
NO_TECHNICIANS = "אין טכנאים משובצים"

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"

LOCAL_FORMAT = "%Y-%m-%dT%H:%M:%S"


def build_summary(row: SheetRow, cancelled: bool) -> str:
    summary = row.event_name
    if cancelled and not summary.startswith(CANCELED_PREFIX):
        summary = f"{CANCELED_PREFIX}{summary}"
    return summary


def format_description(row: SheetRow, coordination_link: Optional[str] = None) -> str:
    description = ""

    if coordination_link:
        description += f'<a href="{coordination_link}">{COORDINATION_LABEL}</a>\n\n'
    elif row.coordination_text:
        description += f"{COORDINATION_LABEL}: {row.coordination_text}\n\n"

    if row.manager:
        description += f"{MANAGER_LABEL}: {row.manager}\n\n"

    description += f"{TECHNICIANS_HEADING}\n"
    if row.technicians:
        for tech in row.technicians:
            description += f"{tech}\n"
    else:
        description += f"{NO_TECHNICIANS}\n"

    return description


def extract_technicians(description: Optional[str]) -> List[str]:
    """Re-read the technician list written by format_description()."""
    if not description:
        return []
    parts = description.split(TECHNICIANS_HEADING, 1)
    if len(parts) < 2:
        return []
    technicians = []
    for line in parts[1].split("\n"):
        name = line.strip()
        if name and name != NO_TECHNICIANS:
            technicians.append(name)
    return technicians


def technicians_equal(first: Iterable[str], second: Iterable[str]) -> bool:
    """Set comparison of two technician lists: order and repeats are ignored."""
    a = {t.strip() for t in first if t and t.strip()}
    b = {t.strip() for t in second if t and t.strip()}
    return a == b


def event_times(row: SheetRow, config: SyncConfig):
    """Start and end as naive local datetimes.

    Blank or malformed start -> config.default_start_time. Blank or
    malformed end -> start + config.default_duration_hours. An end before
    the start rolls over to the next day.
    """
    event_date = row.event_date
    if event_date is None:
        raise ValueError(f"Row {row.sheet_row} has no valid date: {row.date_text!r}")

    start_t = parse_time(row.start_time) or parse_time(config.default_start_time)
    if start_t is None:
        raise ValueError(f"Invalid default_start_time: {config.default_start_time!r}")
    start = datetime.combine(event_date, start_t)

    end_t = parse_time(row.end_time)
    if end_t is None:
        end = start + timedelta(hours=config.default_duration_hours)
    else:
        end = datetime.combine(event_date, end_t)
        if end < start:
            end += timedelta(days=1)
    return start, end


def to_event_payload(row: SheetRow, coordination_link: Optional[str], config: SyncConfig,
                     cancelled: Optional[bool] = None) -> dict:
    """Build the Calendar API event body for a row.

    cancelled defaults to the row's own cancellation flag.
    """
    if cancelled is None:
        cancelled = row.cancel_requested
    start, end = event_times(row, config)
    return {
        "summary": build_summary(row, cancelled),
        "description": format_description(row, coordination_link),
        "location": row.location or "",
        "start": {"dateTime": start.strftime(LOCAL_FORMAT), "timeZone": config.timezone},
        "end": {"dateTime": end.strftime(LOCAL_FORMAT), "timeZone": config.timezone},
        "status": STATUS_CANCELLED if cancelled else STATUS_CONFIRMED,
    }


def _wall_clock(when: Optional[dict], tz_name: str) -> str:
    """Normalize an event start/end to local wall-clock text in tz_name.

    Google echoes dateTime back with an offset ("...T09:00:00+02:00");
    payloads we build are naive. Both compare equal once rendered local.
    """
    if not when:
        return ""
    raw = when.get("dateTime") or when.get("date") or ""
    if not raw:
        return ""
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return raw
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(pytz.timezone(tz_name)).replace(tzinfo=None)
    return parsed.strftime(LOCAL_FORMAT)


def diff_event(existing: dict, desired: dict, tz_name: str) -> List[str]:
    """Names of the fields where the live event differs from the desired payload."""
    changes = []
    if (existing.get("summary") or "") != desired["summary"]:
        changes.append("summary")
    if (existing.get("description") or "") != desired["description"]:
        changes.append("description")
    if (existing.get("location") or "") != desired["location"]:
        changes.append("location")
    if _wall_clock(existing.get("start"), tz_name) != desired["start"]["dateTime"]:
        changes.append("start")
    if _wall_clock(existing.get("end"), tz_name) != desired["end"]["dateTime"]:
        changes.append("end")
    if (existing.get("status") or STATUS_CONFIRMED) != desired["status"]:
        changes.append("status")
    if not technicians_equal(extract_technicians(existing.get("description")),
                             extract_technicians(desired["description"])):
        changes.append("technicians")
    return changes
