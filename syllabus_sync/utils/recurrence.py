# syllabus_sync/utils/recurrence.py
"""
Split weekly rules that name several days (BYDAY=TU,TH) into one series
per day. Calendar clients handle single-day series far more reliably.
"""

import re

from syllabus_sync.models.domain.event_domain import (
    TITLE_MAX,
    EventItem,
    rrule_byday,
    unique_event_id,
)
from syllabus_sync.utils.dates import add_days_to_iso, weekday_of_iso

DAY_NAMES = {
    "MO": "Mon",
    "TU": "Tue",
    "WE": "Wed",
    "TH": "Thu",
    "FR": "Fri",
    "SA": "Sat",
    "SU": "Sun",
}

# Monday = 0, matching date.weekday()
DAY_INDEX = {code: index for index, code in enumerate(DAY_NAMES)}

_BYDAY_RE = re.compile(r"BYDAY=[^;]*", re.I)
# 1MO, -1FR: nth weekday of a month or year
_ORDINAL_DAY_RE = re.compile(r"^[+-]?\d")


def _with_day_suffix(title: str, day_name: str) -> str:
    suffix = f" ({day_name})"
    if len(title) + len(suffix) > TITLE_MAX:
        title = title[: TITLE_MAX - len(suffix)].rstrip()
    return f"{title}{suffix}"


def split_event(event: EventItem) -> list[EventItem]:
    codes = list(dict.fromkeys(code.upper() for code in rrule_byday(event.recurrence_rule)))
    if len(codes) <= 1:
        return [event]

    # Ordinal days are not a weekly pattern; the rule is kept as written
    if any(_ORDINAL_DAY_RE.match(code) for code in codes):
        return [event]

    start_weekday = weekday_of_iso(event.start)
    if start_weekday is None:
        return [event]

    split: list[EventItem] = []
    for code in codes:
        target = DAY_INDEX.get(code)
        if target is None:
            continue

        days = (target - start_weekday) % 7
        split.append(
            event.model_copy(
                update={
                    "id": f"{event.id}-{code.lower()}",
                    "title": _with_day_suffix(event.title, DAY_NAMES[code]),
                    "start": add_days_to_iso(event.start, days),
                    "end": add_days_to_iso(event.end, days) if event.end else None,
                    "recurrence_rule": _BYDAY_RE.sub(f"BYDAY={code}", event.recurrence_rule, count=1),
                }
            )
        )
    return split or [event]


def split_multi_day_recurrence(events: list[EventItem]) -> list[EventItem]:
    """
    Expand every event whose BYDAY lists several days into one event per day.

    Start and end move forward to the first matching weekday by rewriting
    only the date portion, so wall-clock time and UTC offset stay exactly
    as written. Unknown day codes are skipped; other events pass through.

    Events that pass through keep their ids. A split id that collides with
    any other id in the batch gets a ``-2``, ``-3``, ... suffix.
    """
    expanded = [(event, split_event(event)) for event in events]
    used_ids = {event.id for event, split in expanded if len(split) == 1 and split[0] is event}

    result: list[EventItem] = []
    for event, split in expanded:
        if len(split) == 1 and split[0] is event:
            result.append(event)
            continue
        for item in split:
            event_id = unique_event_id(item.id, used_ids)
            used_ids.add(event_id)
            result.append(item if event_id == item.id else item.model_copy(update={"id": event_id}))
    return result
