"""
Key Date Resolver
=================

Builds the "Key Dates" list shown in the action plan from a report's
`timeline` object.

Resolution order:
1. `computed_deadlines` from the backend, when present, are authoritative.
2. The move-out date is always prepended when known. It is always in the
   past relative to a report.
3. Older reports only stored `days_since_move_out`; if nothing beyond the
   move-out date came back, a 30-day refund deadline is synthesized so the
   tenant still sees one actionable date.

No de-duplication: a backend deadline labeled as the move-out date will
appear next to the prepended one.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from depositback.core.utc import add_days, parse_iso_date

logger = logging.getLogger(__name__)

# Tex. Prop. Code § 92.103
REFUND_DEADLINE_DAYS = 30

MOVE_OUT_LABEL = "Move-out date"
DEADLINE_LABEL = "30-day deadline"


@dataclass
class KeyDate:
    """A labeled calendar date with past/future status"""
    label: str
    date: str  # YYYY-MM-DD
    is_past: bool
    days_remaining: Optional[int] = None

    @property
    def is_today(self) -> bool:
        return self.days_remaining == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "date": self.date,
            "is_past": self.is_past,
            "days_remaining": self.days_remaining,
        }


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _move_out_date(timeline: Dict[str, Any]) -> Optional[str]:
    key_dates = timeline.get("key_dates")
    if isinstance(key_dates, dict) and key_dates.get("move_out_date"):
        return key_dates["move_out_date"]
    return timeline.get("move_out_date") or None


def resolve_key_dates(timeline: Optional[Dict[str, Any]]) -> List[KeyDate]:
    """
    Resolve the ordered key-date list for a report timeline.

    Args:
        timeline: The report's `timeline` object; None or malformed input
            yields an empty list.

    Returns:
        Move-out date first (when known), then backend or synthesized deadlines.
    """
    if not isinstance(timeline, dict):
        return []

    dates: List[KeyDate] = []

    computed = timeline.get("computed_deadlines")
    if isinstance(computed, list):
        for entry in computed:
            if not isinstance(entry, dict):
                continue
            dates.append(KeyDate(
                label=entry.get("label") or "Deadline",
                date=entry.get("date") or "",
                is_past=entry.get("has_passed") is True,
                days_remaining=_as_int(entry.get("days_remaining")),
            ))

    move_out = _move_out_date(timeline)
    move_out_parsed = parse_iso_date(move_out)
    if move_out:
        dates.insert(0, KeyDate(
            label=MOVE_OUT_LABEL,
            date=move_out_parsed.isoformat() if move_out_parsed else str(move_out),
            is_past=True,
            days_remaining=None,
        ))

    days_since = _as_int(timeline.get("days_since_move_out"))
    if len(dates) <= 1 and move_out and days_since is not None:
        if move_out_parsed is None:
            logger.debug("Unparseable move-out date %r; no deadline synthesized", move_out)
        else:
            deadline = add_days(move_out_parsed, REFUND_DEADLINE_DAYS)
            dates.append(KeyDate(
                label=DEADLINE_LABEL,
                date=deadline.isoformat(),
                is_past=timeline.get("past_30_days") is True,
                days_remaining=REFUND_DEADLINE_DAYS - days_since,
            ))

    return dates


def next_deadline(dates: List[KeyDate]) -> Optional[KeyDate]:
    """First date that has not passed yet, used in the collapsed action summary."""
    for d in dates:
        if not d.is_past:
            return d
    return None
