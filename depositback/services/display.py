"""
Display labels and small formatting helpers for the report view.
"""

from typing import Any, Dict, List, Optional, Tuple

from depositback.core.utc import format_short_date, parse_iso_date
from depositback.services.key_dates import KeyDate

GRADE_COLORS = {
    "A": "#16a34a",
    "B": "#2563eb",
    "C": "#d97706",
    "D": "#ea580c",
    "F": "#dc2626",
}
DEFAULT_GRADE_COLOR = "#64748b"

STRATEGIC_POSITIONS = ("STRONG", "MODERATE", "WEAK", "UNCERTAIN")

URGENCY_LABELS = {
    "HIGH": "Take action now",
    "MEDIUM": "Address this soon",
    "LOW": "Monitor for now",
}

ACTION_LABELS = {
    "SEND_DEMAND_LETTER": "Send a certified demand letter",
    "REQUEST_ITEMIZATION_OR_NEGOTIATE": "Request itemization in writing",
    "GATHER_EVIDENCE_THEN_EVALUATE": "Gather your evidence first",
    "REVIEW_SITUATION": "Review your current situation",
}

CATEGORY_LABELS = {
    "documentation": "Documentation",
    "communication": "Communication",
    "legal_consultation": "Legal Consultation",
    "court_information": "Court Information",
    "review": "Review",
    "planning": "Planning",
    "next_steps": "Next Steps",
}


def grade_color(grade: Optional[str]) -> str:
    return GRADE_COLORS.get(grade or "", DEFAULT_GRADE_COLOR)


def strategic_position(value: Any) -> str:
    return value if value in STRATEGIC_POSITIONS else "UNCERTAIN"


def urgency_label(urgency: Optional[str]) -> Optional[str]:
    if not urgency:
        return None
    return URGENCY_LABELS.get(urgency, urgency)


def action_label(action: Optional[str]) -> Optional[str]:
    if not action:
        return None
    return ACTION_LABELS.get(action, action)


def category_label(category: Optional[str]) -> Optional[str]:
    if not category:
        return None
    return CATEGORY_LABELS.get(category, category)


def key_date_badge(key_date: KeyDate) -> Optional[str]:
    """
    "N days ago" / "N days left" / "Today", or None when the date carries
    no day count (the move-out date).
    """
    days = key_date.days_remaining
    if days is None:
        return None
    if days == 0:
        return "Today"
    if key_date.is_past and days < 0:
        return f"{abs(days)} days ago"
    if not key_date.is_past and days > 0:
        return f"{days} days left"
    return None


def display_date(value: Optional[str]) -> Optional[str]:
    """'2024-03-01' -> 'Mar 1, 2024'; unparseable input is returned as-is."""
    parsed = parse_iso_date(value)
    if parsed is None:
        return value
    return format_short_date(parsed)


def evidence_entries(evidence_matrix: Any) -> List[Tuple[str, Any]]:
    """Primitive evidence-matrix entries, minus the overall_strength roll-up."""
    if not isinstance(evidence_matrix, dict):
        return []
    return [
        (key.replace("_", " "), value)
        for key, value in evidence_matrix.items()
        if key != "overall_strength" and not isinstance(value, (dict, list))
    ]


def evidence_tone(value: Any) -> str:
    if value == "strong" or value is True:
        return "positive"
    if value == "weak" or value is False:
        return "negative"
    return "neutral"


def damage_defense_view(damage_defense: Any) -> Optional[Dict[str, Any]]:
    """
    The backend sends either {summary, defenses[]} or a flat dict of
    primitives. Both become {summary, defenses, facts}.
    """
    if isinstance(damage_defense, str):
        return {"summary": damage_defense, "defenses": [], "facts": []} if damage_defense else None
    if not isinstance(damage_defense, dict) or not damage_defense:
        return None

    summary = damage_defense.get("summary")
    defenses = damage_defense.get("defenses")
    if summary or defenses:
        items = []
        for d in defenses if isinstance(defenses, list) else []:
            items.append(d.get("defense") if isinstance(d, dict) else d)
        return {"summary": summary, "defenses": [i for i in items if i], "facts": []}

    facts = [
        {"label": key.replace("_", " "), "value": value}
        for key, value in damage_defense.items()
        if not isinstance(value, (dict, list))
    ]
    return {"summary": None, "defenses": [], "facts": facts}
