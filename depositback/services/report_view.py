"""
Report View - Presentation State Machine
========================================

Owns which parts of a case report are visible and expanded, and builds
the view model the front end renders.

The navigation node is a single tagged value (View): `hub` shows three
navigation cards, and `status`, `steps`, `escalate` are the three spokes.
Two navigation modes read that state:

- accordion: lanes 1-3 (Position, Action, Escalation) stacked on one page,
  at most one open. Clicking the open lane closes it.
- hub: one spoke at a time, reached from the hub through a short
  fade/slide transition; `back` always returns to the hub.

A lane only exists when its data does: leverage points for Position,
procedural steps for Action, an escalation path for Escalation. Position
is the exception: without leverage points it still shows a fallback
message instead of disappearing.

Sub-disclosures (statute lists, lease clauses, "show all", per-step
detail) and checklist ticks are independent boolean flags keyed by
composite strings such as "3-statutes" or "3-0". View state lives on one
ReportViewState per page view and is never sent to the backend.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from depositback.services import display
from depositback.services.cross_reference import CrossReferenceResolver
from depositback.services.key_dates import next_deadline, resolve_key_dates

logger = logging.getLogger(__name__)


class View(str, Enum):
    """Navigation node"""
    HUB = "hub"
    STATUS = "status"
    STEPS = "steps"
    ESCALATE = "escalate"


class NavigationMode(str, Enum):
    ACCORDION = "accordion"
    HUB = "hub"


LANE_POSITION = 1
LANE_ACTION = 2
LANE_ESCALATION = 3

LANE_VIEWS = {
    LANE_POSITION: View.STATUS,
    LANE_ACTION: View.STEPS,
    LANE_ESCALATION: View.ESCALATE,
}

SECTION_NAMES = {
    LANE_POSITION: "position",
    LANE_ACTION: "action",
    LANE_ESCALATION: "escalation",
}

SECTION_TITLES = {
    LANE_POSITION: "Your Legal Position",
    LANE_ACTION: "What To Do Now",
    LANE_ESCALATION: "If They Ignore You",
}

NO_POSITION_MESSAGE = (
    "We need more information to assess your position. "
    "Add more details to strengthen your case."
)

# Disclosure keys that are not tied to a step
SHOW_ALL_LEVERAGE = "leverage-all"
SHOW_STATUTES = "statutes"
SHOW_ALL_STEPS = "steps-all"
SHOW_DEFENSE = "defense"


@dataclass
class Transition:
    """Animation contract for a hub/spoke move"""
    from_view: View
    to_view: View
    duration_ms: int
    effect: str = "fade-slide"
    scroll_to_top: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_view.value,
            "to": self.to_view.value,
            "duration_ms": self.duration_ms,
            "effect": self.effect,
            "scroll_to_top": self.scroll_to_top,
        }


def step_key(step_number: Any, section: str) -> str:
    return f"{step_number}-{section}"


@dataclass
class ReportViewState:
    """Ephemeral per-page-view state"""
    mode: NavigationMode = NavigationMode.ACCORDION
    view: View = View.HUB
    open_lane: Optional[int] = None
    disclosures: Dict[str, bool] = field(default_factory=dict)
    checked: Dict[str, bool] = field(default_factory=dict)
    transition_ms: int = 200

    # -------------------------------------------------------------------------
    # Accordion
    # -------------------------------------------------------------------------

    def toggle_lane(self, lane: int) -> Optional[int]:
        """Open `lane`, closing any other; clicking the open lane closes it."""
        if lane not in LANE_VIEWS:
            raise ValueError(f"Unknown lane: {lane}")
        self.open_lane = None if self.open_lane == lane else lane
        return self.open_lane

    def is_lane_open(self, lane: int) -> bool:
        return self.open_lane == lane

    # -------------------------------------------------------------------------
    # Hub and spoke
    # -------------------------------------------------------------------------

    def select(self, view: View) -> Transition:
        view = View(view)
        if view is View.HUB:
            return self.back()
        transition = Transition(self.view, view, self.transition_ms)
        self.view = view
        return transition

    def back(self) -> Transition:
        """Always to the hub, never to the previously visited spoke."""
        transition = Transition(self.view, View.HUB, self.transition_ms)
        self.view = View.HUB
        return transition

    def is_section_open(self, lane: int) -> bool:
        if self.mode is NavigationMode.HUB:
            return self.view is LANE_VIEWS[lane]
        return self.open_lane == lane

    # -------------------------------------------------------------------------
    # Sub-disclosures and checklist ticks
    # -------------------------------------------------------------------------

    def toggle(self, key: str) -> bool:
        self.disclosures[key] = not self.disclosures.get(key, False)
        return self.disclosures[key]

    def is_open(self, key: str) -> bool:
        return self.disclosures.get(key, False)

    def toggle_step(self, step_number: Any) -> bool:
        return self.toggle(step_key(step_number, "detail"))

    def toggle_sub_section(self, step_number: Any, section: str) -> bool:
        return self.toggle(step_key(step_number, section))

    def is_sub_open(self, step_number: Any, section: str) -> bool:
        return self.is_open(step_key(step_number, section))

    def toggle_check(self, step_number: Any, index: int) -> bool:
        key = step_key(step_number, str(index))
        self.checked[key] = not self.checked.get(key, False)
        return self.checked[key]

    def is_checked(self, step_number: Any, index: int) -> bool:
        return self.checked.get(step_key(step_number, str(index)), False)

    @classmethod
    def from_params(
        cls,
        mode: str = NavigationMode.ACCORDION.value,
        view: str = View.HUB.value,
        lane: Optional[int] = None,
        open_keys: Iterable[str] = (),
        checked_keys: Iterable[str] = (),
        transition_ms: int = 200,
    ) -> "ReportViewState":
        """Rebuild a page view's state from what the front end sends back with each request."""
        state = cls(
            mode=NavigationMode(mode),
            view=View(view),
            transition_ms=transition_ms,
        )
        if lane is not None:
            state.toggle_lane(lane)
        state.disclosures = {k: True for k in open_keys if k}
        state.checked = {k: True for k in checked_keys if k}
        return state


# =============================================================================
# VIEW MODEL
# =============================================================================

def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def visible_lanes(report: Optional[Dict[str, Any]]) -> Dict[int, bool]:
    report = _dict(report)
    return {
        LANE_POSITION: len(_list(report.get("leverage_points"))) > 0,
        LANE_ACTION: len(_list(report.get("procedural_steps"))) > 0,
        LANE_ESCALATION: bool(_dict(report.get("strategy")).get("escalation_path")),
    }


def escalation_phases(path: Any) -> List[Dict[str, Any]]:
    """Ordered phases from either a {phase_1: text, ...} mapping or a list."""
    phases = []
    if isinstance(path, dict):
        for i, (key, value) in enumerate(path.items(), start=1):
            phases.append({"order": i, "phase": key, "label": f"Phase {i}", "description": value})
    elif isinstance(path, list):
        for i, value in enumerate(path, start=1):
            phases.append({"order": i, "phase": f"phase_{i}", "label": f"Phase {i}", "description": value})
    return phases


def _leverage_point_view(point: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": point.get("point_id") or point.get("issue_id") or point.get("id"),
        "title": point.get("title"),
        "severity": point.get("severity"),
        "observation": point.get("observation") or point.get("why_this_matters"),
        "supporting_facts": _list(point.get("supporting_facts")),
    }


class ReportViewBuilder:
    """Derives the renderable view model for one report and one view state"""

    def __init__(
        self,
        report: Optional[Dict[str, Any]],
        context: Optional[Dict[str, Any]] = None,
        state: Optional[ReportViewState] = None,
        steps_preview_count: int = 3,
    ):
        self.report = _dict(report)
        self.context = _dict(context)
        self.state = state or ReportViewState()
        self.steps_preview_count = steps_preview_count
        self.resolver = CrossReferenceResolver(self.report)
        self.key_dates = resolve_key_dates(self.report.get("timeline"))

        cs = _dict(self.report.get("case_strength"))
        self.case_strength = cs
        self.grade = cs.get("leverage_grade") or "?"
        score = cs.get("leverage_score")
        self.score = score if score is not None else (cs.get("case_strength_score") or 0)
        self.win_probability = cs.get("win_probability") or 0
        self.position = display.strategic_position(cs.get("strategic_position"))
        self.strategy = _dict(self.report.get("strategy"))
        self.recovery = _dict(self.report.get("recovery_estimate"))

    # -------------------------------------------------------------------------
    # Summaries (shown while a lane is collapsed)
    # -------------------------------------------------------------------------

    def position_summary(self) -> Dict[str, Any]:
        return {
            "grade": self.grade,
            "grade_color": display.grade_color(self.grade),
            "win_probability": self.win_probability,
            "likely_outcome": self.recovery.get("likely_case"),
        }

    def action_summary(self) -> Dict[str, Any]:
        upcoming = next_deadline(self.key_dates)
        return {
            "recommended_action": display.action_label(self.strategy.get("recommended_action")),
            "urgency": display.urgency_label(self.strategy.get("urgency")),
            "next_deadline": {
                "label": upcoming.label,
                "date": upcoming.date,
                "display": display.display_date(upcoming.date),
            } if upcoming else None,
        }

    def escalation_summary(self) -> Dict[str, Any]:
        phases = escalation_phases(self.strategy.get("escalation_path"))
        return {"phases": [p["label"] for p in phases[:2]]}

    # -------------------------------------------------------------------------
    # Details (shown while a lane is open)
    # -------------------------------------------------------------------------

    def position_detail(self) -> Dict[str, Any]:
        points = [p for p in _list(self.report.get("leverage_points")) if isinstance(p, dict)]
        statutes = [s for s in _list(self.report.get("statutory_references")) if isinstance(s, dict)]
        show_all = self.state.is_open(SHOW_ALL_LEVERAGE)
        metrics = [
            {"label": "Grade", "value": self.grade},
            {"label": "Score", "value": f"{self.score}/100"},
            {"label": "Estimated likelihood of recovery", "value": f"{self.win_probability}%"},
        ]
        if self.recovery.get("likely_case"):
            metrics.append({"label": "Most realistic outcome", "value": self.recovery["likely_case"]})

        return {
            "metrics": metrics,
            "top_leverage_point": _leverage_point_view(points[0]) if points else None,
            "more_leverage_points": len(points) - 1 if points else 0,
            "show_all_leverage": show_all,
            "leverage_points": [_leverage_point_view(p) for p in points[1:]] if show_all else [],
            "bad_faith_indicators": _list(self.case_strength.get("bad_faith_indicators")),
            "statutes_open": self.state.is_open(SHOW_STATUTES),
            "statute_count": len(statutes),
            "statutory_references": statutes if self.state.is_open(SHOW_STATUTES) else [],
        }

    def _step_view(self, step: Dict[str, Any]) -> Dict[str, Any]:
        number = step.get("step_number")
        expanded = self.state.is_open(step_key(number, "detail"))
        view: Dict[str, Any] = {
            "step_number": number,
            "title": step.get("title"),
            "category": step.get("category"),
            "category_label": display.category_label(step.get("category")),
            "expanded": expanded,
        }
        if not expanded:
            return view

        checklist = [
            {"index": i, "text": item, "checked": self.state.is_checked(number, i)}
            for i, item in enumerate(_list(step.get("checklist")))
        ]
        resources = []
        for resource in _list(step.get("resources")):
            if not isinstance(resource, dict):
                continue
            url = resource.get("url")
            resources.append({
                "title": resource.get("title"),
                "url": url if isinstance(url, str) and url.lower().startswith(("http://", "https://")) else None,
                "description": resource.get("description"),
            })

        links = self.resolver.link_step(step)
        statutes_open = self.state.is_sub_open(number, "statutes")
        lease_open = self.state.is_sub_open(number, "lease")
        link_view = links.to_dict()
        view.update({
            "description": step.get("description"),
            "applicability_note": step.get("applicability_note"),
            "checklist": checklist,
            "checklist_done": sum(1 for c in checklist if c["checked"]),
            "resources": resources,
            "linked_leverage_point": link_view["leverage_point"],
            "statutes_open": statutes_open,
            "statute_count": len(links.statutes),
            "statutes": links.statutes if statutes_open else [],
            "lease_open": lease_open,
            "lease_status": link_view["lease_status"],
            "lease_clauses": links.lease_clauses if lease_open and links.has_lease else [],
        })
        return view

    def action_detail(self) -> Dict[str, Any]:
        steps = [s for s in _list(self.report.get("procedural_steps")) if isinstance(s, dict)]
        show_all = self.state.is_open(SHOW_ALL_STEPS)
        shown = steps if show_all else steps[: self.steps_preview_count]
        return {
            "steps": [self._step_view(s) for s in shown],
            "show_all_steps": show_all,
            "hidden_step_count": max(0, len(steps) - len(shown)),
            "key_dates": [
                {
                    **d.to_dict(),
                    "display": display.display_date(d.date),
                    "badge": display.key_date_badge(d),
                }
                for d in self.key_dates
            ],
        }

    def escalation_detail(self) -> Dict[str, Any]:
        recovery = None
        if self.recovery:
            distribution = _dict(self.recovery.get("probability_distribution"))
            penalty = self.recovery.get("statutory_penalty")
            recovery = {
                "worst_case": self.recovery.get("worst_case") or "$0",
                "likely_case": self.recovery.get("likely_case") or "$0",
                "best_case": self.recovery.get("best_case") or "$0",
                "probability_distribution": {
                    k: distribution[k]
                    for k in ("full_recovery", "partial_recovery", "no_recovery")
                    if distribution.get(k) is not None
                },
                "statutory_penalty": penalty if penalty and penalty != "$0" else None,
                "confidence_note": self.recovery.get("confidence_note"),
            }

        evidence = None
        if self.case_strength.get("evidence_matrix"):
            evidence = {
                "quality": self.case_strength.get("evidence_quality"),
                "entries": [
                    {"label": label, "value": str(value), "tone": display.evidence_tone(value)}
                    for label, value in display.evidence_entries(self.case_strength.get("evidence_matrix"))
                ],
            }

        defense = display.damage_defense_view(self.report.get("damage_defense"))
        return {
            "recovery_estimate": recovery,
            "evidence": evidence,
            "escalation_path": escalation_phases(self.strategy.get("escalation_path")),
            "has_damage_defense": defense is not None,
            "defense_open": self.state.is_open(SHOW_DEFENSE),
            "damage_defense": defense if self.state.is_open(SHOW_DEFENSE) else None,
        }

    # -------------------------------------------------------------------------
    # Assembly
    # -------------------------------------------------------------------------

    def _section(self, lane: int, summary: Dict[str, Any], detail_fn) -> Dict[str, Any]:
        is_open = self.state.is_section_open(lane)
        return {
            "lane": lane,
            "view": LANE_VIEWS[lane].value,
            "title": SECTION_TITLES[lane],
            "visible": True,
            "open": is_open,
            "summary": summary,
            "detail": detail_fn() if is_open else None,
        }

    def build(self) -> Dict[str, Any]:
        lanes = visible_lanes(self.report)
        sections: Dict[str, Any] = {}

        if lanes[LANE_POSITION]:
            sections["position"] = self._section(LANE_POSITION, self.position_summary(), self.position_detail)
        else:
            sections["position"] = {
                "lane": LANE_POSITION,
                "view": View.STATUS.value,
                "title": SECTION_TITLES[LANE_POSITION],
                "visible": False,
                "open": False,
                "fallback_message": NO_POSITION_MESSAGE,
            }
        if lanes[LANE_ACTION]:
            sections["action"] = self._section(LANE_ACTION, self.action_summary(), self.action_detail)
        if lanes[LANE_ESCALATION]:
            sections["escalation"] = self._section(LANE_ESCALATION, self.escalation_summary(), self.escalation_detail)

        cards = []
        if self.state.mode is NavigationMode.HUB and self.state.view is View.HUB:
            cards = [
                {"view": LANE_VIEWS[lane].value, "title": SECTION_TITLES[lane], "available": lanes[lane]}
                for lane in (LANE_POSITION, LANE_ACTION, LANE_ESCALATION)
            ]

        return {
            "state": "ready",
            "mode": self.state.mode.value,
            "view": self.state.view.value,
            "open_lane": self.state.open_lane,
            "header": {
                "grade": self.grade,
                "grade_color": display.grade_color(self.grade),
                "score": self.score,
                "strategic_position": self.position,
                "urgency": self.strategy.get("urgency"),
            },
            "cards": cards,
            "sections": sections,
            "disclaimers": self.report.get("disclaimers"),
            # the letter modal pre-fills from the case context
            "letter_available": bool(self.context),
        }


def build_report_view(
    report: Optional[Dict[str, Any]],
    context: Optional[Dict[str, Any]] = None,
    state: Optional[ReportViewState] = None,
    steps_preview_count: int = 3,
) -> Dict[str, Any]:
    """Build the full report view model; malformed report data never raises."""
    return ReportViewBuilder(report, context, state, steps_preview_count).build()
