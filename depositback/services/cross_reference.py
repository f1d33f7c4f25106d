"""
Cross-Reference Resolver
========================

The analysis backend computes leverage points, procedural steps, statutes
and lease clauses independently and does not join them. This module links
a procedural step back to the leverage point it came from, and from there
to the statutes and lease clauses worth showing beside the step.

The only link the backend provides is free text in a step's
`applicability_note` ("Relevant to: <issue>"). That convention is parsed
here and nowhere else.

Fallbacks are best-effort: when no explicit link exists the step still
gets generic context (the first statutes, category-matched lease clauses)
rather than nothing.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

NONE_FOUND = "none_found"

RELEVANT_TO_PATTERN = re.compile(r"Relevant to:\s*(.+)", re.IGNORECASE)
SECTION_NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)*")

GENERIC_STATUTE_COUNT = 2

# Procedural step category -> lease clause topics worth showing for it
CATEGORY_CLAUSE_TOPICS: Dict[str, frozenset] = {
    "documentation": frozenset({"security_deposit", "move_out"}),
    "communication": frozenset({"notice", "security_deposit"}),
    "legal_consultation": frozenset({"security_deposit", "deductions", "damages"}),
    "court_information": frozenset({"security_deposit", "damages", "fees_or_charges"}),
    "review": frozenset({"deductions", "cleaning", "repairs", "normal_wear_and_tear", "carpet_painting"}),
    "planning": frozenset({"move_out", "surrender", "forwarding_address"}),
    "next_steps": frozenset({"security_deposit", "forwarding_address"}),
}

LeaseClauses = Union[List[Dict[str, Any]], str]


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def normalize_issue_key(text: str) -> str:
    """'Late Refund  Deadline' -> 'late_refund_deadline'"""
    return re.sub(r"\s+", "_", text.strip().lower())


def section_number(citation: Any) -> Optional[str]:
    """
    Pull the statute section out of a citation.

    Accepts "Tex. Prop. Code § 92.103", a bare "92.103", or a citation
    object with a `citation` key.
    """
    if isinstance(citation, dict):
        citation = citation.get("citation") or citation.get("rule_id")
    if not isinstance(citation, str):
        return None
    tail = citation.split("§")[-1]
    match = SECTION_NUMBER_PATTERN.search(tail)
    return match.group(0) if match else None


@dataclass
class StepLinks:
    """Everything linked to one procedural step"""
    step_number: Optional[int]
    leverage_point: Optional[Dict[str, Any]]
    statutes: List[Dict[str, Any]] = field(default_factory=list)
    lease_clauses: LeaseClauses = field(default_factory=list)

    @property
    def has_lease(self) -> bool:
        return self.lease_clauses != NONE_FOUND

    def to_dict(self) -> Dict[str, Any]:
        lp = self.leverage_point
        return {
            "step_number": self.step_number,
            "leverage_point": {
                "id": _point_id(lp),
                "title": lp.get("title"),
                "severity": lp.get("severity"),
            } if lp else None,
            "statutes": self.statutes,
            "lease_clauses": self.lease_clauses,
            "lease_status": (
                "no_clauses_in_lease" if not self.has_lease
                else "none_applicable" if not self.lease_clauses
                else "found"
            ),
        }


def _point_id(point: Optional[Dict[str, Any]]) -> Optional[str]:
    if not point:
        return None
    return point.get("point_id") or point.get("issue_id") or point.get("id")


class CrossReferenceResolver:
    """Resolves step -> leverage point -> statutes / lease clauses for one report"""

    def __init__(self, report: Optional[Dict[str, Any]]):
        self.report = report if isinstance(report, dict) else {}

    @property
    def leverage_points(self) -> List[Dict[str, Any]]:
        return [lp for lp in _list(self.report.get("leverage_points")) if isinstance(lp, dict)]

    @property
    def statutory_references(self) -> List[Dict[str, Any]]:
        return [s for s in _list(self.report.get("statutory_references")) if isinstance(s, dict)]

    @property
    def lease_clause_citations(self) -> List[Dict[str, Any]]:
        return [c for c in _list(self.report.get("lease_clause_citations")) if isinstance(c, dict)]

    def find_linked_leverage_point(self, step: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Leverage point named by the step's "Relevant to: <issue>" note.

        Exact match on the normalized key against `point_id` or `issue_id`;
        no fuzzy matching.
        """
        note = step.get("applicability_note") if isinstance(step, dict) else None
        if not isinstance(note, str):
            return None
        match = RELEVANT_TO_PATTERN.search(note)
        if not match:
            return None

        key = normalize_issue_key(match.group(1))
        for point in self.leverage_points:
            for id_field in ("point_id", "issue_id"):
                candidate = point.get(id_field)
                if isinstance(candidate, str) and candidate.lower() == key:
                    return point

        logger.debug("Step %s references unknown issue %r", step.get("step_number"), key)
        return None

    def find_relevant_statutes(self, step: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Statutes cited by the linked leverage point.

        Citation formatting differs between leverage points and the canonical
        statute list, so matching is by section-number substring. Without a
        link or a match, the first two references are returned as context.
        """
        references = self.statutory_references
        if not references:
            return []

        point = self.find_linked_leverage_point(step)
        citations = _list(point.get("statute_citations")) if point else []
        sections = [s for s in (section_number(c) for c in citations) if s]

        if sections:
            matched = [
                ref for ref in references
                if any(sec in str(ref.get("citation", "")) for sec in sections)
            ]
            if matched:
                return matched

        return references[:GENERIC_STATUTE_COUNT]

    def find_relevant_lease_clauses(self, step: Dict[str, Any]) -> LeaseClauses:
        """
        Lease clauses for a step.

        Returns the linked leverage point's own `lease_citations` when it has
        any, otherwise clauses whose topic fits the step's category. Returns
        NONE_FOUND when the report has no lease clauses at all, so the caller
        can tell "no clauses in this lease" from "none apply to this step".
        """
        point = self.find_linked_leverage_point(step)
        if point:
            linked = point.get("lease_citations")
            if isinstance(linked, list) and linked:
                return linked

        clauses = self.lease_clause_citations
        if not clauses:
            return NONE_FOUND

        category = step.get("category") if isinstance(step, dict) else None
        topics = CATEGORY_CLAUSE_TOPICS.get(category, frozenset())
        return [c for c in clauses if (c.get("clause_type") or c.get("topic")) in topics]

    def link_step(self, step: Dict[str, Any]) -> StepLinks:
        return StepLinks(
            step_number=step.get("step_number") if isinstance(step, dict) else None,
            leverage_point=self.find_linked_leverage_point(step),
            statutes=self.find_relevant_statutes(step),
            lease_clauses=self.find_relevant_lease_clauses(step),
        )


def find_linked_leverage_point(report: Optional[Dict[str, Any]], step: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return CrossReferenceResolver(report).find_linked_leverage_point(step)


def find_relevant_statutes(report: Optional[Dict[str, Any]], step: Dict[str, Any]) -> List[Dict[str, Any]]:
    return CrossReferenceResolver(report).find_relevant_statutes(step)


def find_relevant_lease_clauses(report: Optional[Dict[str, Any]], step: Dict[str, Any]) -> LeaseClauses:
    return CrossReferenceResolver(report).find_relevant_lease_clauses(step)
