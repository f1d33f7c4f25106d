"""
DepositBack - Shared Test Fixtures
Provides a sample report, a mocked analysis backend and an app client
wired to both.
"""

import copy
from typing import AsyncGenerator, Callable, Dict, List, Tuple, Union

import httpx
import pytest
from httpx import AsyncClient, ASGITransport

from depositback.core.config import Settings, get_settings
from depositback.main import app
from depositback.services.report_api import ReportAPIClient, get_report_api_client


CASE_ID = "abcdef1234567890"


SAMPLE_REPORT = {
    "case_strength": {
        "leverage_grade": "B",
        "leverage_score": 72,
        "win_probability": 68,
        "strategic_position": "STRONG",
        "bad_faith_indicators": ["No itemized list after 30 days"],
        "evidence_quality": "good",
        "evidence_matrix": {
            "photos_at_move_out": "strong",
            "forwarding_address_in_writing": True,
            "move_in_checklist": "weak",
            "overall_strength": "moderate",
            "details": {"nested": "ignored"},
        },
    },
    "leverage_points": [
        {
            "point_id": "deadline_missed",
            "title": "Refund deadline missed",
            "severity": "high",
            "observation": "More than 30 days have passed since move-out.",
            "supporting_facts": ["Moved out March 1"],
            "statute_citations": ["Tex. Prop. Code § 92.103"],
            "lease_citations": [{"clause_type": "security_deposit", "text": "Deposit refunded per law."}],
        },
        {
            "issue_id": "no_itemization",
            "title": "No itemized deductions",
            "severity": "high",
            "statute_citations": [{"citation": "Tex. Prop. Code § 92.104"}],
        },
        {
            "point_id": "carpet_charge",
            "title": "Carpet replacement charged",
            "severity": "medium",
        },
    ],
    "procedural_steps": [
        {
            "step_number": 1,
            "title": "Send a demand letter",
            "category": "communication",
            "description": "Mail a certified demand letter.",
            "applicability_note": "Relevant to: Deadline Missed",
            "checklist": ["Print letter", "Send certified mail"],
            "resources": [
                {"title": "TexasLawHelp", "url": "https://texaslawhelp.org"},
                {"title": "Bad link", "url": "javascript:alert(1)"},
            ],
        },
        {
            "step_number": 2,
            "title": "Organize your photos",
            "category": "documentation",
            "description": "Collect move-out photos.",
        },
        {
            "step_number": 3,
            "title": "Review deductions",
            "category": "review",
            "description": "Compare deductions to the lease.",
        },
        {
            "step_number": 4,
            "title": "File in justice court",
            "category": "court_information",
            "description": "File a small claims case.",
        },
    ],
    "statutory_references": [
        {"citation": "Tex. Prop. Code § 92.103", "title": "Obligation to refund"},
        {"citation": "Tex. Prop. Code § 92.104", "title": "Retention of deposit"},
        {"citation": "Tex. Prop. Code § 92.109", "title": "Liability of landlord"},
    ],
    "lease_clause_citations": [
        {"clause_type": "security_deposit", "text": "Deposit of $1,500."},
        {"clause_type": "notice", "text": "Notices in writing."},
        {"topic": "cleaning", "text": "Professional cleaning required."},
    ],
    "timeline": {
        "move_out_date": "2024-03-01",
        "days_since_move_out": 45,
        "past_30_days": True,
    },
    "strategy": {
        "urgency": "HIGH",
        "recommended_action": "SEND_DEMAND_LETTER",
        "escalation_path": {
            "phase_1": "Send a demand letter",
            "phase_2": "File in justice court",
            "phase_3": "Collect the judgment",
        },
    },
    "recovery_estimate": {
        "worst_case": "$500",
        "likely_case": "$1,200",
        "best_case": "$4,600",
        "amount_still_owed": "$1,500",
        "probability_distribution": {"full_recovery": "45%", "partial_recovery": "35%", "no_recovery": "20%"},
        "statutory_penalty": "$3,100",
        "confidence_note": "Based on the facts you provided.",
    },
    "damage_defense": {
        "summary": "Carpet wear after three years is normal.",
        "defenses": [{"defense": "Normal wear and tear"}, "Depreciation"],
    },
    "disclaimers": ["This is not legal advice."],
}

SAMPLE_CONTEXT = {
    "tenantName": "Jordan Rivera",
    "tenantEmail": "jordan@example.com",
    "tenantPhone": "512-555-0100",
    "landlordName": "Acme Properties LLC",
    "landlordAddress": "100 Main St",
    "landlordCity": "Austin",
    "landlordState": "TX",
    "landlordZip": "78701",
    "propertyAddress": "42 Oak Lane",
    "propertyCity": "Austin",
    "moveOutDate": "2024-03-01",
    "depositAmount": "$1,500",
}


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
def report() -> dict:
    return copy.deepcopy(SAMPLE_REPORT)


@pytest.fixture
def context() -> dict:
    return copy.deepcopy(SAMPLE_CONTEXT)


# =============================================================================
# Mock Backend
# =============================================================================

Handler = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeBackend:
    """
    Route table for httpx.MockTransport.

    A route may hold a list of responses, served in order (the last one
    repeats), which is how retry tests see a failure then a success.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Handler]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Handler) -> None:
        self.routes[(method.upper(), path)] = list(responses)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"status": "error", "message": "no route"})
        handler = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(handler):
            return handler(request)
        try:
            content = handler.content
        except httpx.ResponseNotRead:
            # streamed body, served once
            return handler
        return httpx.Response(handler.status_code, headers=handler.headers, content=content)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def api(backend) -> AsyncGenerator[ReportAPIClient, None]:
    client = ReportAPIClient(base_url="http://backend", transport=httpx.MockTransport(backend))
    yield client
    await client.close()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(_env_file=None, download_dir=str(tmp_path / "downloads"))


@pytest.fixture
async def client(api, test_settings) -> AsyncGenerator[AsyncClient, None]:
    """App client with the backend and settings overridden."""
    app.dependency_overrides[get_report_api_client] = lambda: api
    app.dependency_overrides[get_settings] = lambda: test_settings
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def report_payload(report: dict, context: dict) -> dict:
    return {"status": "ok", "data": {"report": report, "context": context}}


@pytest.fixture
def serve_report(backend, report, context):
    """Register the sample report under CASE_ID."""
    backend.add("GET", f"/api/documents/{CASE_ID}/json", httpx.Response(200, json=report_payload(report, context)))
    return backend
