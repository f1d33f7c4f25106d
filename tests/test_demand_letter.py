"""
Tests for demand letter fields and the rendered preview text.
"""
from datetime import date

import pytest

from depositback.services import demand_letter
from depositback.services.demand_letter import (
    DemandLetterFields,
    deadline_date,
    placeholder,
    render_letter,
    response_days,
)


@pytest.fixture(autouse=True)
def fixed_today(monkeypatch):
    monkeypatch.setattr(demand_letter, "today_local", lambda: date(2024, 4, 15))


@pytest.fixture
def fields(context, report) -> DemandLetterFields:
    f = DemandLetterFields.from_case(context, report)
    f.tenant_current_address = "9 New Home Rd"
    f.tenant_current_city_state_zip = "Dallas, TX 75201"
    return f


# ============================================================================
# FIELDS
# ============================================================================

class TestFields:

    def test_prefilled_from_case(self, context, report):
        f = DemandLetterFields.from_case(context, report)
        assert f.tenant_name == "Jordan Rivera"
        assert f.landlord_city_state_zip == "Austin, TX, 78701"
        assert f.demand_amount == "$1,500"
        assert f.response_deadline_days == "14"
        assert f.letter_date == "April 15, 2024"
        assert f.tenant_current_address == ""
        assert f.missing_address

    def test_demand_amount_falls_back_to_likely_case(self, context, report):
        del report["recovery_estimate"]["amount_still_owed"]
        assert DemandLetterFields.from_case(context, report).demand_amount == "$1,200"

    def test_city_state_zip_skips_blanks(self, report):
        f = DemandLetterFields.from_case({"landlordCity": "Austin", "landlordZip": "78701"}, report)
        assert f.landlord_city_state_zip == "Austin, 78701"

    def test_empty_case(self):
        f = DemandLetterFields.from_case(None, None)
        assert f.demand_amount == ""
        assert f.tenant_name == ""

    def test_camel_case_payload(self, fields):
        payload = fields.to_payload()
        assert payload["tenantCurrentAddress"] == "9 New Home Rd"
        assert payload["responseDeadlineDays"] == "14"
        assert DemandLetterFields.model_validate(payload) == fields

    def test_whitespace_address_is_missing(self, fields):
        fields.tenant_current_address = "   "
        assert fields.missing_address


# ============================================================================
# DEADLINE
# ============================================================================

class TestDeadline:

    def test_response_days(self):
        assert response_days("10") == 10
        assert response_days("21 days") == 21
        assert response_days("abc") == 14
        assert response_days("") == 14
        assert response_days(None) == 14
        assert response_days("0") == 14

    def test_deadline_date(self):
        assert deadline_date("14") == "April 29, 2024"
        assert deadline_date("oops") == "April 29, 2024"
        assert deadline_date(30) == "May 15, 2024"


# ============================================================================
# RENDERING
# ============================================================================

class TestRenderLetter:

    def test_complete_letter(self, fields, report):
        text = "\n\n".join(render_letter(fields, report))
        assert "Dear Acme Properties LLC:" in text
        assert "former tenancy at 42 Oak Lane, Austin, which ended on March 1, 2024." in text
        assert "security deposit of $1,500" in text
        assert "45 days have elapsed since my move-out date, well beyond the 30-day statutory period" in text
        assert "remit to me $1,500 within 14 days of receipt of this letter (by April 29, 2024)" in text
        assert "§ 92.109" in text
        assert "_[" not in text

    def test_top_high_severity_violations_with_citations(self, fields, report):
        blocks = render_letter(fields, report)
        violations = next(b for b in blocks if b.startswith("The following violations"))
        lines = violations.splitlines()[1:]
        assert lines == [
            "• Refund deadline missed (Tex. Prop. Code § 92.103)",
            "• No itemized deductions (Tex. Prop. Code § 92.104)",
        ]

    def test_at_most_three_violations(self, fields, report):
        report["leverage_points"] = [{"title": f"Issue {i}", "severity": "high"} for i in range(5)]
        violations = next(b for b in render_letter(fields, report) if b.startswith("The following violations"))
        assert len(violations.splitlines()) == 4

    def test_blank_fields_become_placeholders(self, report):
        text = "\n".join(render_letter(DemandLetterFields(), report))
        assert placeholder("Your Name") in text
        assert placeholder("Your Current Address") in text
        assert placeholder("Landlord Name") in text
        assert placeholder("demand amount") in text
        assert "To Whom It May Concern:" in text

    def test_deadline_approaching(self, fields, report):
        report["timeline"] = {"days_since_move_out": 12, "past_30_days": False}
        text = "\n".join(render_letter(fields, report))
        assert "12 days have elapsed since my move-out date, and the statutory 30-day deadline is approaching" in text

    def test_unreadable_response_days_fall_back_in_text(self, fields, report):
        fields.response_deadline_days = "abc"
        text = "\n".join(render_letter(fields, report))
        assert "within 14 days of receipt of this letter (by April 29, 2024)" in text
        assert "abc" not in text

    def test_response_days_with_suffix(self, fields, report):
        fields.response_deadline_days = "21 days"
        text = "\n".join(render_letter(fields, report))
        assert "within 21 days of receipt of this letter (by May 6, 2024)" in text

    def test_optional_paragraphs_absent(self, fields):
        text = "\n".join(render_letter(fields, {}))
        assert "days have elapsed" not in text
        assert "§ 92.109" not in text
        assert "The following violations" not in text
        assert "§ 92.103" in text

    def test_signature_lists_contact_details(self, fields, report):
        blocks = render_letter(fields, report)
        signature = blocks[blocks.index("Sincerely,") + 1]
        assert signature.splitlines() == [
            "Jordan Rivera",
            "9 New Home Rd",
            "Dallas, TX 75201",
            "jordan@example.com",
            "512-555-0100",
        ]
