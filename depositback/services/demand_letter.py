"""
Demand Letter Field Model
=========================

Editable field set for the landlord demand letter, pre-filled from the
case context and report, and a plain-text rendering of the letter used as
a live preview next to the edit form. The backend renders the final PDF
from the same field set.

Blank fields render as italic placeholders (`_[Label]_`) so the tenant can
see what still needs filling in.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from depositback.core.utc import add_days, format_long_date, parse_iso_date, today_local

DEFAULT_RESPONSE_DAYS = 14
TOP_VIOLATION_COUNT = 3

DISCLAIMER = (
    "This letter was prepared using Deposit Defender, an informational tool. "
    "It does not constitute legal advice. Consult a licensed Texas attorney for "
    "legal advice specific to your situation."
)


class DemandLetterFields(BaseModel):
    """Letter fields; serialized with camelCase keys for the backend renderer"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tenant_name: str = ""
    tenant_current_address: str = ""
    tenant_current_city_state_zip: str = ""
    tenant_email: str = ""
    tenant_phone: str = ""
    landlord_name: str = ""
    landlord_address: str = ""
    landlord_city_state_zip: str = ""
    property_address: str = ""
    property_city: str = ""
    move_out_date: str = ""
    deposit_amount: str = ""
    demand_amount: str = ""
    response_deadline_days: str = str(DEFAULT_RESPONSE_DAYS)
    letter_date: str = ""

    @classmethod
    def from_case(
        cls,
        context: Optional[Dict[str, Any]],
        report: Optional[Dict[str, Any]],
        response_days: int = DEFAULT_RESPONSE_DAYS,
    ) -> "DemandLetterFields":
        """
        Pre-fill from the case context and report.

        The tenant's current mailing address is never known up front; the
        tenant has moved out and must type it.
        """
        ctx = context if isinstance(context, dict) else {}
        recovery = (report or {}).get("recovery_estimate") if isinstance(report, dict) else None
        recovery = recovery if isinstance(recovery, dict) else {}

        def text(key: str) -> str:
            value = ctx.get(key)
            return "" if value is None else str(value)

        return cls(
            tenant_name=text("tenantName"),
            tenant_email=text("tenantEmail"),
            tenant_phone=text("tenantPhone"),
            landlord_name=text("landlordName"),
            landlord_address=text("landlordAddress"),
            landlord_city_state_zip=", ".join(
                str(v) for v in (ctx.get("landlordCity"), ctx.get("landlordState"), ctx.get("landlordZip")) if v
            ),
            property_address=text("propertyAddress"),
            property_city=text("propertyCity"),
            move_out_date=text("moveOutDate"),
            deposit_amount=text("depositAmount"),
            demand_amount=str(recovery.get("amount_still_owed") or recovery.get("likely_case") or ""),
            response_deadline_days=str(response_days),
            letter_date=format_long_date(today_local()),
        )

    @property
    def missing_address(self) -> bool:
        return not self.tenant_current_address.strip()

    @property
    def full_property_address(self) -> str:
        if self.property_city:
            return f"{self.property_address}, {self.property_city}"
        return self.property_address

    def to_payload(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


def response_days(days: Any) -> int:
    """Leading integer of `days`, or 14 when there is none (or it is zero)."""
    digits = ""
    for ch in str(days or "").strip():
        if not ch.isdigit():
            break
        digits += ch
    return int(digits) if digits and int(digits) else DEFAULT_RESPONSE_DAYS


def deadline_date(days: Any) -> str:
    """Today plus the response window, long form ("March 15, 2024")."""
    return format_long_date(add_days(today_local(), response_days(days)))


def placeholder(label: str) -> str:
    return f"_[{label}]_"


def _or_blank(value: str, label: str) -> str:
    return value if value else placeholder(label)


def _citation_text(citation: Any) -> str:
    if isinstance(citation, dict):
        return str(citation.get("citation") or "")
    return str(citation)


def _long_date(value: str) -> str:
    parsed = parse_iso_date(value)
    return format_long_date(parsed) if parsed else value


def render_letter(fields: DemandLetterFields, report: Optional[Dict[str, Any]] = None) -> List[str]:
    """
    Render the letter as a list of text blocks (paragraphs, address blocks).

    Args:
        fields: Current letter fields
        report: Case report; supplies timeline facts, leverage points and
            bad-faith indicators. May be None.
    """
    report = report if isinstance(report, dict) else {}
    timeline = report.get("timeline") if isinstance(report.get("timeline"), dict) else {}
    case_strength = report.get("case_strength") if isinstance(report.get("case_strength"), dict) else {}
    leverage = [lp for lp in report.get("leverage_points") or [] if isinstance(lp, dict)]

    days_since = timeline.get("days_since_move_out")
    past_30 = timeline.get("past_30_days")
    bad_faith = bool(case_strength.get("bad_faith_indicators"))
    property_address = fields.full_property_address

    blocks: List[str] = []

    sender = [
        _or_blank(fields.tenant_name, "Your Name"),
        _or_blank(fields.tenant_current_address, "Your Current Address"),
        _or_blank(fields.tenant_current_city_state_zip, "City, State ZIP"),
    ]
    contact = "   |   ".join(v for v in (fields.tenant_email, fields.tenant_phone) if v)
    if contact:
        sender.append(contact)
    blocks.append("\n".join(sender))

    blocks.append(fields.letter_date or format_long_date(today_local()))

    blocks.append("\n".join([
        _or_blank(fields.landlord_name, "Landlord Name"),
        _or_blank(fields.landlord_address, "Landlord Address"),
        _or_blank(fields.landlord_city_state_zip, "City, State ZIP"),
    ]))

    blocks.append(
        "RE: Formal Demand for Return of Security Deposit - "
        + _or_blank(property_address, "Property Address")
    )

    blocks.append(f"Dear {fields.landlord_name}:" if fields.landlord_name else "To Whom It May Concern:")

    ended = f", which ended on {_long_date(fields.move_out_date)}" if fields.move_out_date else ""
    deposit = f" of {fields.deposit_amount}" if fields.deposit_amount else ""
    blocks.append(
        "I am writing to formally demand the return of my security deposit in connection with my "
        f"former tenancy at {_or_blank(property_address, 'property address')}{ended}. "
        f"I paid a security deposit{deposit} at the commencement of my tenancy. "
        "To date, you have not returned the deposit, nor have you provided a written, itemized "
        "statement of any deductions as required by Texas law."
    )

    elapsed = ""
    if days_since is not None:
        if past_30:
            elapsed = (
                f"As of today, {days_since} days have elapsed since my move-out date, "
                "well beyond the 30-day statutory period. "
            )
        else:
            elapsed = (
                f"As of today, {days_since} days have elapsed since my move-out date, "
                "and the statutory 30-day deadline is approaching. "
            )
    blocks.append(
        elapsed
        + "Texas Property Code § 92.103 requires a landlord to refund a security deposit, less any "
        "lawfully withheld amounts, no later than 30 days after the date the tenant surrenders the "
        "premises. Texas Property Code § 92.104 further requires that any deductions be itemized in "
        "a written statement provided to the tenant. You have complied with neither of these requirements."
    )

    violations = [lp for lp in leverage if lp.get("severity") == "high"][:TOP_VIOLATION_COUNT]
    if violations:
        lines = ["The following violations support this demand:"]
        for lp in violations:
            citations = ", ".join(
                c for c in (_citation_text(c) for c in lp.get("statute_citations") or []) if c
            )
            lines.append(f"• {lp.get('title')}" + (f" ({citations})" if citations else ""))
        blocks.append("\n".join(lines))

    if bad_faith:
        blocks.append(
            "Please be advised that a landlord who, in bad faith, retains a security deposit or fails "
            "to provide a written itemized accounting is liable under Texas Property Code § 92.109 for "
            "$100, three times the amount of the security deposit wrongfully withheld, and the tenant's "
            "reasonable attorney's fees."
        )

    days = response_days(fields.response_deadline_days)
    blocks.append(
        "I hereby formally demand that you remit to me "
        f"{_or_blank(fields.demand_amount, 'demand amount')} "
        f"within {days} days of receipt of this letter "
        f"(by {deadline_date(days)})."
    )

    blocks.append(
        "If I do not receive full payment within the stated period, I intend to pursue all available "
        "legal remedies, including filing suit in the appropriate justice court (small claims) for the "
        "full amount owed, statutory damages, and any attorney's fees permitted under Texas law. "
        "I hope we can resolve this matter without the need for litigation."
    )

    blocks.append(
        "_This letter constitutes written notice for all purposes under Texas Property Code Chapter 92._"
    )
    blocks.append("Sincerely,")

    signature = [_or_blank(fields.tenant_name, "Your Name")]
    signature.extend(
        v for v in (
            fields.tenant_current_address,
            fields.tenant_current_city_state_zip,
            fields.tenant_email,
            fields.tenant_phone,
        ) if v
    )
    blocks.append("\n".join(signature))
    blocks.append(f"_{DISCLAIMER}_")
    return blocks
