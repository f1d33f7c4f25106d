"""
Extraction Validator
====================

The lease extractor (OCR + LLM) works on noisy scans and will confidently
return syntactically plausible garbage: a unit description instead of a
street address, "Tenant" instead of a person's name. No reliable
confidence score comes back with it, so cheap heuristics run here before
an extracted value may pre-fill an intake field.

A failed check leaves the field blank (or at its current value). It is
never reported as an error; the tenant can always type the value.
"""

import copy
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

STREET_NUMBER_PATTERN = re.compile(r"^\d+\s*[A-Za-z]")
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Markers that the extractor grabbed a unit description ("2 Bedroom, 1 Bath, 850 sq ft")
AREA_ROOM_TOKENS = ("sq ft", "bedr", "bath")

# Document-structure words the extractor sometimes returns as a party name
BOILERPLATE_NAMES = frozenset({"property", "lease", "tenant", "agreement", "the", "this"})


def is_valid_address(value: Any) -> bool:
    """Street address: starts with a street number, not a room/area description."""
    if not isinstance(value, str):
        return False
    s = value.strip()
    if len(s) <= 5:
        return False
    if not STREET_NUMBER_PATTERN.match(s):
        return False
    lowered = s.lower()
    return not any(token in lowered for token in AREA_ROOM_TOKENS)


def is_valid_name(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    s = value.strip()
    return len(s) >= 3 and s.lower() not in BOILERPLATE_NAMES


def is_valid_date(value: Any) -> bool:
    """Canonical YYYY-MM-DD that is also a real calendar date."""
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _present(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and bool(value.strip())


EMPTY_INTAKE_FORM: Dict[str, Any] = {
    "tenant_information": {"full_name": "", "email": "", "phone": ""},
    "landlord_information": {
        "landlord_name": "",
        "landlord_address": "",
        "landlord_city": "",
        "landlord_state": "TX",
        "landlord_zip": "",
        "landlord_phone": "",
    },
    "property_information": {"property_address": "", "city": "", "zip_code": "", "county": ""},
    "lease_information": {"lease_start_date": "", "lease_end_date": "", "lease_type": "written"},
    "move_out_information": {
        "move_out_date": "",
        "forwarding_address_provided": "unknown",
        "forwarding_address_date": "",
    },
    "security_deposit_information": {
        "deposit_amount": "",
        "pet_deposit_amount": "",
        "deposit_paid_date": "",
        "deposit_returned": "no",
        "amount_returned": "",
    },
    "post_move_out_communications": {
        "itemized_deductions_received": "unknown",
        "date_itemized_list_received": "",
        "communication_methods_used": [],
    },
    "additional_notes": {"tenant_notes": ""},
    "acknowledgements": {"texas_only_confirmation": False, "non_legal_service_acknowledged": False},
    "jurisdiction": "TX",
}


def empty_intake_form() -> Dict[str, Any]:
    return copy.deepcopy(EMPTY_INTAKE_FORM)


@dataclass
class ExtractionResult:
    """Form defaults after applying extracted lease data"""
    form: Dict[str, Any]
    applied: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return bool(self.applied)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "form": self.form,
            "applied": self.applied,
            "rejected": self.rejected,
        }


def _landlord_address_parts(ext: Dict[str, Any]) -> Dict[str, Any]:
    """landlord_address may be a flat string or a {street, city, state, zip} object."""
    raw = ext.get("landlord_address")
    if isinstance(raw, dict):
        return {
            "landlord_address": raw.get("street"),
            "landlord_city": raw.get("city"),
            "landlord_state": raw.get("state"),
            "landlord_zip": raw.get("zip"),
        }
    return {
        "landlord_address": raw,
        "landlord_city": ext.get("landlord_city"),
        "landlord_state": None,
        "landlord_zip": ext.get("landlord_zip"),
    }


# (form section, form field, extracted value getter, validator)
_FieldRule = Tuple[str, str, Callable[[Dict[str, Any]], Any], Callable[[Any], bool]]

_FIELD_RULES: List[_FieldRule] = [
    ("tenant_information", "full_name", lambda e: e.get("tenant_name"), is_valid_name),
    ("landlord_information", "landlord_name", lambda e: e.get("landlord_name"), is_valid_name),
    ("landlord_information", "landlord_address",
     lambda e: _landlord_address_parts(e)["landlord_address"], is_valid_address),
    ("landlord_information", "landlord_city", lambda e: _landlord_address_parts(e)["landlord_city"], _present),
    ("landlord_information", "landlord_state", lambda e: _landlord_address_parts(e)["landlord_state"], _present),
    ("landlord_information", "landlord_zip", lambda e: _landlord_address_parts(e)["landlord_zip"], _present),
    ("property_information", "property_address", lambda e: e.get("property_address"), is_valid_address),
    ("property_information", "city", lambda e: e.get("city"), _present),
    ("property_information", "zip_code", lambda e: e.get("zip_code"), _present),
    ("property_information", "county", lambda e: e.get("county"), _present),
    ("lease_information", "lease_start_date", lambda e: e.get("lease_start_date"), is_valid_date),
    ("lease_information", "lease_end_date", lambda e: e.get("lease_end_date"), is_valid_date),
    ("security_deposit_information", "deposit_amount", lambda e: e.get("deposit_amount"), _present),
    ("security_deposit_information", "pet_deposit_amount", lambda e: e.get("pet_deposit_amount"), _present),
]


def apply_extracted_data(
    extracted: Optional[Dict[str, Any]],
    form: Optional[Dict[str, Any]] = None,
) -> ExtractionResult:
    """
    Merge validated extracted values into intake form defaults.

    Args:
        extracted: `extractedData` from the lease-extract endpoint
        form: Current form values; defaults to an empty intake form

    Returns:
        ExtractionResult with the merged form and which fields were applied
        or rejected. The input form is not modified.
    """
    merged = copy.deepcopy(form) if form is not None else empty_intake_form()
    result = ExtractionResult(form=merged)
    if not isinstance(extracted, dict):
        return result

    for section, field_name, getter, validator in _FIELD_RULES:
        value = getter(extracted)
        if not _present(value):
            continue
        key = f"{section}.{field_name}"
        if validator(value):
            merged.setdefault(section, {})[field_name] = value.strip() if isinstance(value, str) else str(value)
            result.applied.append(key)
        else:
            result.rejected.append(key)

    if result.rejected:
        logger.debug("Dropped %d extracted field(s) failing validation: %s",
                     len(result.rejected), ", ".join(result.rejected))
    return result
