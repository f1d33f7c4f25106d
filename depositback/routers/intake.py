"""
DepositBack - Intake Router
Lease upload proxy: forwards the file to the backend extractor and returns
intake form defaults built only from values that pass validation.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel

from depositback.core.errors import DocumentError, http_status_for
from depositback.services.extraction_validator import apply_extracted_data
from depositback.services.report_api import ReportAPIClient, get_report_api_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/intake", tags=["Intake"])

AUTO_FILLED_MESSAGE = "Fields auto-filled from your lease. Review and correct anything that looks wrong."
NOTHING_DETECTED_MESSAGE = (
    "Lease uploaded, but we could not auto-detect your details. Please fill in the fields below."
)
MAX_LEASE_BYTES = 20 * 1024 * 1024


class LeaseExtractResponse(BaseModel):
    """Validated intake defaults from an uploaded lease."""
    status: str
    message: str
    form: dict
    applied: List[str]
    rejected: List[str]
    lease_text: Optional[str] = None
    sections: List[dict] = []


@router.post("/lease-extract", response_model=LeaseExtractResponse)
async def lease_extract(
    request: Request,
    lease: UploadFile = File(...),
    case_id: Optional[str] = Form(None),
    api: ReportAPIClient = Depends(get_report_api_client),
):
    """
    Upload a lease and get pre-filled intake fields.

    Extracted values that fail validation are dropped silently; the tenant
    fills those fields by hand.
    """
    if not lease.filename:
        raise HTTPException(status_code=400, detail="Filename required")
    content = await lease.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(content) > MAX_LEASE_BYTES:
        raise HTTPException(status_code=400, detail="File too large (max 20MB)")

    try:
        extraction = await api.extract_lease(
            lease.filename,
            content,
            content_type=lease.content_type or "application/pdf",
            case_id=case_id,
            cookie=request.headers.get("cookie"),
        )
    except DocumentError as e:
        logger.info("Lease extraction failed for %s: %s", lease.filename, e.message)
        raise HTTPException(status_code=http_status_for(e), detail=e.to_dict())

    result = apply_extracted_data(extraction["extractedData"])
    if result.has_data:
        message = extraction["message"] or AUTO_FILLED_MESSAGE
    else:
        message = NOTHING_DETECTED_MESSAGE

    return LeaseExtractResponse(
        status="done",
        message=message,
        lease_text=extraction["leaseText"],
        sections=[s for s in extraction["sections"] if isinstance(s, dict)],
        **result.to_dict(),
    )
