"""
DepositBack - Documents Router
Report PDF download, report email and the demand letter (preview + PDF).

Document failures come back from the controllers as DocumentError state
and are answered with the matching HTTP status and a `{kind, message,
retryable}` detail the page shows verbatim.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel
from starlette.background import BackgroundTask

from depositback.core.config import Settings, get_settings
from depositback.core.errors import DocumentError, http_status_for
from depositback.services.demand_letter import DemandLetterFields, deadline_date, render_letter
from depositback.services.document_download import LetterDownload, PdfDownload, ReportEmailer
from depositback.services.report_api import ReportAPIClient, ReportLoad, get_report_api_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/report", tags=["Documents"])

MISSING_ADDRESS_MESSAGE = "Please enter your current mailing address before downloading the letter."


# =============================================================================
# Models
# =============================================================================

class EmailRequest(BaseModel):
    email: str


class EmailResponse(BaseModel):
    status: str
    email: str


class LetterRequest(BaseModel):
    """Edited letter fields; omitted on first open to get the pre-filled set"""
    fields: Optional[DemandLetterFields] = None


class LetterPreviewResponse(BaseModel):
    fields: dict
    missing_address: bool
    deadline_date: str
    paragraphs: List[str]


# =============================================================================
# Helpers
# =============================================================================

def _raise_document_error(error: DocumentError) -> None:
    raise HTTPException(status_code=http_status_for(error), detail=error.to_dict())


def _request_dir(settings: Settings) -> Path:
    """Per-request directory under download_dir; concurrent downloads of one case never collide."""
    root = Path(settings.download_dir)
    root.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix="req-", dir=root))


def _pdf_response(path: Path) -> FileResponse:
    """Serve a saved PDF and remove its request directory once sent."""
    return FileResponse(
        path,
        media_type="application/pdf",
        filename=path.name,
        background=BackgroundTask(shutil.rmtree, path.parent, ignore_errors=True),
    )


async def _load_report(api: ReportAPIClient, case_id: str, cookie: Optional[str]) -> ReportLoad:
    load = await api.fetch_report(case_id, cookie=cookie)
    if load.status == "payment_required":
        raise HTTPException(
            status_code=402,
            detail={"kind": "payment_required", "redirect": load.redirect},
        )
    if not load.is_ready:
        raise HTTPException(status_code=502, detail={"kind": "server", "message": load.error})
    return load


# =============================================================================
# Report PDF and email
# =============================================================================

@router.get("/{case_id}/pdf")
async def download_report_pdf(
    case_id: str,
    request: Request,
    api: ReportAPIClient = Depends(get_report_api_client),
    settings: Settings = Depends(get_settings),
):
    """Stream the generated report PDF from the backend and serve it as an attachment."""
    work_dir = _request_dir(settings)
    controller = PdfDownload(
        api,
        work_dir,
        revoke_delay_ms=settings.download_revoke_delay_ms,
        cookie=request.headers.get("cookie"),
    )
    path = await controller.download(case_id)
    if path is None:
        shutil.rmtree(work_dir, ignore_errors=True)
        _raise_document_error(controller.error)
    return _pdf_response(path)


@router.post("/{case_id}/email", response_model=EmailResponse)
async def email_report(
    case_id: str,
    body: EmailRequest,
    request: Request,
    api: ReportAPIClient = Depends(get_report_api_client),
):
    emailer = ReportEmailer(api, cookie=request.headers.get("cookie"))
    if not await emailer.send(case_id, body.email):
        _raise_document_error(emailer.error)
    return EmailResponse(status=emailer.status, email=body.email.strip())


# =============================================================================
# Demand letter
# =============================================================================

@router.post("/{case_id}/letter/preview", response_model=LetterPreviewResponse)
async def preview_letter(
    case_id: str,
    request: Request,
    body: Optional[LetterRequest] = None,
    api: ReportAPIClient = Depends(get_report_api_client),
    settings: Settings = Depends(get_settings),
):
    """
    Letter fields and rendered text.

    Without fields in the body, the fields are pre-filled from the case;
    with them, the edited fields are rendered as they are.
    """
    load = await _load_report(api, case_id, request.headers.get("cookie"))
    fields = body.fields if body and body.fields else None
    if fields is None:
        fields = DemandLetterFields.from_case(
            load.context,
            load.report,
            response_days=settings.letter_response_days,
        )

    return LetterPreviewResponse(
        fields=fields.to_payload(),
        missing_address=fields.missing_address,
        deadline_date=deadline_date(fields.response_deadline_days),
        paragraphs=render_letter(fields, load.report),
    )


@router.post("/{case_id}/letter")
async def download_letter(
    case_id: str,
    body: LetterRequest,
    request: Request,
    api: ReportAPIClient = Depends(get_report_api_client),
    settings: Settings = Depends(get_settings),
):
    """Have the backend render the letter PDF. Refused until a mailing address is entered."""
    fields = body.fields
    if fields is None or fields.missing_address:
        raise HTTPException(
            status_code=422,
            detail={"kind": "invalid", "field": "tenantCurrentAddress", "message": MISSING_ADDRESS_MESSAGE},
        )

    work_dir = _request_dir(settings)
    controller = LetterDownload(
        api,
        work_dir,
        revoke_delay_ms=settings.download_revoke_delay_ms,
        cookie=request.headers.get("cookie"),
    )
    path = await controller.download(case_id, fields.to_payload())
    if path is None:
        shutil.rmtree(work_dir, ignore_errors=True)
        _raise_document_error(controller.error)
    logger.info("Demand letter generated for case %s", case_id)
    return _pdf_response(path)
