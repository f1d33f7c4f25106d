"""
DepositBack - Analysis Backend Client
Async httpx client for the case/analysis API: report JSON, document
streams, email delivery and lease extraction.

The backend owns scoring, payment state and PDF rendering. This client
only moves bytes and classifies failures into DocumentError.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from depositback.core.config import get_settings
from depositback.core.errors import (
    NETWORK_ERROR_MESSAGE,
    DocumentError,
    ErrorCode,
    ErrorKind,
    classify_http_error,
    message_for_code,
)

logger = logging.getLogger(__name__)

REPORT_ERROR_MESSAGE = "We couldn't load your report. Please refresh the page to try again."
LEASE_UNPROCESSED_MESSAGE = "Unable to process the file. Please fill in the fields manually."
LEASE_UPLOAD_NETWORK_MESSAGE = (
    "Upload failed. Please check your connection and try again, or fill in the fields manually."
)


@dataclass
class ReportLoad:
    """Outcome of a report fetch: ready, payment_required or error"""
    status: str
    report: Optional[Dict[str, Any]] = None
    context: Optional[Dict[str, Any]] = None
    redirect: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.status == "ready"


def review_path(case_id: str) -> str:
    return f"/review/{case_id}"


def _json_or_none(response: httpx.Response) -> Optional[Dict[str, Any]]:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def lease_extraction(body: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten either lease extraction response shape."""
    data = body.get("data") if isinstance(body.get("data"), dict) else body
    extracted = data.get("extractedData")
    lease_text = data.get("leaseText", data.get("preview"))
    sections = data.get("sections")
    message = body.get("message")
    return {
        "message": message if isinstance(message, str) else None,
        "extractedData": extracted if isinstance(extracted, dict) else {},
        "leaseText": lease_text if isinstance(lease_text, str) else None,
        "sections": sections if isinstance(sections, list) else [],
    }


class ReportAPIClient:
    """
    Client for the analysis backend.

    `transport` exists for tests (httpx.MockTransport); production uses the
    default network transport.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        retention_hours: int = 72,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retention_hours = retention_hours
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    @staticmethod
    def _headers(cookie: Optional[str]) -> Dict[str, str]:
        """The backend authorizes by session cookie; forward the caller's."""
        return {"Cookie": cookie} if cookie else {}

    def _classify(self, response: httpx.Response, use_body_message: bool = False) -> DocumentError:
        return classify_http_error(
            response.status_code,
            _json_or_none(response),
            retention_hours=self.retention_hours,
            use_body_message=use_body_message,
        )

    # =========================================================================
    # Report
    # =========================================================================

    async def fetch_report(self, case_id: str, cookie: Optional[str] = None) -> ReportLoad:
        """
        Load `{report, context}` for a case.

        Never raises. 402 means the report exists but is unpaid, which sends
        the tenant to the review page rather than showing an error.
        """
        try:
            response = await self.client.get(
                f"/api/documents/{case_id}/json",
                headers=self._headers(cookie),
            )
        except httpx.HTTPError as e:
            logger.warning("Report fetch failed for case %s: %s", case_id, e)
            return ReportLoad(status="error", error=REPORT_ERROR_MESSAGE)

        if response.status_code == 402:
            return ReportLoad(status="payment_required", redirect=review_path(case_id))
        if not response.is_success:
            logger.info("Report fetch for case %s returned %d", case_id, response.status_code)
            return ReportLoad(status="error", error=REPORT_ERROR_MESSAGE)

        payload = _json_or_none(response) or {}
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        report = data.get("report")
        if payload.get("status") != "ok" or not isinstance(report, dict):
            logger.info("Report payload for case %s is not usable", case_id)
            return ReportLoad(status="error", error=REPORT_ERROR_MESSAGE)

        context = data.get("context") if isinstance(data.get("context"), dict) else {}
        return ReportLoad(status="ready", report=report, context=context)

    # =========================================================================
    # Documents
    # =========================================================================

    @asynccontextmanager
    async def stream_document(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        cookie: Optional[str] = None,
        use_body_message: bool = False,
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a streamed document response.

        Yields the response once its status is known to be OK; the caller
        iterates `aiter_bytes()`. Non-OK responses raise DocumentError.
        """
        try:
            async with self.client.stream(method, path, json=json, headers=self._headers(cookie)) as response:
                if not response.is_success:
                    await response.aread()
                    raise self._classify(response, use_body_message=use_body_message)
                yield response
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise DocumentError(ErrorKind.NETWORK, NETWORK_ERROR_MESSAGE) from e

    def report_pdf(self, case_id: str, cookie: Optional[str] = None):
        return self.stream_document("GET", f"/api/documents/{case_id}", cookie=cookie)

    def letter_pdf(self, case_id: str, fields: Dict[str, Any], cookie: Optional[str] = None):
        return self.stream_document(
            "POST",
            f"/api/documents/{case_id}/letter",
            json={"fields": fields},
            cookie=cookie,
            use_body_message=True,
        )

    async def post_email(self, case_id: str, email: str, cookie: Optional[str] = None) -> Dict[str, Any]:
        """Ask the backend to email the report PDF. Raises DocumentError."""
        try:
            response = await self.client.post(
                f"/api/documents/{case_id}/email",
                json={"email": email},
                headers=self._headers(cookie),
            )
        except httpx.HTTPError as e:
            logger.warning("Email request failed for case %s: %s", case_id, e)
            raise DocumentError(ErrorKind.NETWORK, NETWORK_ERROR_MESSAGE) from e

        if not response.is_success:
            raise self._classify(response, use_body_message=True)
        return _json_or_none(response) or {}

    # =========================================================================
    # Lease extraction
    # =========================================================================

    async def extract_lease(
        self,
        filename: str,
        content: bytes,
        content_type: str = "application/pdf",
        case_id: Optional[str] = None,
        cookie: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Upload a lease for OCR/LLM extraction.

        The intake endpoint wraps its result as `{status, message, data}`;
        the case-scoped upload answers `{extractedData, preview, sections}`
        at the top level. Both come back as one dict with `message`,
        `extractedData`, `leaseText` and `sections`. Raises DocumentError
        when the upload fails or the backend reports `status: error`.
        """
        path = f"/api/cases/{case_id}/lease" if case_id else "/api/cases/lease-extract"
        try:
            response = await self.client.post(
                path,
                files={"lease": (filename, content, content_type)},
                headers=self._headers(cookie),
            )
        except httpx.HTTPError as e:
            logger.warning("Lease extraction request failed: %s", e)
            raise DocumentError(ErrorKind.NETWORK, LEASE_UPLOAD_NETWORK_MESSAGE) from e

        body = _json_or_none(response) or {}
        if response.is_success and body.get("status", "ok") == "ok":
            return lease_extraction(body)

        message = body.get("message") if isinstance(body.get("message"), str) else None
        code = body.get("code") if isinstance(body.get("code"), str) else None
        kind = ErrorKind.INVALID if 400 <= response.status_code < 500 else ErrorKind.SERVER
        raise DocumentError(
            kind,
            message or message_for_code(code) or LEASE_UNPROCESSED_MESSAGE,
            status=response.status_code,
            code=code or ErrorCode.LEASE_EXTRACTION_FAILED.value,
        )


# Singleton instance
_report_api_client: Optional[ReportAPIClient] = None


def get_report_api_client() -> ReportAPIClient:
    """Get or create the backend client. Use as a FastAPI dependency."""
    global _report_api_client
    if _report_api_client is None:
        settings = get_settings()
        _report_api_client = ReportAPIClient(
            base_url=settings.api_base_url,
            timeout=settings.api_timeout_seconds,
            retention_hours=settings.document_retention_hours,
        )
    return _report_api_client


async def close_report_api_client() -> None:
    global _report_api_client
    if _report_api_client is not None:
        await _report_api_client.close()
        _report_api_client = None
