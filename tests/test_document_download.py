"""
Tests for the PDF download controllers, the report emailer and the
backend client's error classification.
"""
import gzip
import json

import httpx
import pytest

from depositback.core.errors import (
    NETWORK_ERROR_MESSAGE,
    PAYMENT_REQUIRED_MESSAGE,
    ErrorKind,
    classify_http_error,
    http_status_for,
)
from depositback.services.document_download import (
    NO_CASE_ID_MESSAGE,
    LetterDownload,
    PdfDownload,
    ReportEmailer,
    letter_filename,
    percent,
    report_filename,
)

CASE_ID = "abcdef1234567890"
PDF_PATH = f"/api/documents/{CASE_ID}"
PDF_BYTES = b"%PDF-1.7\n" + b"x" * 91


# ============================================================================
# ERROR CLASSIFICATION
# ============================================================================

class TestClassifyHttpError:

    def test_payment_required(self):
        error = classify_http_error(402)
        assert error.kind is ErrorKind.PAYMENT_REQUIRED
        assert error.message == PAYMENT_REQUIRED_MESSAGE
        assert not error.retryable

    def test_not_found_mentions_retention(self):
        error = classify_http_error(404, retention_hours=72)
        assert error.kind is ErrorKind.NOT_FOUND
        assert "72 hours" in error.message
        assert not error.retryable

    def test_generic_status(self):
        error = classify_http_error(500)
        assert error.message == "Download failed (500). Please try again."
        assert error.retryable
        assert http_status_for(error) == 502

    def test_known_code_wins(self):
        error = classify_http_error(500, {"code": "PDF_GENERATION_FAILED", "message": "stack trace"})
        assert error.message.startswith("Document generation is temporarily unavailable")
        assert error.code == "PDF_GENERATION_FAILED"

    def test_invalid_email_code(self):
        error = classify_http_error(400, {"code": "INVALID_EMAIL"})
        assert error.kind is ErrorKind.INVALID
        assert http_status_for(error) == 400

    def test_body_message_only_when_asked(self):
        assert classify_http_error(409, {"message": "Letter locked"}).message.startswith("Download failed (409)")
        assert classify_http_error(409, {"message": "Letter locked"}, use_body_message=True).message == "Letter locked"


# ============================================================================
# REPORT PDF
# ============================================================================

class TestPdfDownload:

    def test_filenames(self):
        assert report_filename(CASE_ID) == "deposit-defender-report-abcdef12.pdf"
        assert letter_filename(CASE_ID) == "demand-letter-abcdef12.pdf"

    def test_percent_rounds_half_up(self):
        assert percent(1, 200) == 1
        assert percent(50, 100) == 50
        assert percent(2, 3) == 67

    @pytest.mark.anyio
    async def test_successful_download(self, api, backend, tmp_path):
        backend.add("GET", PDF_PATH, httpx.Response(200, content=PDF_BYTES, headers={"content-type": "application/pdf"}))
        controller = PdfDownload(api, tmp_path)

        path = await controller.download(CASE_ID)

        assert path == tmp_path / "deposit-defender-report-abcdef12.pdf"
        assert path.read_bytes() == PDF_BYTES
        assert controller.progress == 100
        assert controller.error is None
        assert controller.loading is False

    @pytest.mark.anyio
    async def test_progress_is_monotonic(self, api, backend, tmp_path):
        controller = PdfDownload(api, tmp_path)
        seen = []

        async def chunks():
            for i in range(4):
                seen.append(controller.progress)
                yield b"x" * 25

        backend.add("GET", PDF_PATH, httpx.Response(200, content=chunks(), headers={"Content-Length": "100"}))
        await controller.download(CASE_ID)

        seen.append(controller.progress)
        assert seen == sorted(seen)
        assert seen[-1] == 100
        assert 0 < seen[2] < 100

    @pytest.mark.anyio
    async def test_progress_counts_compressed_bytes(self, api, backend, tmp_path):
        body = PDF_BYTES * 2000
        compressed = gzip.compress(body)
        controller = PdfDownload(api, tmp_path)
        seen = []

        async def chunks():
            for start in range(0, len(compressed), 64):
                seen.append(controller.progress)
                yield compressed[start:start + 64]

        backend.add("GET", PDF_PATH, httpx.Response(200, content=chunks(), headers={
            "Content-Encoding": "gzip",
            "Content-Length": str(len(compressed)),
        }))
        path = await controller.download(CASE_ID)

        assert path.read_bytes() == body
        assert max(seen) <= 100
        assert seen == sorted(seen)
        assert controller.progress == 100

    @pytest.mark.anyio
    async def test_not_found_keeps_progress_at_zero(self, api, backend, tmp_path):
        backend.add("GET", PDF_PATH, httpx.Response(404))
        controller = PdfDownload(api, tmp_path)

        assert await controller.download(CASE_ID) is None
        assert controller.error.kind is ErrorKind.NOT_FOUND
        assert "72 hours" in controller.error.message
        assert controller.progress == 0
        assert controller.loading is False
        assert not list(tmp_path.glob("*.pdf"))
        state = controller.to_dict()
        assert state["error"]["kind"] == "not_found"
        assert state["error"]["retryable"] is False
        assert state["path"] is None

    @pytest.mark.anyio
    async def test_payment_required(self, api, backend, tmp_path):
        backend.add("GET", PDF_PATH, httpx.Response(402, json={"code": "PAYMENT_REQUIRED"}))
        controller = PdfDownload(api, tmp_path)
        await controller.download(CASE_ID)
        assert controller.error.message == PAYMENT_REQUIRED_MESSAGE

    @pytest.mark.anyio
    async def test_network_error(self, api, backend, tmp_path):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend.add("GET", PDF_PATH, refuse)
        controller = PdfDownload(api, tmp_path)
        await controller.download(CASE_ID)
        assert controller.error.kind is ErrorKind.NETWORK
        assert controller.error.message == NETWORK_ERROR_MESSAGE
        assert controller.error.retryable

    @pytest.mark.anyio
    async def test_missing_case_id_makes_no_request(self, api, backend, tmp_path):
        controller = PdfDownload(api, tmp_path)
        assert await controller.download("") is None
        assert controller.error.message == NO_CASE_ID_MESSAGE
        assert backend.requests == []

    @pytest.mark.anyio
    async def test_retry_clears_error_and_downloads_again(self, api, backend, tmp_path):
        backend.add(
            "GET",
            PDF_PATH,
            httpx.Response(500),
            httpx.Response(200, content=PDF_BYTES),
        )
        controller = PdfDownload(api, tmp_path)

        await controller.download(CASE_ID)
        assert controller.error.message == "Download failed (500). Please try again."

        path = await controller.retry()
        assert controller.error is None
        assert path.read_bytes() == PDF_BYTES
        assert len(backend.calls("GET", PDF_PATH)) == 2

    @pytest.mark.anyio
    async def test_retry_after_not_found(self, api, backend, tmp_path):
        backend.add(
            "GET",
            PDF_PATH,
            httpx.Response(404),
            httpx.Response(200, content=PDF_BYTES),
        )
        controller = PdfDownload(api, tmp_path)

        await controller.download(CASE_ID)
        assert controller.error.kind is ErrorKind.NOT_FOUND
        assert controller.progress == 0

        path = await controller.retry()
        assert controller.error is None
        assert controller.progress == 100
        assert path.read_bytes() == PDF_BYTES
        assert len(backend.calls("GET", PDF_PATH)) == 2
        assert controller.to_dict()["path"] == str(path)

    @pytest.mark.anyio
    async def test_forwards_session_cookie(self, api, backend, tmp_path):
        backend.add("GET", PDF_PATH, httpx.Response(200, content=PDF_BYTES))
        await PdfDownload(api, tmp_path, cookie="session=abc").download(CASE_ID)
        assert backend.requests[0].headers["cookie"] == "session=abc"


# ============================================================================
# DEMAND LETTER PDF
# ============================================================================

class TestLetterDownload:

    @pytest.mark.anyio
    async def test_posts_fields(self, api, backend, tmp_path):
        backend.add("POST", f"{PDF_PATH}/letter", httpx.Response(200, content=PDF_BYTES))
        controller = LetterDownload(api, tmp_path)

        path = await controller.download(CASE_ID, {"tenantName": "Jordan Rivera"})

        assert path.name == "demand-letter-abcdef12.pdf"
        request = backend.requests[0]
        assert json.loads(request.read()) == {"fields": {"tenantName": "Jordan Rivera"}}

    @pytest.mark.anyio
    async def test_backend_message_shown(self, api, backend, tmp_path):
        backend.add("POST", f"{PDF_PATH}/letter", httpx.Response(400, json={"message": "Tenant address required"}))
        controller = LetterDownload(api, tmp_path)
        await controller.download(CASE_ID, {})
        assert controller.error.message == "Tenant address required"


# ============================================================================
# EMAIL
# ============================================================================

class TestReportEmailer:

    @pytest.mark.anyio
    async def test_sends_trimmed_address(self, api, backend):
        backend.add("POST", f"{PDF_PATH}/email", httpx.Response(200, json={"status": "ok"}))
        emailer = ReportEmailer(api)
        assert await emailer.send(CASE_ID, "  jordan@example.com ")
        assert emailer.status == "sent"
        assert emailer.to_dict() == {"status": "sent", "error": None}
        assert json.loads(backend.requests[0].read()) == {"email": "jordan@example.com"}

    @pytest.mark.anyio
    async def test_invalid_address_without_request(self, api, backend):
        emailer = ReportEmailer(api)
        assert not await emailer.send(CASE_ID, "not-an-email")
        assert emailer.error.code == "INVALID_EMAIL"
        assert emailer.to_dict()["error"]["kind"] == "invalid"
        assert backend.requests == []

    @pytest.mark.anyio
    @pytest.mark.parametrize("code,prefix", [
        ("OCR_TIMEOUT", "Lease text extraction timed out"),
        ("PDF_GENERATION_FAILED", "Document generation is temporarily unavailable"),
        ("INVALID_EMAIL", "Please provide a valid email address"),
    ])
    async def test_error_codes_map_to_messages(self, api, backend, code, prefix):
        status = 400 if code == "INVALID_EMAIL" else 503
        backend.add("POST", f"{PDF_PATH}/email", httpx.Response(status, json={"code": code, "message": "raw"}))
        emailer = ReportEmailer(api)
        assert not await emailer.send(CASE_ID, "jordan@example.com")
        assert emailer.status == "error"
        assert emailer.error.message.startswith(prefix)
