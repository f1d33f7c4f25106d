"""
Document Error Taxonomy
=======================

Maps backend failures to user-facing messages. The same code-to-message
table serves every document action (PDF download, email delivery, letter
download); only the transport differs.

Kinds:
- payment_required: HTTP 402, a navigational gate rather than a failure
- not_found: HTTP 404, generated documents expire after the retention window
- server: 5xx or a generation failure code, retry is worthwhile
- invalid: the request itself was rejected (bad email address, ...)
- network: the request never produced an HTTP response
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes returned by the analysis backend in `{code, message}` bodies"""
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_DATE = "INVALID_DATE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    CASE_NOT_FOUND = "CASE_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    ACCESS_DENIED = "ACCESS_DENIED"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    LEASE_EXTRACTION_FAILED = "LEASE_EXTRACTION_FAILED"
    OCR_TIMEOUT = "OCR_TIMEOUT"
    PDF_GENERATION_FAILED = "PDF_GENERATION_FAILED"
    REPORT_GENERATION_FAILED = "REPORT_GENERATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ErrorKind(str, Enum):
    PAYMENT_REQUIRED = "payment_required"
    NOT_FOUND = "not_found"
    SERVER = "server"
    INVALID = "invalid"
    NETWORK = "network"
    UNEXPECTED = "unexpected"


ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.INVALID_INPUT: "The information provided is invalid. Please review your entries and try again.",
    ErrorCode.INVALID_EMAIL: "Please provide a valid email address.",
    ErrorCode.INVALID_DATE: "Please provide a valid date in YYYY-MM-DD format.",
    ErrorCode.INVALID_AMOUNT: "Please provide a valid dollar amount.",
    ErrorCode.CASE_NOT_FOUND: "Case not found. The case may have been deleted or the link may be incorrect.",
    ErrorCode.SESSION_NOT_FOUND: "Session not found or expired. Please try again.",
    ErrorCode.ACCESS_DENIED: "Access denied. You do not have permission to view this resource.",
    ErrorCode.PAYMENT_REQUIRED: "Payment is required before accessing this resource. Please complete payment to continue.",
    ErrorCode.LEASE_EXTRACTION_FAILED: (
        "Unable to extract text from your lease. The file may be corrupted, password-protected, "
        "or scanned at very low resolution. Please try uploading a clearer image or a different file format."
    ),
    ErrorCode.OCR_TIMEOUT: (
        "Lease text extraction timed out. The file may be too large or complex. "
        "Please try a smaller file or contact support."
    ),
    ErrorCode.PDF_GENERATION_FAILED: "Document generation is temporarily unavailable. Please try again in a few moments.",
    ErrorCode.REPORT_GENERATION_FAILED: "Report generation failed. Please try again later.",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. Please try again later.",
    ErrorCode.SERVICE_UNAVAILABLE: "The service is temporarily unavailable. Please try again in a few moments.",
}

_CODE_KINDS: Dict[ErrorCode, ErrorKind] = {
    ErrorCode.INVALID_INPUT: ErrorKind.INVALID,
    ErrorCode.INVALID_EMAIL: ErrorKind.INVALID,
    ErrorCode.INVALID_DATE: ErrorKind.INVALID,
    ErrorCode.INVALID_AMOUNT: ErrorKind.INVALID,
    ErrorCode.CASE_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.SESSION_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.PAYMENT_REQUIRED: ErrorKind.PAYMENT_REQUIRED,
}

PAYMENT_REQUIRED_MESSAGE = "Payment required. Please complete payment to download your report."
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."
UNEXPECTED_ERROR_MESSAGE = "Download failed unexpectedly. Please try again."


class DocumentError(Exception):
    """
    Raised by the backend client when a document request fails.

    Controllers catch it and turn it into observable state; routers turn
    it into an HTTP response. It never escapes to the event loop.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status
        self.code = code

    @property
    def retryable(self) -> bool:
        """Payment and expiry need the user to go somewhere else first."""
        return self.kind in (ErrorKind.SERVER, ErrorKind.NETWORK, ErrorKind.UNEXPECTED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status": self.status,
            "code": self.code,
            "retryable": self.retryable,
        }


def not_found_message(retention_hours: int) -> str:
    return f"Report not found. It may have expired (reports are kept for {retention_hours} hours)."


def message_for_code(code: Optional[str]) -> Optional[str]:
    """Look up the user-facing message for a backend error code, None if unknown."""
    if not code:
        return None
    try:
        return ERROR_MESSAGES[ErrorCode(code)]
    except ValueError:
        return None


def classify_http_error(
    status: int,
    body: Optional[Dict[str, Any]] = None,
    retention_hours: int = 72,
    use_body_message: bool = False,
) -> DocumentError:
    """
    Classify a non-OK backend response.

    402 and 404 are decided by status alone. Otherwise a known `code` in the
    body wins, then (with `use_body_message`) the body's own `message`,
    then a generic status message.
    """
    body = body if isinstance(body, dict) else {}
    code = body.get("code") if isinstance(body.get("code"), str) else None

    if status == 402:
        return DocumentError(ErrorKind.PAYMENT_REQUIRED, PAYMENT_REQUIRED_MESSAGE, status, code)
    if status == 404:
        return DocumentError(ErrorKind.NOT_FOUND, not_found_message(retention_hours), status, code)

    coded_message = message_for_code(code)
    if coded_message:
        kind = _CODE_KINDS.get(ErrorCode(code), ErrorKind.SERVER)
        return DocumentError(kind, coded_message, status, code)

    kind = ErrorKind.INVALID if 400 <= status < 500 else ErrorKind.SERVER
    message = body.get("message") if use_body_message else None
    if not isinstance(message, str) or not message:
        message = f"Download failed ({status}). Please try again."
    return DocumentError(kind, message, status, code)


_KIND_HTTP_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.PAYMENT_REQUIRED: 402,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID: 400,
    ErrorKind.SERVER: 502,
    ErrorKind.NETWORK: 503,
    ErrorKind.UNEXPECTED: 500,
}


def http_status_for(error: DocumentError) -> int:
    """Status this service answers with; upstream 4xx statuses pass through."""
    if error.kind is ErrorKind.INVALID and error.status and 400 <= error.status < 500:
        return error.status
    return _KIND_HTTP_STATUS[error.kind]
