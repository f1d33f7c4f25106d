"""
Document Download Controllers
=============================

Progress-tracked downloads of generated documents (report PDF, demand
letter PDF) and the report email action.

Each controller exposes observable state (`loading`, `error`, `progress`)
and never raises: every failure, from a 402 payment gate to a dropped
connection mid-stream, ends up in `error` as a DocumentError.

Bytes are streamed chunk by chunk into a temporary file beside the target,
then moved into place in one step. The temporary name is released a short
moment after the hand-off so a reader that already opened it can finish.
"""

import asyncio
import logging
import math
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from depositback.core.errors import (
    ERROR_MESSAGES,
    UNEXPECTED_ERROR_MESSAGE,
    DocumentError,
    ErrorCode,
    ErrorKind,
)
from depositback.services.report_api import ReportAPIClient

logger = logging.getLogger(__name__)

NO_CASE_ID_MESSAGE = "No case ID provided."


def short_id(case_id: str) -> str:
    return case_id[:8]


def report_filename(case_id: str) -> str:
    return f"deposit-defender-report-{short_id(case_id)}.pdf"


def letter_filename(case_id: str) -> str:
    return f"demand-letter-{short_id(case_id)}.pdf"


def percent(loaded: int, total: int) -> int:
    """Half-up rounding, so 50.5% shows as 51."""
    return int(math.floor(loaded / total * 100 + 0.5))


def _release(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.debug("Could not release temp file %s: %s", path, e)


class _StreamedDownload:
    """Shared stream-to-disk machinery for the PDF controllers"""

    def __init__(
        self,
        api: ReportAPIClient,
        download_dir: Path,
        revoke_delay_ms: int = 150,
        cookie: Optional[str] = None,
    ):
        self.api = api
        self.download_dir = Path(download_dir)
        self.revoke_delay_ms = revoke_delay_ms
        self.cookie = cookie

        self.loading = False
        self.error: Optional[DocumentError] = None
        self.progress = 0
        self.path: Optional[Path] = None

    def reset(self) -> None:
        self.error = None
        self.progress = 0

    def _schedule_release(self, temp_path: Path) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _release(temp_path)
            return
        loop.call_later(self.revoke_delay_ms / 1000, _release, temp_path)

    async def _save(self, stream, filename: str) -> Optional[Path]:
        """Run one streamed download into `filename`. Returns the saved path or None."""
        self.loading = True
        self.reset()
        self.path = None
        temp_path: Optional[Path] = None

        try:
            self.download_dir.mkdir(parents=True, exist_ok=True)
            async with stream as response:
                total = int(response.headers.get("content-length") or 0)
                loaded = 0
                fd, name = tempfile.mkstemp(prefix=".download-", suffix=".part", dir=self.download_dir)
                temp_path = Path(name)
                with os.fdopen(fd, "wb") as out:
                    async for chunk in response.aiter_bytes():
                        out.write(chunk)
                        loaded += len(chunk)
                        if total:
                            # Content-Length counts wire bytes, which differ from decoded ones under gzip
                            self.progress = min(100, percent(response.num_bytes_downloaded, total))

            target = self.download_dir / filename
            os.replace(temp_path, target)
            self.progress = 100
            self.path = target
            logger.info("Saved %s (%d bytes)", target, loaded)
            return target
        except DocumentError as e:
            self.error = e
            logger.info("Download of %s failed: %s", filename, e.message)
        except (httpx.HTTPError, OSError) as e:
            self.error = DocumentError(ErrorKind.UNEXPECTED, UNEXPECTED_ERROR_MESSAGE)
            logger.warning("Download of %s failed unexpectedly: %s", filename, e)
        finally:
            self.loading = False
            if temp_path is not None:
                self._schedule_release(temp_path)
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "loading": self.loading,
            "progress": self.progress,
            "error": self.error.to_dict() if self.error else None,
            "path": str(self.path) if self.path else None,
        }


class PdfDownload(_StreamedDownload):
    """
    Report PDF download with progress and retry.

    A 404 means the PDF outlived the retention window; it is terminal and
    progress stays at 0.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.case_id: Optional[str] = None

    async def download(self, case_id: Optional[str]) -> Optional[Path]:
        self.case_id = case_id
        if not case_id:
            self.reset()
            self.error = DocumentError(ErrorKind.INVALID, NO_CASE_ID_MESSAGE)
            return None
        return await self._save(self.api.report_pdf(case_id, cookie=self.cookie), report_filename(case_id))

    async def retry(self) -> Optional[Path]:
        """Clear the error and progress, then download the same case again."""
        self.reset()
        return await self.download(self.case_id)


class LetterDownload(_StreamedDownload):
    """Demand letter PDF rendered by the backend from the edited letter fields"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.case_id: Optional[str] = None
        self.fields: Dict[str, Any] = {}

    async def download(self, case_id: Optional[str], fields: Dict[str, Any]) -> Optional[Path]:
        self.case_id = case_id
        self.fields = dict(fields)
        if not case_id:
            self.reset()
            self.error = DocumentError(ErrorKind.INVALID, NO_CASE_ID_MESSAGE)
            return None
        return await self._save(
            self.api.letter_pdf(case_id, self.fields, cookie=self.cookie),
            letter_filename(case_id),
        )

    async def retry(self) -> Optional[Path]:
        self.reset()
        return await self.download(self.case_id, self.fields)


class ReportEmailer:
    """Sends the report PDF to an email address; state is idle/loading/sent/error."""

    def __init__(self, api: ReportAPIClient, cookie: Optional[str] = None):
        self.api = api
        self.cookie = cookie
        self.status = "idle"
        self.error: Optional[DocumentError] = None

    async def send(self, case_id: Optional[str], email: Optional[str]) -> bool:
        self.error = None
        address = (email or "").strip()
        if not case_id:
            self.status = "error"
            self.error = DocumentError(ErrorKind.INVALID, NO_CASE_ID_MESSAGE)
            return False
        if not address or "@" not in address:
            self.status = "error"
            self.error = DocumentError(
                ErrorKind.INVALID,
                ERROR_MESSAGES[ErrorCode.INVALID_EMAIL],
                code=ErrorCode.INVALID_EMAIL.value,
            )
            return False

        self.status = "loading"
        try:
            await self.api.post_email(case_id, address, cookie=self.cookie)
        except DocumentError as e:
            self.status = "error"
            self.error = e
            logger.info("Report email for case %s failed: %s", case_id, e.code or e.kind.value)
            return False

        self.status = "sent"
        logger.info("Report for case %s emailed", case_id)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "error": self.error.to_dict() if self.error else None,
        }
