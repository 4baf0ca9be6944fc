"""
Batch Student Number Decoding

Decodes the student number on many scanned pages using a worker pool.
Each page is independent: a blank sheet, an unreadable image or a page that
runs past its timeout is recorded for manual entry and the rest of the
batch carries on.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np

from .decoder import DecodeResult, FailureReason, decode
from .image_io import CodecError, PageImage, as_page_image, decode_image_bytes, pdf_bytes_to_pages
from .settings import DEFAULT_SETTINGS, DecoderSettings
from .template import Template, TemplateError, load_template

logger = logging.getLogger("edmcp_omrid.batch")

PageInput = Union[PageImage, np.ndarray, bytes]


class PageStatus(str, Enum):
    OK = "OK"
    ERROR = "ERROR"
    TIMEOUT = "TIMEOUT"


@dataclass
class PageResult:
    """Decode outcome for a single scanned page."""

    page_number: int
    student_number: Optional[str]
    status: PageStatus
    reason: Optional[FailureReason] = None
    message: str = ""

    @property
    def needs_manual_entry(self) -> bool:
        """Any page without a decoded number goes to manual entry or re-scan."""
        return self.status != PageStatus.OK

    @classmethod
    def from_decode(cls, page_number: int, result: DecodeResult) -> "PageResult":
        if result.ok:
            return cls(page_number, result.student_number, PageStatus.OK)
        return cls(page_number, None, PageStatus.ERROR, result.reason, result.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "page_number": self.page_number,
            "student_number": self.student_number,
            "status": self.status.value,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "needs_manual_entry": self.needs_manual_entry,
        }


def summarize(results: Iterable[PageResult]) -> Dict[str, Any]:
    """Counts for a finished batch."""
    results = list(results)
    manual = [r.page_number for r in results if r.needs_manual_entry]
    return {
        "num_pages": len(results),
        "num_decoded": len(results) - len(manual),
        "num_manual_entry": len(manual),
        "num_timeouts": sum(1 for r in results if r.status == PageStatus.TIMEOUT),
        "manual_entry_pages": manual,
    }


@dataclass
class _PageJob:
    """A submitted page and when its worker started on it."""

    page_number: int
    future: Optional[Future] = None
    started: threading.Event = field(default_factory=threading.Event)
    started_at: float = 0.0


class BatchDecoder:
    """Decodes student numbers for a stack of scanned pages."""

    def __init__(
        self,
        template: Union[Template, Mapping[str, Any], str],
        settings: Optional[DecoderSettings] = None,
    ):
        """
        Initialize the batch decoder.

        Args:
            template: Student number template (Template, dict, or JSON)
            settings: Decoder settings; max_workers and page_timeout apply here
        """
        self.settings = settings or DEFAULT_SETTINGS
        try:
            self.template: Union[Template, Mapping[str, Any], str] = load_template(
                template, self.settings.expected_slots
            )
        except TemplateError as e:
            # Kept as-is; every page then reports INVALID_TEMPLATE.
            logger.warning("Batch template rejected: %s", e)
            self.template = template

    def _decode_page(self, page_number: int, page: PageInput) -> PageResult:
        try:
            if isinstance(page, (bytes, bytearray)):
                image = decode_image_bytes(bytes(page))
            else:
                image = as_page_image(page)
        except CodecError as e:
            logger.warning("Page %d could not be decoded: %s", page_number, e)
            return PageResult(
                page_number, None, PageStatus.ERROR, FailureReason.CODEC_FAILURE, str(e)
            )

        return PageResult.from_decode(page_number, decode(image, self.template, self.settings))

    def _run_job(self, job: "_PageJob", page: PageInput) -> PageResult:
        job.started_at = time.monotonic()
        job.started.set()
        return self._decode_page(job.page_number, page)

    def _collect(self, job: "_PageJob", timeout: Optional[float]) -> PageResult:
        if timeout is None:
            return job.future.result()

        # The clock starts when a worker picks the page up, not while it queues.
        job.started.wait()
        remaining = max(0.0, timeout - (time.monotonic() - job.started_at))
        try:
            return job.future.result(timeout=remaining)
        except FuturesTimeoutError:
            logger.warning("Page %d timed out after %ss", job.page_number, timeout)
            return PageResult(
                job.page_number,
                None,
                PageStatus.TIMEOUT,
                FailureReason.TIMEOUT,
                f"Decoding exceeded {timeout}s",
            )

    def decode_pages(self, pages: Iterable[Tuple[int, PageInput]]) -> List[PageResult]:
        """
        Decode every page, in page order.

        A page that runs past ``page_timeout`` is reported as TIMEOUT and its
        worker is left to finish in the background; pages queued behind it
        still get their full timeout once they start.

        Args:
            pages: (page_number, image) pairs; images may be PageImage,
                   OpenCV arrays, or encoded image bytes

        Returns:
            One PageResult per page
        """
        timeout = self.settings.page_timeout
        pool = ThreadPoolExecutor(max_workers=self.settings.max_workers)
        try:
            jobs: List[_PageJob] = []
            for page_number, page in pages:
                job = _PageJob(page_number)
                job.future = pool.submit(self._run_job, job, page)
                jobs.append(job)
            results = [self._collect(job, timeout) for job in jobs]
        finally:
            # Timed-out pages may still be running; do not block on them.
            pool.shutdown(wait=False, cancel_futures=True)

        summary = summarize(results)
        logger.info(
            "Decoded %d of %d pages (%d for manual entry)",
            summary["num_decoded"],
            summary["num_pages"],
            summary["num_manual_entry"],
        )
        return results

    def decode_pdf(self, pdf_bytes: bytes, dpi: Optional[int] = None) -> List[PageResult]:
        """
        Render a scanned PDF and decode every page.

        Raises:
            CodecError: If the PDF itself cannot be rendered
        """
        return self.decode_pages(pdf_bytes_to_pages(pdf_bytes, dpi or self.settings.pdf_dpi))
