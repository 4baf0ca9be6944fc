"""
Student Number Decoder

Reads the student number from a scanned sheet: every candidate bubble of
every slot is sampled, the darkest bubble per slot gives that slot's digit,
and the digits are joined in slot order. Blank slots, bad templates and
length mismatches come back as failed results, never as a guessed number.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .geometry import compute_scale, resolve_reference_size
from .image_io import PageImage, as_page_image
from .sampler import sample_candidate
from .settings import DEFAULT_SETTINGS, DecoderSettings
from .template import Candidate, Template, TemplateError, load_template

logger = logging.getLogger("edmcp_omrid.decoder")


class FailureReason(str, Enum):
    """Why a page did not yield a student number."""

    INVALID_TEMPLATE = "INVALID_TEMPLATE"
    UNREADABLE_SLOT = "UNREADABLE_SLOT"
    LENGTH_MISMATCH = "LENGTH_MISMATCH"
    # Only produced by callers around decode(), e.g. the batch decoder.
    CODEC_FAILURE = "CODEC_FAILURE"
    TIMEOUT = "TIMEOUT"


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding one page."""

    student_number: Optional[str] = None
    reason: Optional[FailureReason] = None
    message: str = ""
    slot_index: Optional[int] = None
    slot_darkness: Tuple[float, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.reason is None and self.student_number is not None

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        message: str,
        slot_index: Optional[int] = None,
        slot_darkness: Sequence[float] = (),
    ) -> "DecodeResult":
        return cls(
            reason=reason,
            message=message,
            slot_index=slot_index,
            slot_darkness=tuple(slot_darkness),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "student_number": self.student_number,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "slot_index": self.slot_index,
            "slot_darkness": [round(d, 2) for d in self.slot_darkness],
        }


def select_digit(
    scores: Iterable[Tuple[int, float]], blank_threshold: float
) -> Tuple[Optional[int], float]:
    """
    Pick the darkest candidate of a slot.

    Ties keep the candidate that came first. Returns (None, darkness) when
    even the darkest candidate is lighter than ``blank_threshold``.
    """
    best_digit: Optional[int] = None
    best_darkness = float("inf")
    for digit, darkness in scores:
        if darkness < best_darkness:
            best_digit = digit
            best_darkness = darkness

    if best_digit is None or best_darkness > blank_threshold:
        return None, best_darkness
    return best_digit, best_darkness


def assemble_digits(digits: Sequence[int], slot_count: int) -> Optional[str]:
    """Join slot digits in order; None if the length does not match."""
    student_number = "".join(str(d) for d in digits)
    if len(student_number) != slot_count:
        return None
    return student_number


def _sample_slots(
    page: PageImage,
    template: Template,
    settings: DecoderSettings,
    executor: Optional[Executor],
) -> Iterable[List[float]]:
    scale = compute_scale(
        resolve_reference_size(template, settings), page.width, page.height
    )
    sample = partial(sample_candidate, page, scale=scale, settings=settings)

    if executor is None:
        # Lazily, so a blank slot stops sampling of the remaining slots.
        return ([sample(c) for c in slot.candidates] for slot in template.slots)

    candidates: List[Candidate] = [c for slot in template.slots for c in slot.candidates]
    flat = list(executor.map(sample, candidates))
    per_slot: List[List[float]] = []
    offset = 0
    for slot in template.slots:
        per_slot.append(flat[offset : offset + len(slot.candidates)])
        offset += len(slot.candidates)
    return per_slot


def decode(
    image: Union[PageImage, np.ndarray],
    template: Union[Template, Mapping[str, Any], str],
    settings: Optional[DecoderSettings] = None,
    executor: Optional[Executor] = None,
) -> DecodeResult:
    """
    Decode the student number on one scanned page.

    Args:
        image: Page raster (PageImage or OpenCV array)
        template: Template, template dict, or template JSON
        settings: Calibration parameters (defaults when omitted)
        executor: Optional executor to sample candidates in parallel

    Returns:
        DecodeResult with the student number, or the failure reason

    Raises:
        CodecError: If ``image`` is not a usable pixel buffer
    """
    settings = settings or DEFAULT_SETTINGS

    try:
        template = load_template(template, settings.expected_slots)
    except TemplateError as e:
        logger.info("Student number template rejected: %s", e)
        return DecodeResult.failure(FailureReason.INVALID_TEMPLATE, str(e))

    page = as_page_image(image)

    digits: List[int] = []
    darkness_seen: List[float] = []
    for slot, darkness in zip(template.slots, _sample_slots(page, template, settings, executor)):
        digit, best = select_digit(
            zip((c.digit for c in slot.candidates), darkness), settings.blank_threshold
        )
        darkness_seen.append(best)
        if digit is None:
            logger.info(
                "Slot %d unreadable: darkest bubble %.2f above threshold %.2f",
                slot.index,
                best,
                settings.blank_threshold,
            )
            return DecodeResult.failure(
                FailureReason.UNREADABLE_SLOT,
                f"Slot {slot.index}: no filled bubble (darkest {best:.2f})",
                slot_index=slot.index,
                slot_darkness=darkness_seen,
            )
        logger.debug("Slot %d -> %d (darkness %.2f)", slot.index, digit, best)
        digits.append(digit)

    student_number = assemble_digits(digits, template.slot_count)
    if student_number is None:
        logger.info(
            "Assembled %d digits for a %d-slot template", len(digits), template.slot_count
        )
        return DecodeResult.failure(
            FailureReason.LENGTH_MISMATCH,
            f"Decoded {len(digits)} digits, expected {template.slot_count}",
            slot_darkness=darkness_seen,
        )

    return DecodeResult(student_number=student_number, slot_darkness=tuple(darkness_seen))
