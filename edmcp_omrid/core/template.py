"""
Student Number Template

Typed representation of the student number bubble grid and the single
validating step that builds it from stored template JSON.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

DIGITS = tuple(range(10))


class TemplateError(ValueError):
    """Template is missing, malformed, or has an unexpected slot count."""

    pass


@dataclass(frozen=True)
class SizeHint:
    """Width/height pair as authored; either side may be absent."""

    width: Optional[float] = None
    height: Optional[float] = None


@dataclass(frozen=True)
class Candidate:
    """A single fillable mark for one digit value."""

    digit: int
    x: float
    y: float
    radius: Optional[float] = None


@dataclass(frozen=True)
class Slot:
    """One digit position of the student number with its ten candidates."""

    index: int
    candidates: Tuple[Candidate, ...]


@dataclass(frozen=True)
class Template:
    """Complete student number grid in reference coordinates."""

    slots: Tuple[Slot, ...]
    reference_size: Optional[SizeHint] = None
    page_size: Optional[SizeHint] = None

    @property
    def slot_count(self) -> int:
        """Number of digits the decoded student number must have."""
        return len(self.slots)

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the canonical template JSON shape."""
        data: Dict[str, Any] = {
            "slots": [
                {
                    "candidates": [
                        _drop_none(
                            {"digit": c.digit, "x": c.x, "y": c.y, "radius": c.radius}
                        )
                        for c in slot.candidates
                    ]
                }
                for slot in self.slots
            ]
        }
        if self.reference_size is not None:
            data["referenceSize"] = _drop_none(
                {"width": self.reference_size.width, "height": self.reference_size.height}
            )
        if self.page_size is not None:
            data["pageSize"] = _drop_none(
                {"width": self.page_size.width, "height": self.page_size.height}
            )
        return data


def _drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coordinate(value: Any, where: str) -> float:
    if not _is_number(value) or not math.isfinite(value):
        raise TemplateError(f"{where}: expected a finite number, got {value!r}")
    return float(value)


def _parse_digit(value: Any, where: str) -> int:
    if isinstance(value, str) and len(value) == 1 and value.isdigit():
        return int(value)
    if _is_number(value) and float(value).is_integer() and int(value) in DIGITS:
        return int(value)
    raise TemplateError(f"{where}: digit must be 0-9, got {value!r}")


def _parse_size(raw: Any, where: str) -> Optional[SizeHint]:
    """Parse a width/height object; non-positive sides count as absent."""
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise TemplateError(f"{where}: expected an object with width/height")

    sides: List[Optional[float]] = []
    for key in ("width", "height"):
        value = raw.get(key)
        if value is None:
            sides.append(None)
            continue
        number = _coordinate(value, f"{where}.{key}")
        sides.append(number if number > 0 else None)

    return SizeHint(width=sides[0], height=sides[1])


def _parse_candidate(raw: Any, radius_key: str, where: str) -> Candidate:
    if not isinstance(raw, Mapping):
        raise TemplateError(f"{where}: expected an object")
    for key in ("digit", "x", "y"):
        if key not in raw:
            raise TemplateError(f"{where}: missing '{key}'")

    radius: Optional[float] = None
    raw_radius = raw.get(radius_key)
    if raw_radius is not None:
        radius = _coordinate(raw_radius, f"{where}.{radius_key}")
        if radius < 0:
            raise TemplateError(f"{where}: radius cannot be negative")
        # A zero radius means "use the default", as stored templates do.
        radius = radius or None

    return Candidate(
        digit=_parse_digit(raw["digit"], where),
        x=_coordinate(raw["x"], f"{where}.x"),
        y=_coordinate(raw["y"], f"{where}.y"),
        radius=radius,
    )


def _parse_slot(raw: Any, index: int, candidates_key: str, radius_key: str) -> Slot:
    where = f"slot {index}"
    if not isinstance(raw, Mapping):
        raise TemplateError(f"{where}: expected an object")
    items = raw.get(candidates_key)
    if not isinstance(items, list):
        raise TemplateError(f"{where}: missing '{candidates_key}' list")
    if len(items) != len(DIGITS):
        raise TemplateError(
            f"{where}: expected {len(DIGITS)} candidates, got {len(items)}"
        )

    candidates = tuple(
        _parse_candidate(item, radius_key, f"{where} candidate {i}")
        for i, item in enumerate(items)
    )
    if sorted(c.digit for c in candidates) != list(DIGITS):
        raise TemplateError(f"{where}: each digit 0-9 must appear exactly once")

    return Slot(index=index, candidates=candidates)


def load_template(
    data: Union[str, bytes, Mapping[str, Any], Template],
    expected_slots: Optional[int] = 12,
) -> Template:
    """
    Validate stored template JSON and build a Template.

    Accepts the canonical shape (``slots`` / ``candidates`` / ``radius`` with
    optional ``referenceSize`` and ``pageSize``) and the exam template shape
    (``studentNumberOMR.hanes`` / ``digits`` / ``r`` with ``templateSize``).

    Args:
        data: Template dict, JSON string, or an existing Template
        expected_slots: Required number of slots, or None for any non-zero count

    Returns:
        Template instance

    Raises:
        TemplateError: If the template is missing, malformed, or the wrong size
    """
    if isinstance(data, Template):
        template = data
    else:
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise TemplateError(f"Template is not valid JSON: {e}") from e
        if not isinstance(data, Mapping):
            raise TemplateError("Template must be a JSON object")

        if "studentNumberOMR" in data:
            omr = data["studentNumberOMR"]
            if not isinstance(omr, Mapping):
                raise TemplateError("studentNumberOMR must be an object")
            slots_raw = omr.get("hanes")
            slots_key, candidates_key, radius_key = "hanes", "digits", "r"
            reference_raw = omr.get("referenceSize")
            page_raw = data.get("templateSize")
        else:
            slots_raw = data.get("slots")
            slots_key, candidates_key, radius_key = "slots", "candidates", "radius"
            reference_raw = data.get("referenceSize")
            page_raw = data.get("pageSize")

        if not isinstance(slots_raw, list) or not slots_raw:
            raise TemplateError(f"Template has no '{slots_key}' list")

        template = Template(
            slots=tuple(
                _parse_slot(item, i, candidates_key, radius_key)
                for i, item in enumerate(slots_raw)
            ),
            reference_size=_parse_size(reference_raw, "referenceSize"),
            page_size=_parse_size(page_raw, "pageSize"),
        )

    if expected_slots is not None and template.slot_count != expected_slots:
        raise TemplateError(
            f"Expected {expected_slots} slots, got {template.slot_count}"
        )
    return template
