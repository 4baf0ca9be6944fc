"""
Decoder Settings

Named, injectable calibration constants for the student number decoder.
The box factor and blank threshold have no empirical derivation yet and are
expected to be recalibrated against real scans; keep them here rather than
in the sampling code.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Dict, Optional

from edmcp_omrid.config import get_env, load_edmcp_config


@dataclass(frozen=True)
class DecoderSettings:
    """Calibration and runtime parameters for decoding."""

    box_factor: float = 2.5
    blank_threshold: float = 240.0
    min_radius: float = 2.0
    default_radius: float = 10.0
    default_reference_width: float = 1654.0
    default_reference_height: float = 2339.0
    expected_slots: Optional[int] = 12
    max_workers: int = 4
    page_timeout: Optional[float] = 10.0
    pdf_dpi: int = 200

    def __post_init__(self) -> None:
        if self.box_factor <= 0:
            raise ValueError("box_factor must be positive.")
        if not 0.0 <= self.blank_threshold <= 255.0:
            raise ValueError("blank_threshold must be within 0-255.")
        if self.min_radius <= 0 or self.default_radius <= 0:
            raise ValueError("Radii must be positive.")
        if self.default_reference_width <= 0 or self.default_reference_height <= 0:
            raise ValueError("Default reference size must be positive.")
        if self.expected_slots is not None and self.expected_slots <= 0:
            raise ValueError("expected_slots must be positive or None.")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be positive.")
        if self.page_timeout is not None and self.page_timeout <= 0:
            raise ValueError("page_timeout must be positive or None.")
        if self.pdf_dpi <= 0:
            raise ValueError("pdf_dpi must be positive.")

    def with_overrides(self, **overrides: Any) -> "DecoderSettings":
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_env(cls, load_dotenv_file: bool = True) -> "DecoderSettings":
        """
        Build settings from OMRID_* environment variables.

        Unset variables keep their defaults. For OMRID_EXPECTED_SLOTS and
        OMRID_PAGE_TIMEOUT a value of 0, or an empty value, disables the check.

        Args:
            load_dotenv_file: Load the shared .env file before reading

        Returns:
            DecoderSettings instance

        Raises:
            ValueError: If a variable cannot be parsed
        """
        if load_dotenv_file:
            load_edmcp_config()

        values: Dict[str, Any] = {}
        for field_name, env_key, parse in _ENV_FIELDS:
            if parse in _DISABLE_ON_BLANK:
                # Present but empty switches the check off, same as 0.
                raw = os.environ.get(env_key)
            else:
                raw = get_env(env_key)
            if raw is None:
                continue
            try:
                values[field_name] = parse(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {env_key}: {raw!r}") from e

        return cls(**values)


def _optional_int(raw: str) -> Optional[int]:
    value = int(raw) if raw.strip() else 0
    return value or None


def _optional_float(raw: str) -> Optional[float]:
    value = float(raw) if raw.strip() else 0.0
    return value or None


_ENV_FIELDS: tuple[tuple[str, str, Callable[[str], Any]], ...] = (
    ("box_factor", "OMRID_BOX_FACTOR", float),
    ("blank_threshold", "OMRID_BLANK_THRESHOLD", float),
    ("min_radius", "OMRID_MIN_RADIUS", float),
    ("default_radius", "OMRID_DEFAULT_RADIUS", float),
    ("default_reference_width", "OMRID_REFERENCE_WIDTH", float),
    ("default_reference_height", "OMRID_REFERENCE_HEIGHT", float),
    ("expected_slots", "OMRID_EXPECTED_SLOTS", _optional_int),
    ("max_workers", "OMRID_MAX_WORKERS", int),
    ("page_timeout", "OMRID_PAGE_TIMEOUT", _optional_float),
    ("pdf_dpi", "OMRID_PDF_DPI", int),
)

_DISABLE_ON_BLANK = (_optional_int, _optional_float)

DEFAULT_SETTINGS = DecoderSettings()
