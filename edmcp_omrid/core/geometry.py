"""Mapping from template reference space to image pixel space."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from .settings import DEFAULT_SETTINGS, DecoderSettings
from .template import Candidate, Template


@dataclass(frozen=True)
class Scale:
    """Independent per-axis scale factors."""

    x: float
    y: float

    @property
    def radius(self) -> float:
        """Radius scale: the smaller axis, so a stretched page never oversamples."""
        return min(self.x, self.y)


def resolve_reference_size(
    template: Template, settings: DecoderSettings = DEFAULT_SETTINGS
) -> Tuple[float, float]:
    """
    Pick the reference width/height a template was authored against.

    The template's reference size wins over its page size; a side missing
    from the chosen hint falls back to the settings default.
    """
    hint = template.reference_size or template.page_size
    width = hint.width if hint is not None else None
    height = hint.height if hint is not None else None
    return (
        width or settings.default_reference_width,
        height or settings.default_reference_height,
    )


def compute_scale(
    reference_size: Tuple[float, float], image_width: int, image_height: int
) -> Scale:
    """Scale factors mapping reference coordinates onto the image."""
    ref_w, ref_h = reference_size
    return Scale(x=image_width / ref_w, y=image_height / ref_h)


def scale_candidate(
    candidate: Candidate, scale: Scale, settings: DecoderSettings = DEFAULT_SETTINGS
) -> Tuple[float, float, float]:
    """Return the candidate's (cx, cy, radius) in image pixels."""
    radius = candidate.radius or settings.default_radius
    return (
        candidate.x * scale.x,
        candidate.y * scale.y,
        max(settings.min_radius, radius * scale.radius),
    )
