"""
Bubble Sampler

Measures how dark a bubble is as the mean grayscale value inside a circle
(0 = filled black, 255 = empty white). Pure functions over a read-only
PageImage, safe to run from several threads at once.
"""

from __future__ import annotations

import math

import numpy as np

from .geometry import Scale, scale_candidate
from .image_io import PageImage
from .settings import DEFAULT_SETTINGS, DecoderSettings
from .template import Candidate

EMPTY_DARKNESS = 255.0


def bubble_darkness(
    image: PageImage,
    cx: float,
    cy: float,
    radius: float,
    settings: DecoderSettings = DEFAULT_SETTINGS,
) -> float:
    """
    Mean intensity inside a circle centred on (cx, cy), in image pixels.

    The circle is sampled from a box reaching ``ceil(radius * box_factor)``
    pixels to each side of the centre, clipped to the page. A box that clips
    to under 2 pixels, or a mask with no pixels, reads as empty (255).
    """
    size = max(2, math.ceil(radius * settings.box_factor))
    left = max(0, math.floor(cx - size))
    top = max(0, math.floor(cy - size))
    width = min(size * 2, image.width - left)
    height = min(size * 2, image.height - top)
    if width < 2 or height < 2:
        return EMPTY_DARKNESS

    region = image.gray_region(left, top, width, height)

    ys, xs = np.ogrid[0:height, 0:width]
    dx = xs - (cx - left)
    dy = ys - (cy - top)
    mask = dx * dx + dy * dy <= radius * radius

    pixels = region[mask]
    if pixels.size == 0:
        return EMPTY_DARKNESS
    return float(pixels.mean(dtype=np.float64))


def sample_candidate(
    image: PageImage,
    candidate: Candidate,
    scale: Scale,
    settings: DecoderSettings = DEFAULT_SETTINGS,
) -> float:
    """Darkness of a template candidate on this page."""
    cx, cy, radius = scale_candidate(candidate, scale, settings)
    return bubble_darkness(image, cx, cy, radius, settings)
