"""Pytest configuration and fixtures for edmcp-omrid tests."""

import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

from edmcp_omrid.core import DecoderSettings

REFERENCE_WIDTH = 400
REFERENCE_HEIGHT = 300
BUBBLE_RADIUS = 8
STUDENT_NUMBER = "704918253617"


def make_template_dict(num_slots=12, reference=True, radius=BUBBLE_RADIUS):
    """Template with one column per slot and digits 0-9 top to bottom."""
    slots = []
    for i in range(num_slots):
        candidates = []
        for digit in range(10):
            candidate = {"digit": digit, "x": 20 + 30 * i, "y": 20 + 25 * digit}
            if radius is not None:
                candidate["radius"] = radius
            candidates.append(candidate)
        slots.append({"candidates": candidates})

    template = {"slots": slots}
    if reference:
        template["referenceSize"] = {"width": REFERENCE_WIDTH, "height": REFERENCE_HEIGHT}
    return template


def render_sheet(
    template,
    number,
    width=REFERENCE_WIDTH,
    height=REFERENCE_HEIGHT,
    background=255,
    ink=0,
    channels=3,
):
    """
    Draw a sheet with the bubbles for ``number`` filled in.

    ``number`` may be shorter than the slot count, or contain ``None``
    entries, to leave slots blank.
    """
    shape = (height, width, channels) if channels > 1 else (height, width)
    image = np.full(shape, background, dtype=np.uint8)
    ref_w = template["referenceSize"]["width"]
    ref_h = template["referenceSize"]["height"]
    sx, sy = width / ref_w, height / ref_h
    color = (ink,) * channels if channels > 1 else ink

    for slot, digit in zip(template["slots"], number):
        if digit is None:
            continue
        for candidate in slot["candidates"]:
            if candidate["digit"] != int(digit):
                continue
            center = (int(round(candidate["x"] * sx)), int(round(candidate["y"] * sy)))
            radius = int(round(candidate.get("radius", BUBBLE_RADIUS) * min(sx, sy))) + 2
            cv2.circle(image, center, radius, color, -1)
    return image


@pytest.fixture
def template_dict():
    """Twelve-slot template in a 400x300 reference space."""
    return make_template_dict()


@pytest.fixture
def filled_sheet(template_dict):
    """Reference-sized sheet with STUDENT_NUMBER filled in."""
    return render_sheet(template_dict, STUDENT_NUMBER)


@pytest.fixture
def settings():
    """Default settings, independent of any local .env."""
    return DecoderSettings()


@pytest.fixture
def reset_server_state():
    """Reset server global state so tests use default settings."""
    # Add parent directory to path so we can import server module
    sys.path.insert(0, str(Path(__file__).parent.parent))

    import server

    server._settings = DecoderSettings()

    yield server

    server._settings = None
