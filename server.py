"""
Student Number OMR Server - FastMCP server for reading student numbers from scans.

Tools for validating student number templates and decoding the student
number bubbles on scanned exam pages (single images or whole PDFs).
"""

import base64
import binascii
import json
from typing import Optional

from fastmcp import FastMCP

from edmcp_omrid.core import (
    BatchDecoder,
    CodecError,
    DecoderSettings,
    FailureReason,
    TemplateError,
    decode,
    decode_image_bytes,
    load_template,
    summarize,
)
from edmcp_omrid.core.geometry import resolve_reference_size


# Initialize MCP server
mcp = FastMCP("Student Number OMR Server")

# Lazy initialization of settings
_settings: Optional[DecoderSettings] = None


def get_settings() -> DecoderSettings:
    """Get or load the decoder settings from the central .env."""
    global _settings
    if _settings is None:
        _settings = DecoderSettings.from_env()
    return _settings


def _settings_error(error: ValueError) -> str:
    return json.dumps({
        "status": "error",
        "message": f"Invalid decoder configuration: {error}",
    })


def _decode_base64(data: str, label: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 encoding for {label}: {e}") from e


@mcp.tool()
def ping() -> str:
    """
    Health check endpoint.

    Returns:
        "pong" if the server is running
    """
    return json.dumps({
        "status": "success",
        "message": "pong",
    })


@mcp.tool()
def get_decoder_settings() -> str:
    """
    Show the calibration settings the decoder is using.

    Returns:
        JSON with the effective settings
    """
    try:
        settings = get_settings()
    except ValueError as e:
        return _settings_error(e)

    return json.dumps({
        "status": "success",
        "settings": settings.to_dict(),
    })


@mcp.tool()
def validate_template(template_json: str) -> str:
    """
    Check a student number template before using it for decoding.

    Args:
        template_json: Template JSON, either {"slots": [...]} with optional
                       "referenceSize"/"pageSize", or an exam template with
                       "studentNumberOMR"

    Returns:
        JSON with slot count and the reference size coordinates are read in
    """
    try:
        settings = get_settings()
    except ValueError as e:
        return _settings_error(e)

    try:
        template = load_template(template_json, settings.expected_slots)
    except TemplateError as e:
        return json.dumps({
            "status": "error",
            "reason": FailureReason.INVALID_TEMPLATE.value,
            "message": str(e),
        })

    width, height = resolve_reference_size(template, settings)
    return json.dumps({
        "status": "success",
        "num_slots": template.slot_count,
        "reference_size": {"width": width, "height": height},
        "message": f"Template has {template.slot_count} slots",
    })


@mcp.tool()
def decode_student_number(image_base64: str, template_json: str) -> str:
    """
    Read the student number from one scanned page image.

    Args:
        image_base64: Base64-encoded PNG or JPEG of the page
        template_json: Student number template JSON

    Returns:
        JSON with the student_number, or the reason the page needs manual entry
    """
    try:
        settings = get_settings()
    except ValueError as e:
        return _settings_error(e)

    try:
        image = decode_image_bytes(_decode_base64(image_base64, "image"))
    except ValueError as e:
        return json.dumps({
            "status": "error",
            "message": str(e),
        })
    except CodecError as e:
        return json.dumps({
            "status": "error",
            "reason": FailureReason.CODEC_FAILURE.value,
            "message": str(e),
        })

    result = decode(image, template_json, settings)
    if not result.ok:
        return json.dumps({
            "status": "error",
            "reason": result.reason.value,
            "message": result.message,
            "needs_manual_entry": True,
            "details": result.to_dict(),
        })

    return json.dumps({
        "status": "success",
        "student_number": result.student_number,
        "details": result.to_dict(),
    })


@mcp.tool()
def decode_student_numbers_pdf(
    pdf_base64: str, template_json: str, dpi: Optional[int] = None
) -> str:
    """
    Read the student number from every page of a scanned PDF.

    Args:
        pdf_base64: Base64-encoded PDF of scanned sheets, one sheet per page
        template_json: Student number template JSON
        dpi: Render resolution (default from settings, 200)

    Returns:
        JSON with one result per page and a summary of pages for manual entry
    """
    try:
        settings = get_settings()
    except ValueError as e:
        return _settings_error(e)

    try:
        pdf_bytes = _decode_base64(pdf_base64, "PDF")
    except ValueError as e:
        return json.dumps({
            "status": "error",
            "message": str(e),
        })

    try:
        results = BatchDecoder(template_json, settings).decode_pdf(pdf_bytes, dpi=dpi)
    except CodecError as e:
        return json.dumps({
            "status": "error",
            "reason": FailureReason.CODEC_FAILURE.value,
            "message": str(e),
        })

    summary = summarize(results)
    return json.dumps({
        "status": "success",
        "pages": [r.to_dict() for r in results],
        "summary": summary,
        "message": (
            f"Decoded {summary['num_decoded']} of {summary['num_pages']} pages, "
            f"{summary['num_manual_entry']} need manual entry"
        ),
    })


if __name__ == "__main__":
    mcp.run()
