"""Tests for the MCP server tools."""

import base64
import json

import cv2
import numpy as np
import pytest

from conftest import REFERENCE_HEIGHT, REFERENCE_WIDTH, STUDENT_NUMBER, make_template_dict


def _png_base64(image):
    ok, encoded = cv2.imencode(".png", image)
    assert ok
    return base64.b64encode(encoded.tobytes()).decode("utf-8")


@pytest.mark.usefixtures("reset_server_state")
class TestServerTools:
    """Tests for MCP server tool functions."""

    def test_ping(self):
        """Test the ping tool."""
        from server import ping

        # FastMCP wraps functions as FunctionTool, access via .fn
        result = json.loads(ping.fn())

        assert result["status"] == "success"
        assert result["message"] == "pong"

    def test_get_decoder_settings(self):
        from server import get_decoder_settings

        result = json.loads(get_decoder_settings.fn())

        assert result["status"] == "success"
        assert result["settings"]["blank_threshold"] == 240.0
        assert result["settings"]["box_factor"] == 2.5

    def test_validate_template(self, template_dict):
        from server import validate_template

        result = json.loads(validate_template.fn(json.dumps(template_dict)))

        assert result["status"] == "success"
        assert result["num_slots"] == 12
        assert result["reference_size"] == {"width": 400, "height": 300}

    def test_validate_template_invalid(self):
        from server import validate_template

        result = json.loads(validate_template.fn(json.dumps(make_template_dict(num_slots=3))))

        assert result["status"] == "error"
        assert result["reason"] == "INVALID_TEMPLATE"

    def test_decode_student_number(self, template_dict, filled_sheet):
        from server import decode_student_number

        result = json.loads(
            decode_student_number.fn(_png_base64(filled_sheet), json.dumps(template_dict))
        )

        assert result["status"] == "success"
        assert result["student_number"] == STUDENT_NUMBER

    def test_decode_blank_sheet(self, template_dict):
        from server import decode_student_number

        blank = np.full((REFERENCE_HEIGHT, REFERENCE_WIDTH, 3), 255, dtype=np.uint8)
        result = json.loads(
            decode_student_number.fn(_png_base64(blank), json.dumps(template_dict))
        )

        assert result["status"] == "error"
        assert result["reason"] == "UNREADABLE_SLOT"
        assert result["needs_manual_entry"] is True
        assert "student_number" not in result

    def test_decode_corrupt_image(self, template_dict):
        from server import decode_student_number

        corrupt = base64.b64encode(b"definitely not a png").decode("utf-8")
        result = json.loads(decode_student_number.fn(corrupt, json.dumps(template_dict)))

        assert result["status"] == "error"
        assert result["reason"] == "CODEC_FAILURE"

    def test_decode_invalid_base64(self, template_dict):
        from server import decode_student_number

        result = json.loads(decode_student_number.fn("***", json.dumps(template_dict)))

        assert result["status"] == "error"
        assert "Invalid base64" in result["message"]

    def test_decode_pdf_invalid(self, template_dict):
        from server import decode_student_numbers_pdf

        pdf = base64.b64encode(b"%PDF-1.4 broken").decode("utf-8")
        result = json.loads(decode_student_numbers_pdf.fn(pdf, json.dumps(template_dict)))

        assert result["status"] == "error"
        assert result["reason"] == "CODEC_FAILURE"

    def test_tools_report_invalid_configuration(self, template_dict, monkeypatch, tmp_path):
        import server

        monkeypatch.setattr(server, "_settings", None)
        monkeypatch.setattr("edmcp_omrid.config.get_edmcp_root", lambda: tmp_path)
        monkeypatch.setenv("OMRID_MAX_WORKERS", "many")

        template_json = json.dumps(template_dict)
        pdf = base64.b64encode(b"%PDF-1.4").decode("utf-8")
        responses = [
            server.get_decoder_settings.fn(),
            server.validate_template.fn(template_json),
            server.decode_student_number.fn("", template_json),
            server.decode_student_numbers_pdf.fn(pdf, template_json),
        ]

        for response in responses:
            result = json.loads(response)
            assert result["status"] == "error"
            assert "OMRID_MAX_WORKERS" in result["message"]
