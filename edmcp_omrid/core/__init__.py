"""Core modules for student number bubble decoding."""

from edmcp_omrid.core.batch import BatchDecoder, PageResult, PageStatus, summarize
from edmcp_omrid.core.decoder import DecodeResult, FailureReason, decode
from edmcp_omrid.core.image_io import (
    CodecError,
    PageImage,
    count_pdf_pages,
    decode_image_bytes,
    load_image,
    pdf_bytes_to_pages,
)
from edmcp_omrid.core.settings import DecoderSettings
from edmcp_omrid.core.template import Template, TemplateError, load_template

__all__ = [
    "BatchDecoder",
    "PageResult",
    "PageStatus",
    "summarize",
    "DecodeResult",
    "FailureReason",
    "decode",
    "CodecError",
    "PageImage",
    "count_pdf_pages",
    "decode_image_bytes",
    "load_image",
    "pdf_bytes_to_pages",
    "DecoderSettings",
    "Template",
    "TemplateError",
    "load_template",
]
