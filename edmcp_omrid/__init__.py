"""edmcp-omrid: student number bubble decoding for scanned exam sheets."""

from edmcp_omrid.core import (
    BatchDecoder,
    CodecError,
    DecodeResult,
    DecoderSettings,
    FailureReason,
    PageImage,
    TemplateError,
    decode,
    load_template,
)

__all__ = [
    "BatchDecoder",
    "CodecError",
    "DecodeResult",
    "DecoderSettings",
    "FailureReason",
    "PageImage",
    "TemplateError",
    "decode",
    "load_template",
]
