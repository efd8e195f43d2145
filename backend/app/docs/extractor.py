"""Text extraction - bytes plus media type to bounded plain text.

Never raises. An empty string means "unsupported or unreadable"; the
ingestion orchestrator turns that into an ``error`` document status.
"""

import codecs
import logging
import re

logger = logging.getLogger(__name__)

DEFAULT_MAX_INPUT_BYTES = 500_000
DEFAULT_MAX_OUTPUT_CHARS = 50_000

TEXT_MEDIA_TYPES = frozenset({"text/plain", "text/csv", "text/tab-separated-values"})
PDF_MEDIA_TYPE = "application/pdf"

# Anything outside printable ASCII and line breaks
_NON_PRINTABLE = re.compile(rb"[^\x20-\x7e\r\n]+")
_WHITESPACE_RUN = re.compile(r"\s+")


def is_text_media_type(media_type: str) -> bool:
    """Plain and delimited text types, decoded leniently."""
    normalized = media_type.split(";", 1)[0].strip().lower()
    return normalized in TEXT_MEDIA_TYPES or "csv" in normalized


def extract_printable_text(data: bytes) -> str:
    """Best-effort scan of a binary document for printable ASCII runs.

    Runs of printable bytes and line breaks are kept, everything else is a
    separator, then whitespace is collapsed. No format parsing is attempted,
    so structured PDFs (compressed streams, CID fonts) yield little text.
    """
    printable = _NON_PRINTABLE.sub(b" ", data).decode("ascii")
    return _WHITESPACE_RUN.sub(" ", printable).strip()


def extract_text(
    data: bytes,
    media_type: str,
    *,
    max_input_bytes: int = DEFAULT_MAX_INPUT_BYTES,
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
) -> str:
    """Convert raw bytes into plain text bounded by ``max_output_chars``.

    Args:
        data: Raw file contents
        media_type: Declared media type (e.g. "text/plain", "application/pdf")
        max_input_bytes: Input is truncated to this many bytes before processing
        max_output_chars: Output is truncated to this many characters

    Returns:
        Extracted text, or "" when nothing readable could be produced
    """
    data = data[:max_input_bytes]
    media_type = (media_type or "").strip().lower()

    try:
        if is_text_media_type(media_type):
            text = data.decode("utf-8", errors="replace")
        elif media_type.split(";", 1)[0] == PDF_MEDIA_TYPE:
            text = extract_printable_text(data)
        else:
            # Unknown types must be valid UTF-8; a sequence cut by the input cap is dropped
            text = codecs.getincrementaldecoder("utf-8")().decode(data, final=False)
            if "\x00" in text:
                return ""
    except UnicodeDecodeError:
        logger.info(f"Undecodable content for media type {media_type!r}, returning empty text")
        return ""
    except Exception as e:
        logger.warning(f"Text extraction failed for media type {media_type!r}: {e}")
        return ""

    return text[:max_output_chars]
