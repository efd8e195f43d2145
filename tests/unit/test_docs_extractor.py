"""Unit tests for text extraction."""

import random

import pytest

from backend.app.docs.extractor import extract_printable_text, extract_text, is_text_media_type

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def test_plain_text_is_decoded() -> None:
    """UTF-8 text comes back unchanged."""
    assert extract_text("Quarterly revenue: 12€".encode(), "text/plain") == "Quarterly revenue: 12€"


def test_plain_text_with_invalid_bytes_is_decoded_leniently() -> None:
    """Invalid sequences in text types become replacement characters, not failures."""
    text = extract_text(b"abc\xffdef", "text/plain")

    assert text == "abc�def"


def test_csv_is_treated_as_text() -> None:
    text = extract_text(b"name,amount\nacme,10\n", "text/csv")

    assert text == "name,amount\nacme,10\n"


def test_media_type_parameters_are_ignored() -> None:
    assert is_text_media_type("text/plain; charset=utf-8")
    assert is_text_media_type("application/csv")
    assert not is_text_media_type("application/pdf")


def test_pdf_keeps_printable_runs_only() -> None:
    """Binary bytes act as separators and whitespace is collapsed."""
    data = b"%PDF-1.4\n\x00\x01Hello World\xff\xfe stream"

    assert extract_text(data, "application/pdf") == "%PDF-1.4 Hello World stream"


def test_printable_text_of_pure_binary_is_empty() -> None:
    assert extract_printable_text(bytes(range(0, 9)) + b"\xff" * 20) == ""


def test_unknown_type_valid_utf8_is_decoded() -> None:
    assert extract_text(b"sheet data", XLSX) == "sheet data"


def test_unknown_type_invalid_utf8_returns_empty() -> None:
    """Binary spreadsheets are not parsed, so they yield no text."""
    assert extract_text(b"PK\x03\x04\xff\xfe\x00\x01" * 10, XLSX) == ""


def test_unknown_type_with_nul_byte_returns_empty() -> None:
    assert extract_text(b"looks like text\x00but is not", "application/octet-stream") == ""


def test_empty_input_returns_empty() -> None:
    assert extract_text(b"", "text/plain") == ""
    assert extract_text(b"", "application/pdf") == ""
    assert extract_text(b"", XLSX) == ""


def test_input_is_truncated_before_decoding() -> None:
    assert extract_text(b"abcdef", "text/plain", max_input_bytes=3) == "abc"


def test_multibyte_sequence_cut_by_input_cap_is_dropped() -> None:
    """A character split by the byte cap does not make valid UTF-8 unreadable."""
    data = "ééé".encode()  # 6 bytes

    assert extract_text(data, XLSX, max_input_bytes=5) == "éé"


def test_output_is_truncated() -> None:
    text = extract_text(b"a" * 100, "text/plain", max_output_chars=10)

    assert text == "a" * 10


@pytest.mark.parametrize("media_type", ["text/plain", "application/pdf", XLSX, "", "image/png"])
def test_random_bytes_never_raise_and_respect_output_cap(media_type: str) -> None:
    """Arbitrary input always yields a string within the cap."""
    rng = random.Random(42)

    for _ in range(50):
        data = rng.randbytes(rng.randint(0, 2000))
        text = extract_text(data, media_type, max_input_bytes=1000, max_output_chars=300)

        assert isinstance(text, str)
        assert len(text) <= 300
