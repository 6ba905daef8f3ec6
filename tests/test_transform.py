"""Tests for entity -> TSV line formatting."""

import pytest

from etl.errors import DecodeError
from etl.transform import FIELD_ID, FIELD_NAME, format_line


def test_format_line_example_entities():
    """Both example entities produce exactly id<TAB>name<NEWLINE>."""
    assert format_line({"organisasjonsnummer": "123456789", "navn": "ACME AS"}) == "123456789\tACME AS\n"
    assert format_line({"organisasjonsnummer": "987654321", "navn": "FOO BAR"}) == "987654321\tFOO BAR\n"


def test_format_line_ignores_other_fields():
    entity = {
        "organisasjonsnummer": "912345678",
        "navn": "NORSK BEDRIFT AS",
        "organisasjonsform": {"kode": "AS"},
        "antallAnsatte": 12,
    }
    assert format_line(entity) == "912345678\tNORSK BEDRIFT AS\n"


def test_format_line_writes_values_verbatim():
    """No trimming or escaping of field contents."""
    entity = {"organisasjonsnummer": " 123 ", "navn": "Ærlig\tØl & Å\\s "}
    assert format_line(entity) == " 123 \tÆrlig\tØl & Å\\s \n"


def test_format_line_stringifies_scalar_values():
    assert format_line({"organisasjonsnummer": 123456789, "navn": "TALL AS"}) == "123456789\tTALL AS\n"


@pytest.mark.parametrize("missing", [FIELD_ID, FIELD_NAME])
def test_format_line_missing_field_raises(missing):
    entity = {"organisasjonsnummer": "123456789", "navn": "ACME AS"}
    del entity[missing]

    with pytest.raises(DecodeError, match=missing):
        format_line(entity)


def test_format_line_null_field_raises():
    with pytest.raises(DecodeError, match="navn"):
        format_line({"organisasjonsnummer": "123456789", "navn": None})


def test_format_line_rejects_nested_values():
    with pytest.raises(DecodeError, match="scalar"):
        format_line({"organisasjonsnummer": "123456789", "navn": {"fullt": "ACME AS"}})
