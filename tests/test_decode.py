"""Tests for streaming gunzip and incremental JSON entity parsing."""

import asyncio
import gzip
import json
from decimal import Decimal

import pytest

from etl.decode import GzipStreamReader, iter_entities
from etl.errors import DecodeError
from fakes import ChunkedSource, gzip_entities


async def _read_all(reader: GzipStreamReader, n: int) -> bytes:
    parts = []
    while True:
        part = await reader.read(n)
        if not part:
            return b"".join(parts)
        parts.append(part)


def _entities(body: bytes, max_chunk: int = 1024, chunk_size: int = 512) -> list:
    async def _collect():
        reader = GzipStreamReader(ChunkedSource(body, max_chunk=max_chunk), chunk_size=chunk_size)
        return [entity async for entity in iter_entities(reader)]

    return asyncio.run(_collect())


# =============================================================================
# GzipStreamReader
# =============================================================================

def test_gzip_reader_small_reads_across_chunk_boundaries():
    payload = ("".join(f"line {i}\n" for i in range(2000))).encode("utf-8")
    source = ChunkedSource(gzip.compress(payload), max_chunk=7)
    reader = GzipStreamReader(source, chunk_size=7)

    assert asyncio.run(_read_all(reader, 5)) == payload
    assert reader.decompressed_bytes == len(payload)
    assert reader.compressed_bytes == len(gzip.compress(payload))
    assert source.reads > 1


def test_gzip_reader_output_is_bounded_per_step():
    payload = b"0" * 8_000_000
    body = gzip.compress(payload)
    reader = GzipStreamReader(ChunkedSource(body), chunk_size=4096)

    first = asyncio.run(reader.read(1024))

    assert first == payload[:1024]
    assert reader.decompressed_bytes <= 4096
    assert asyncio.run(_read_all(reader, 65536)) == payload[1024:]
    assert reader.decompressed_bytes == len(payload)


def test_gzip_reader_read_zero_returns_bytes():
    reader = GzipStreamReader(ChunkedSource(gzip.compress(b"[]")))
    assert asyncio.run(reader.read(0)) == b""


def test_gzip_reader_read_all():
    reader = GzipStreamReader(ChunkedSource(gzip.compress(b"hello world"), max_chunk=3))
    assert asyncio.run(reader.read()) == b"hello world"


def test_gzip_reader_multi_member():
    body = gzip.compress(b"first,") + gzip.compress(b"second")
    reader = GzipStreamReader(ChunkedSource(body, max_chunk=10), chunk_size=10)
    assert asyncio.run(_read_all(reader, 4)) == b"first,second"


def test_gzip_reader_rejects_plain_data():
    reader = GzipStreamReader(ChunkedSource(b'[{"organisasjonsnummer": "1"}]'))
    with pytest.raises(DecodeError, match="Invalid gzip"):
        asyncio.run(reader.read(100))


def test_gzip_reader_rejects_truncated_stream():
    body = gzip.compress(b"x" * 10_000)
    reader = GzipStreamReader(ChunkedSource(body[:-6]))
    with pytest.raises(DecodeError, match="Truncated"):
        asyncio.run(_read_all(reader, 256))


def test_gzip_reader_rejects_empty_body():
    reader = GzipStreamReader(ChunkedSource(b""))
    with pytest.raises(DecodeError, match="Empty"):
        asyncio.run(reader.read(100))


# =============================================================================
# iter_entities
# =============================================================================

def test_iter_entities_yields_objects_in_order():
    entities = [{"organisasjonsnummer": str(100000000 + i), "navn": f"FIRMA {i} AS"} for i in range(500)]

    parsed = _entities(gzip_entities(entities), max_chunk=33, chunk_size=33)

    assert parsed == entities


def test_iter_entities_materializes_nested_structures():
    entity = {
        "organisasjonsnummer": "912345678",
        "navn": "NESTED AS",
        "forretningsadresse": {"adresse": ["Gate 1", "Postboks 2"], "postnummer": "0150"},
        "stiftelsesdato": "2001-01-01",
        "antallAnsatte": 7,
        "kapital": 30000.5,
    }

    parsed = _entities(gzip_entities([entity]))

    assert len(parsed) == 1
    assert parsed[0]["forretningsadresse"]["adresse"] == ["Gate 1", "Postboks 2"]
    assert parsed[0]["antallAnsatte"] == 7
    assert parsed[0]["kapital"] == Decimal("30000.5")


def test_iter_entities_empty_array():
    assert _entities(gzip.compress(b"[]")) == []


def test_iter_entities_rejects_object_root():
    body = gzip.compress(json.dumps({"organisasjonsnummer": "1", "navn": "A"}).encode())
    with pytest.raises(DecodeError, match="array"):
        _entities(body)


def test_iter_entities_rejects_non_object_items():
    with pytest.raises(DecodeError, match="object"):
        _entities(gzip.compress(b'[{"organisasjonsnummer": "1", "navn": "A"}, "oops"]'))


def test_iter_entities_rejects_malformed_json():
    with pytest.raises(DecodeError, match="Malformed JSON"):
        _entities(gzip.compress(b'[{"organisasjonsnummer": "1", "navn": }]'))


def test_iter_entities_rejects_unterminated_array():
    with pytest.raises(DecodeError):
        _entities(gzip.compress(b'[{"organisasjonsnummer": "1", "navn": "A"}'))


def test_iter_entities_rejects_empty_document():
    with pytest.raises(DecodeError):
        _entities(gzip.compress(b""))


def test_iter_entities_yields_before_stream_is_exhausted():
    """Objects come out while later input is still unread."""
    entities = [{"organisasjonsnummer": str(i), "navn": "x" * 200} for i in range(2000)]
    source = ChunkedSource(gzip_entities(entities), max_chunk=256)

    body_size = len(gzip_entities(entities))

    async def _first():
        reader = GzipStreamReader(source, chunk_size=256)
        async for entity in iter_entities(reader):
            return entity, source.position

    first, position_at_first = asyncio.run(_first())

    assert first == entities[0]
    assert position_at_first < body_size
