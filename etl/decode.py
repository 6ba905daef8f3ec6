"""Streaming decode of the registry dump.

The source body is a gzip file whose content is one JSON array of entity
objects. Both layers are decoded incrementally so memory stays constant
regardless of dump size:

    response body -> GzipStreamReader -> iter_entities -> dict per entity
"""

from __future__ import annotations

import zlib
from typing import Any, AsyncIterator, Awaitable, Dict, Protocol

import ijson
from ijson.common import ObjectBuilder

from etl.errors import DecodeError

DEFAULT_CHUNK_SIZE = 64 * 1024

# wbits for zlib to expect a gzip header and trailer
_GZIP_WBITS = 16 + zlib.MAX_WBITS


class AsyncByteSource(Protocol):
    def read(self, n: int = -1) -> Awaitable[bytes]: ...


class GzipStreamReader:
    """Async file-like reader that gunzips another async byte source.

    Exposes `async read(n)` so it can be handed to `ijson` directly.
    Concatenated gzip members are decoded back to back, as `gzip` does.
    Each decompress step yields at most `chunk_size` bytes; compressed input
    not yet inflated is held in `_pending` until the buffer is drained.
    """

    def __init__(self, source: AsyncByteSource, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._source = source
        self._chunk_size = chunk_size
        self._decompressor = zlib.decompressobj(_GZIP_WBITS)
        self._buffer = bytearray()
        self._pending = b""
        self._member_started = False
        self._eof = False
        self.compressed_bytes = 0
        self.decompressed_bytes = 0

    async def read(self, n: int = -1) -> bytes:
        if n == 0:
            return b""
        while not self._eof and (n < 0 or len(self._buffer) < n):
            await self._fill()

        if n < 0 or n >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:n])
            del self._buffer[:n]
        return data

    async def _fill(self) -> None:
        if not self._pending:
            chunk = await self._source.read(self._chunk_size)
            if not chunk:
                self._finish()
                return
            self.compressed_bytes += len(chunk)
            self._pending = chunk

        self._decompress_step()

    def _decompress_step(self) -> None:
        self._member_started = True
        try:
            out = self._decompressor.decompress(self._pending, self._chunk_size)
        except zlib.error as e:
            raise DecodeError(
                f"Invalid gzip data after {self.compressed_bytes} compressed bytes: {e}"
            ) from e
        self._append(out)

        if self._decompressor.eof:
            # Member finished; anything left belongs to the next member
            self._next_member()
        else:
            self._pending = self._decompressor.unconsumed_tail

    def _next_member(self) -> None:
        self._pending = self._decompressor.unused_data
        self._decompressor = zlib.decompressobj(_GZIP_WBITS)
        self._member_started = False

    def _append(self, out: bytes) -> None:
        self._buffer += out
        self.decompressed_bytes += len(out)

    def _finish(self) -> None:
        if self._member_started:
            # Output held back by the per-step limit
            try:
                self._append(self._decompressor.flush())
            except zlib.error as e:
                raise DecodeError(
                    f"Invalid gzip data after {self.compressed_bytes} compressed bytes: {e}"
                ) from e
            if self._decompressor.eof:
                self._next_member()
                if self._pending:
                    return

        self._eof = True
        if self.compressed_bytes == 0:
            raise DecodeError("Empty response body, expected gzip data")
        if self._member_started:
            raise DecodeError(
                f"Truncated gzip stream after {self.compressed_bytes} compressed bytes"
            )


async def iter_entities(stream: Any) -> AsyncIterator[Dict[str, Any]]:
    """Yield each object of the top-level JSON array in `stream`, in order.

    `stream` must have an awaitable `read(n)` returning bytes. Each object is
    yielded only once it has been parsed completely.

    Raises:
        DecodeError: On malformed JSON, a non-array document root, or a
            non-object array element.
    """
    builder: ObjectBuilder | None = None
    root_seen = False

    try:
        async for prefix, event, value in ijson.parse_async(stream):
            if not root_seen:
                if event != "start_array":
                    raise DecodeError(f"Expected a JSON array at document root, got '{event}'")
                root_seen = True
                continue

            if builder is None:
                if prefix != "item":
                    # end_array of the root
                    continue
                if event != "start_map":
                    raise DecodeError(f"Expected a JSON object in root array, got '{event}'")
                builder = ObjectBuilder()

            builder.event(event, value)

            if prefix == "item" and event == "end_map":
                entity = builder.value
                builder = None
                yield entity

    except ijson.JSONError as e:
        raise DecodeError(f"Malformed JSON in source stream: {e}") from e
    except UnicodeDecodeError as e:
        raise DecodeError(f"Source stream is not valid UTF-8: {e}") from e

    if not root_seen:
        raise DecodeError("Source stream contained no JSON document")
