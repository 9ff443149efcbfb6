"""
Incremental decoder for newline-delimited streamed responses.

Each line of a streamed body is either a JSON object or raw text. The
decoder keeps a carry-over buffer across network reads so that a record
split between two reads is reconstructed exactly as if it had arrived in
one read.

Example:
    >>> decoder = LineRecordDecoder()
    >>> decoder.feed(b'{"content": "Hel')
    []
    >>> decoder.feed(b'lo"}\\nplain text\\n')
    [{'content': 'Hello'}, {'content': 'plain text'}]
    >>> decoder.flush()
    []
"""

from __future__ import annotations

import codecs
import json
from typing import Any

StreamChunk = dict[str, Any]
"""Shape delivered to chunk callbacks: ``{"content"?: str, ...otherFields}``."""


def parse_line(line: str) -> StreamChunk | None:
    """
    Parse one complete line into a chunk.

    A line holding a JSON object becomes that object. Any other line,
    including valid JSON that is not an object, is delivered as text.

    Args:
        line: A single line without its terminating newline

    Returns:
        The chunk, or None for blank lines
    """
    if line.endswith("\r"):
        line = line[:-1]
    if not line.strip():
        return None
    try:
        record = json.loads(line)
    except ValueError:
        return {"content": line}
    if isinstance(record, dict):
        return record
    return {"content": line}


class LineRecordDecoder:
    """
    Stateful decoder turning raw byte reads into chunks.

    Bytes are decoded incrementally as UTF-8, so a multi-byte character
    split across two reads is handled as well.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received but not yet terminated by a newline."""
        return self._buffer

    def feed(self, data: bytes) -> list[StreamChunk]:
        """
        Add one network read and return the chunks it completed.

        Args:
            data: Raw bytes from the response body

        Returns:
            Chunks for every line completed by this read
        """
        self._buffer += self._decoder.decode(data)
        lines = self._buffer.split("\n")
        # Last element is the incomplete tail (possibly empty)
        self._buffer = lines.pop()
        chunks = []
        for line in lines:
            chunk = parse_line(line)
            if chunk is not None:
                chunks.append(chunk)
        return chunks

    def flush(self) -> list[StreamChunk]:
        """
        Return the chunk for any non-empty remainder at end of stream.

        Returns:
            Zero or one chunk
        """
        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        chunk = parse_line(remainder)
        return [chunk] if chunk is not None else []


__all__ = [
    "StreamChunk",
    "LineRecordDecoder",
    "parse_line",
]
