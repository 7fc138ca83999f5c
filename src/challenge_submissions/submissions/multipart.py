"""
Multipart framing for submission uploads.

``resolve_boundary`` validates the request's ``Content-Type`` and extracts the
boundary token. ``iter_parts`` turns the raw request body into a lazy,
finite sequence of ``Part`` objects using python-multipart's push parser; each
part is yielded as soon as its closing delimiter has been read.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from typing import AsyncIterator, Deque, Dict, Iterator, List, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.requests import ClientDisconnect

from ..errors import MalformedContentType, MalformedPart

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"
ZIP_MEDIA_TYPE = "application/zip"

_TOKEN = r"[!#$%&'*+.^_`|~0-9a-z-]+"
_MEDIA_TYPE_RE = re.compile(rf"^{_TOKEN}/{_TOKEN}$")


def parse_media_type(value: Optional[str]) -> Tuple[str, Dict[str, str]]:
    """
    Split a ``Content-Type`` value into its media type and parameters.

    The media type is lower-cased, as are parameter names; parameter values
    are returned verbatim.

    Raises:
        ValueError: When the value is empty or the media type is not a
            ``type/subtype`` pair of tokens.
    """
    if not value or not value.strip():
        raise ValueError("no media type")

    raw_type, raw_params = parse_options_header(value)
    media_type = raw_type.decode("latin-1").strip().lower()
    if not _MEDIA_TYPE_RE.match(media_type):
        raise ValueError(f"invalid media type {media_type!r}")

    params = {
        key.decode("latin-1").lower(): val.decode("latin-1")
        for key, val in raw_params.items()
    }
    return media_type, params


def resolve_boundary(content_type: Optional[str]) -> str:
    """Return the boundary token declared by a multipart ``Content-Type``."""
    try:
        media_type, params = parse_media_type(content_type)
    except ValueError as exc:
        raise MalformedContentType(f"invalid content type {content_type!r}: {exc}") from exc

    if not media_type.startswith("multipart/"):
        raise MalformedContentType(
            f"invalid content type {content_type!r}: not a multipart media type"
        )

    boundary = params.get("boundary", "")
    if not boundary:
        raise MalformedContentType(
            f"invalid content type {content_type!r}: missing boundary parameter"
        )
    return boundary


@dataclass
class Part:
    """One boundary-delimited section of a multipart body."""

    content_type: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)
    chunks: List[bytes] = field(default_factory=list, repr=False)

    @property
    def transfer_encoding(self) -> Optional[str]:
        value = self.headers.get("content-transfer-encoding")
        if value is None:
            return None
        return value.strip().lower() or None

    def iter_chunks(self) -> Iterator[bytes]:
        yield from self.chunks

    def read(self) -> bytes:
        return b"".join(self.chunks)


class _PartCollector:
    """Callback sink collecting python-multipart events into raw parts."""

    def __init__(self) -> None:
        self.completed: Deque[Tuple[Dict[str, str], List[bytes]]] = deque()
        self.finished = False
        self._headers: Dict[str, str] = {}
        self._chunks: List[bytes] = []
        self._field = bytearray()
        self._value = bytearray()

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}
        self._chunks = []

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._value += data[start:end]

    def on_header_end(self) -> None:
        name = self._field.decode("latin-1").strip().lower()
        self._headers[name] = self._value.decode("latin-1").strip()
        self._field.clear()
        self._value.clear()

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._chunks.append(bytes(data[start:end]))

    def on_part_end(self) -> None:
        self.completed.append((self._headers, self._chunks))

    def on_end(self) -> None:
        self.finished = True


def _classify(headers: Dict[str, str], chunks: List[bytes]) -> Part:
    raw = headers.get("content-type")
    try:
        media_type, params = parse_media_type(raw)
    except ValueError as exc:
        raise MalformedPart(f"invalid part content type {raw!r}: {exc}") from exc
    return Part(content_type=media_type, headers=headers, params=params, chunks=chunks)


class _PreambleFilter:
    """
    Drops any preamble before the first delimiter line.

    A delimiter line is ``--boundary`` at the start of the body or right after
    a line feed, followed by CR, LF, whitespace or the closing ``--``.
    """

    def __init__(self, boundary: str) -> None:
        self._delimiter = b"--" + boundary.encode("latin-1")
        self._buffer = bytearray()
        self._at_body_start = True
        self.found = False

    def feed(self, chunk: bytes) -> bytes:
        if self.found:
            return chunk
        self._buffer += chunk
        start = self._find()
        if start is None:
            # Keep enough to match a delimiter split across chunks
            keep = len(self._delimiter) + 2
            if len(self._buffer) > keep:
                del self._buffer[:-keep]
                self._at_body_start = False
            return b""
        if start:
            logger.debug(f"Skipped {start} byte(s) of multipart preamble")
        self.found = True
        data = bytes(self._buffer[start:])
        self._buffer.clear()
        return data

    def _find(self) -> Optional[int]:
        buf = self._buffer
        pos = 0
        while True:
            idx = buf.find(self._delimiter, pos)
            if idx < 0:
                return None
            pos = idx + 1
            if idx == 0:
                if not self._at_body_start:
                    continue
            elif buf[idx - 1] != 0x0A:
                continue
            end = idx + len(self._delimiter)
            if end >= len(buf):
                return None
            if buf[end] in b"\r\n \t-":
                return idx


async def iter_parts(body: AsyncIterator[bytes], boundary: str) -> AsyncIterator[Part]:
    """
    Yield the parts of a multipart body in stream order.

    Iteration ends normally once the closing delimiter has been read. Any
    framing error, a part without a parseable ``Content-Type``, or a body that
    stops before the closing delimiter raises ``MalformedPart``. Text before
    the first delimiter line is ignored.
    """
    collector = _PartCollector()
    preamble = _PreambleFilter(boundary)
    parser = MultipartParser(boundary, callbacks=collector.callbacks())

    try:
        async for chunk in body:
            data = preamble.feed(chunk)
            if not data:
                continue
            parser.write(data)
            while collector.completed:
                yield _classify(*collector.completed.popleft())
        parser.finalize()
    except MultipartParseError as exc:
        raise MalformedPart(f"malformed multipart body: {exc}") from exc
    except ClientDisconnect as exc:
        raise MalformedPart("request body ended unexpectedly") from exc

    while collector.completed:
        yield _classify(*collector.completed.popleft())

    if not collector.finished:
        raise MalformedPart("multipart body ended before the closing boundary")
    logger.debug("multipart body fully consumed")
