from __future__ import annotations

import binascii
import json
import logging
import math
from typing import Callable, Dict

from ..errors import DecodeFailure
from .multipart import JSON_MEDIA_TYPE, ZIP_MEDIA_TYPE, Part
from .schemas import RESERVED_FIELDS, Submission

logger = logging.getLogger(__name__)


class Base64StreamDecoder:
    """
    Incremental decoder for standard, padded base64.

    Input may arrive in arbitrary chunk sizes; complete 4-character quanta are
    decoded as they become available. CR and LF are ignored. Any other
    character outside the alphabet, misplaced padding, data after padding,
    or a trailing partial quantum raises ``binascii.Error``.
    """

    def __init__(self) -> None:
        self._pending = b""
        self._padded = False

    def feed(self, chunk: bytes) -> bytes:
        data = self._pending + chunk.translate(None, b"\r\n")
        if not data:
            return b""
        if self._padded:
            raise binascii.Error("Excess data after padding")

        usable = len(data) - len(data) % 4
        block, self._pending = data[:usable], data[usable:]
        if not block:
            return b""

        decoded = binascii.a2b_base64(block, strict_mode=True)
        if block.endswith(b"="):
            self._padded = True
        return decoded

    def finish(self) -> None:
        if self._pending:
            raise binascii.Error(f"Truncated base64 input ({len(self._pending)} trailing characters)")


def _reject_constant(name: str) -> None:
    raise ValueError(f"non-standard JSON constant {name}")


def _parse_finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"number {text} is out of range")
    return value


def decode_metadata(part: Part, submission: Submission) -> None:
    """Merge a JSON object part into the submission's metadata fields."""
    try:
        value = json.loads(
            part.read().decode("utf-8"),
            parse_constant=_reject_constant,
            parse_float=_parse_finite_float,
        )
    except ValueError as exc:
        raise DecodeFailure(f"invalid submission metadata: {exc}") from exc

    if value is None:
        value = {}
    if not isinstance(value, dict):
        raise DecodeFailure(
            f"invalid submission metadata: expected a JSON object, got {type(value).__name__}"
        )

    for key, field_value in value.items():
        if key in RESERVED_FIELDS:
            logger.debug(f"Ignoring server-assigned field {key!r} in submission metadata")
            continue
        submission.metadata[key] = field_value


def decode_archive(part: Part, submission: Submission) -> None:
    """Replace the submission's archive with the part body, reversing base64 when declared."""
    if part.transfer_encoding != "base64":
        submission.data = part.read()
        return

    decoder = Base64StreamDecoder()
    decoded = bytearray()
    try:
        for chunk in part.iter_chunks():
            decoded += decoder.feed(chunk)
        decoder.finish()
    except binascii.Error as exc:
        raise DecodeFailure(f"invalid base64 archive: {exc}") from exc
    submission.data = bytes(decoded)


DECODERS: Dict[str, Callable[[Part, Submission], None]] = {
    JSON_MEDIA_TYPE: decode_metadata,
    ZIP_MEDIA_TYPE: decode_archive,
}


def dispatch_part(part: Part, submission: Submission) -> bool:
    """Route a part to its decoder. Returns False for part types that are skipped."""
    decoder = DECODERS.get(part.content_type)
    if decoder is None:
        logger.debug(f"Skipping part with unrecognized content type {part.content_type}")
        return False
    decoder(part, submission)
    return True
