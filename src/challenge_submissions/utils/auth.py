from __future__ import annotations

from typing import Mapping

API_KEY_HEADER = "Auth-ApiKey"


def get_api_key_header(headers: Mapping[str, str]) -> str:
    """
    Return the uploader's API key, or an empty string when none was sent.

    Surrounding whitespace is stripped. An absent header and an empty one are
    treated alike; both fail identity lookup downstream.
    """
    if headers is None:
        return ""
    raw = headers.get(API_KEY_HEADER) or headers.get(API_KEY_HEADER.lower()) or ""
    return raw.strip()
