"""Parsing of base64 media data URIs sent by the client."""

import base64
import binascii
import re
from typing import NamedTuple

_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)(?:;[\w-]+=[\w.+-]+)*;base64,(?P<data>.+)$",
    re.DOTALL,
)


class DataUri(NamedTuple):
    mime_type: str
    data: str  # base64 payload, unchanged

    @property
    def family(self) -> str:
        return self.mime_type.split("/", 1)[0]

    @property
    def subtype(self) -> str:
        return self.mime_type.split("/", 1)[1]


def parse_data_uri(value: str, expected_family: str) -> DataUri:
    """
    Split a ``data:<mimetype>;base64,<data>`` URI and check its media family.

    Args:
        value: The data URI
        expected_family: "image" or "audio"

    Raises:
        ValueError: If the URI is malformed, not base64, or of another family
    """
    match = _DATA_URI_RE.match(value.strip()) if value else None
    if not match:
        raise ValueError("Media must be a base64 data URI")

    uri = DataUri(match.group("mime").lower(), match.group("data").strip())
    if uri.family != expected_family:
        raise ValueError(f"Expected {expected_family} data, got {uri.mime_type}")

    try:
        base64.b64decode(uri.data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Media payload is not valid base64") from e

    return uri
