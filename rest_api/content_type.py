"""Content-Type classifier.

Maps a raw Content-Type header value to the short kind string the client
dispatches on: the media-type suffix after the last ``/``.
"""

from __future__ import annotations

JSON = "json"
XML = "xml"
OCTET_STREAM = "octet-stream"
PLAIN = "plain"
HTML = "html"
FORM_URLENCODED = "x-www-form-urlencoded"

# plain and html share the text handling path
TEXT_KINDS = frozenset({PLAIN, HTML})
KNOWN_KINDS = frozenset({JSON, XML, OCTET_STREAM, PLAIN, HTML, FORM_URLENCODED})

_HEADER_PREFIX = "content-type:"


def get_type(value: str | None) -> str:
    """Return the content-type kind for a header value.

    Accepts either a full header line (``"Content-Type: text/html"``) or just
    the media type, with or without parameters. Unknown suffixes are returned
    unchanged; input without a ``/`` is returned whole (trimmed, lower-cased).

    Examples:
        >>> get_type("Content-Type: application/json")
        'json'
        >>> get_type("application/x-www-form-urlencoded")
        'x-www-form-urlencoded'
        >>> get_type("text/html; charset=utf-8")
        'html'
    """
    if not value:
        return ""

    media_type = value.strip().lower()
    if media_type.startswith(_HEADER_PREFIX):
        media_type = media_type[len(_HEADER_PREFIX):]

    media_type = media_type.split(";", 1)[0].strip()
    return media_type.rsplit("/", 1)[-1]
