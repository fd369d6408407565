"""
Text utilities for CSV cells, headers and URLs.
"""

import re
from typing import Any
from urllib.parse import urlparse, unquote


def safe_trim(value: Any) -> str:
    """
    Coerce any cell value to a trimmed string.

    None -> ""
    "  abc " -> "abc"
    123 -> "123"
    """
    if value is None:
        return ""

    if isinstance(value, str):
        return value.strip()

    return str(value).strip()


def normalize_header(header: str) -> str:
    """
    Normalize a CSV header for pattern matching.

    "MMS ID" -> "mmsid"
    "File_Title (optional)" -> "filetitleoptional"
    """
    return re.sub(r"[^a-z0-9]", "", (header or "").lower())


def url_filename(url: str) -> str:
    """
    Final path segment of a URL, lowercased and unquoted.

    "https://host/a/b/Report%201.pdf?x=1" -> "report 1.pdf"
    Returns "" when the URL has no path segment.
    """
    if not url:
        return ""

    path = urlparse(url.strip()).path
    segment = path.rstrip("/").rsplit("/", 1)[-1]

    return unquote(segment).lower()
