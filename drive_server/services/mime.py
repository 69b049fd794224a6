import mimetypes
from typing import Optional

DEFAULT_MIME: str = "application/octet-stream"

# Substrings of office/pdf MIME types that count as documents
_DOCUMENT_MARKERS: tuple[str, ...] = (
    "pdf",
    "word",
    "excel",
    "powerpoint",
    "spreadsheet",
    "presentation",
    "opendocument",
)


def guess_mime_type(filename: str, declared: Optional[str] = None) -> str:
    """
    Pick the MIME type for an upload.

    The type declared by the client wins unless it is missing or the
    generic binary type; then the extension is consulted.
    """
    if declared and declared != DEFAULT_MIME:
        return declared
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or declared or DEFAULT_MIME


def classify_mime_type(mime_type: str) -> str:
    mime_type = (mime_type or "").lower()
    for prefix in ("image", "video", "audio", "text"):
        if mime_type.startswith(prefix + "/"):
            return prefix
    if any(marker in mime_type for marker in _DOCUMENT_MARKERS):
        return "document"
    return "other"
