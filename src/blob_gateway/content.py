"""
Content sniffing and category routing.

`sniff_content_type` follows the WHATWG MIME sniffing table: it looks at no
more than the first 512 bytes of a payload, tries the known signatures in
order and falls back to a text/binary check. `route_category` maps the
resulting MIME type onto the mirror bucket it belongs to.
"""
from enum import Enum
from typing import List, Optional, Tuple

SNIFF_LEN = 512
DEFAULT_CONTENT_TYPE = "application/octet-stream"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

CONTENT_TYPE_IMAGE_PREFIX = "image"
CONTENT_TYPE_AUDIO_PREFIX = "audio"
CONTENT_TYPE_VIDEO_PREFIX = "video"

# whitespace bytes skipped before markup signatures
_WHITESPACE = b"\t\n\x0c\r "


class ContentCategory(str, Enum):
    """Storage category of a payload, one mirror bucket per supported value."""
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    UNSUPPORTED = "unsupported"


# (signature, mime type), matched case-insensitively after leading whitespace
# and followed by a tag-terminating byte
_HTML_SIGNATURES = [
    b"<!DOCTYPE HTML",
    b"<HTML",
    b"<HEAD",
    b"<SCRIPT",
    b"<IFRAME",
    b"<H1",
    b"<DIV",
    b"<FONT",
    b"<TABLE",
    b"<A",
    b"<STYLE",
    b"<TITLE",
    b"<B",
    b"<BODY",
    b"<BR",
    b"<P",
    b"<!--",
]

# (pattern, mask, skip leading whitespace, mime type)
_MASKED_SIGNATURES: List[Tuple[bytes, bytes, bool, str]] = [
    (b"<?xml", b"\xff\xff\xff\xff\xff", True, "text/xml; charset=utf-8"),
    (b"\xfe\xff\x00\x00", b"\xff\xff\x00\x00", False, "text/plain; charset=utf-16be"),
    (b"\xff\xfe\x00\x00", b"\xff\xff\x00\x00", False, "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf\x00", b"\xff\xff\xff\x00", False, TEXT_CONTENT_TYPE),
]

# (prefix, mime type)
_EXACT_SIGNATURES: List[Tuple[bytes, str]] = [
    (b"%PDF-", "application/pdf"),
    (b"%!PS-Adobe-", "application/postscript"),
    # images
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
    (b"BM", "image/bmp"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x89PNG\x0d\x0a\x1a\x0a", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
]

# signatures with "don't care" bytes in the middle (RIFF/IFF length fields)
_WILDCARD_SIGNATURES: List[Tuple[bytes, bytes, str]] = [
    (b"RIFF\x00\x00\x00\x00WEBPVP", b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff\xff\xff", "image/webp"),
    (b"FORM\x00\x00\x00\x00AIFF", b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff", "audio/aiff"),
    (b"RIFF\x00\x00\x00\x00AVI ", b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff", "video/avi"),
    (b"RIFF\x00\x00\x00\x00WAVE", b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff", "audio/wave"),
]

_MEDIA_SIGNATURES: List[Tuple[bytes, str]] = [
    (b"ID3", "audio/mpeg"),
    (b"OggS\x00", "application/ogg"),
    (b"MThd\x00\x00\x00\x06", "audio/midi"),
]

_WEBM_SIGNATURE = b"\x1a\x45\xdf\xa3"

_TRAILING_SIGNATURES: List[Tuple[bytes, str]] = [
    # fonts
    (b"\x00\x01\x00\x00", "font/ttf"),
    (b"OTTO", "font/otf"),
    (b"ttcf", "font/collection"),
    (b"wOFF", "font/woff"),
    (b"wOF2", "font/woff2"),
    # archives
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"PK\x03\x04", "application/zip"),
    (b"Rar!\x1a\x07\x00", "application/x-rar-compressed"),
    (b"Rar!\x1a\x07\x01\x00", "application/x-rar-compressed"),
    (b"\x00\x61\x73\x6d", "application/wasm"),
]

_EOT_MAGIC = b"LP"
_EOT_OFFSET = 34


def _skip_whitespace(data: bytes) -> bytes:
    return data.lstrip(_WHITESPACE)


def _match_html(data: bytes) -> bool:
    data = _skip_whitespace(data)
    for signature in _HTML_SIGNATURES:
        if len(data) < len(signature) + 1:
            continue
        if data[:len(signature)].upper() != signature:
            continue
        # the signature has to be followed by a tag-terminating byte
        if data[len(signature)] in b" >":
            return True
    return False


def _match_masked(data: bytes, pattern: bytes, mask: bytes) -> bool:
    if len(data) < len(pattern):
        return False
    return all((data[i] & mask[i]) == pattern[i] for i in range(len(pattern)))


def _match_mp4(data: bytes) -> bool:
    if len(data) < 12:
        return False
    box_size = int.from_bytes(data[:4], "big")
    if len(data) < box_size or box_size % 4 != 0:
        return False
    if data[4:8] != b"ftyp":
        return False
    for start in range(8, box_size, 4):
        if start == 12:
            # skip the minor version
            continue
        if data[start:start + 3] == b"mp4":
            return True
    return False


def _is_binary(data: bytes) -> bool:
    for byte in data:
        if byte <= 0x08 or byte == 0x0B or 0x0E <= byte <= 0x1A or 0x1C <= byte <= 0x1F:
            return True
    return False


def _first_prefix(data: bytes, signatures: List[Tuple[bytes, str]]) -> Optional[str]:
    for prefix, mime_type in signatures:
        if data.startswith(prefix):
            return mime_type
    return None


def sniff_content_type(payload: bytes) -> str:
    """
    Determine the MIME type of a payload from its leading bytes.

    Always returns a valid MIME type; unknown binary data is
    `application/octet-stream`.
    """
    data = bytes(payload[:SNIFF_LEN])

    if _match_html(data):
        return "text/html; charset=utf-8"

    pattern, mask, skip_ws, mime_type = _MASKED_SIGNATURES[0]
    if _match_masked(_skip_whitespace(data) if skip_ws else data, pattern, mask):
        return mime_type

    for prefix, mime_type in _EXACT_SIGNATURES[:2]:
        if data.startswith(prefix):
            return mime_type

    for pattern, mask, _, mime_type in _MASKED_SIGNATURES[1:]:
        if _match_masked(data, pattern, mask):
            return mime_type

    mime_type = _first_prefix(data, _EXACT_SIGNATURES[2:])
    if mime_type:
        return mime_type

    for pattern, mask, mime_type in _WILDCARD_SIGNATURES:
        if _match_masked(data, pattern, mask):
            return mime_type

    mime_type = _first_prefix(data, _MEDIA_SIGNATURES)
    if mime_type:
        return mime_type

    if _match_mp4(data):
        return "video/mp4"

    if data.startswith(_WEBM_SIGNATURE):
        return "video/webm"

    if len(data) > _EOT_OFFSET + 1 and data[_EOT_OFFSET:_EOT_OFFSET + 2] == _EOT_MAGIC:
        return "application/vnd.ms-fontobject"

    mime_type = _first_prefix(data, _TRAILING_SIGNATURES)
    if mime_type:
        return mime_type

    if not _is_binary(data):
        return TEXT_CONTENT_TYPE

    return DEFAULT_CONTENT_TYPE


def route_category(mime_type: str) -> ContentCategory:
    """Map a MIME type onto its storage category by its top-level prefix."""
    mime_type = (mime_type or "").lower()
    if mime_type.startswith(CONTENT_TYPE_AUDIO_PREFIX):
        return ContentCategory.AUDIO
    if mime_type.startswith(CONTENT_TYPE_VIDEO_PREFIX):
        return ContentCategory.VIDEO
    if mime_type.startswith(CONTENT_TYPE_IMAGE_PREFIX):
        return ContentCategory.IMAGE
    return ContentCategory.UNSUPPORTED
