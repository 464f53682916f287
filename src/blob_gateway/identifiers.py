"""Storage key assignment for uploaded payloads."""
import re
from typing import Optional

# optional sign followed by ASCII digits only, nothing else
_OWNER_TAG_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


def parse_owner_tag(raw: Optional[str]) -> int:
    """
    Parse the `uid` header permissively.

    Only a plain signed decimal that fits in 64 bits counts. A missing,
    empty, padded, out-of-range or otherwise non-numeric tag counts as zero
    instead of failing the upload.
    """
    if not raw or not _OWNER_TAG_PATTERN.fullmatch(raw):
        return 0
    value = int(raw)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return 0
    return value


def assign_storage_key(submitted_at: int, owner_tag: int, payload_length: int) -> str:
    """
    Derive the storage key of an upload.

    The key is the decimal sum of the submission time (epoch seconds), the
    owner tag and the payload length. It is not random: two uploads whose
    sums match land on the same key and the later one overwrites the earlier.

    :param submitted_at: submission time in whole epoch seconds.
    :param owner_tag: numeric owner tag parsed from the `uid` header.
    :param payload_length: payload size in bytes.
    """
    return str(int(submitted_at) + int(owner_tag) + int(payload_length))
