"""
Helpers shared by the signer, the request builder and the transport.
"""

import io
import re
import time
from datetime import datetime, timezone
from email.utils import formatdate
from typing import IO, Optional
from urllib.parse import quote

from s3engine.config import Defaults, Limits

_IPV4_PATTERN = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+$")
_LABEL_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9\-]*[a-z0-9])?$")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def url_encode(data: Optional[str], path: bool = False) -> str:
    """
    Percent-encode ``data`` per RFC 3986.

    In path mode ``/`` and ``:`` are left alone so that whole URLs and
    resource paths can be encoded in one pass.
    """
    if not data:
        return ""
    return quote(data, safe="/:" if path else "")


def formatted_current_timestamp() -> str:
    """Current time in the GMT format expected by ``x-amz-date``."""
    return formatdate(time.time(), usegmt=True)


def epoch_seconds(value: datetime) -> int:
    """Seconds since the Unix epoch. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(round((value - _EPOCH).total_seconds()))


def validate_v2_bucket(bucket_name: str) -> bool:
    """
    Check whether a bucket can be addressed as a virtual host.

    Valid names are 3 to 63 characters long, made of dot separated
    lowercase RFC 1123 labels, and not shaped like an IPv4 address.
    """
    if not bucket_name:
        raise ValueError("Please specify a bucket name")

    if bucket_name.startswith(Defaults.SERVICE_HOST):
        return False

    # A full service host name was passed instead of the bucket. The prefix
    # alone is validated, so "ab.s3.amazonaws.com" is judged as "ab" and
    # stays path-style.
    idx = bucket_name.find(Defaults.SERVICE_DOMAIN)
    if idx > 0:
        bucket_name = bucket_name[:idx]

    if (
        len(bucket_name) < Limits.MIN_BUCKET_NAME_LENGTH
        or len(bucket_name) > Limits.MAX_BUCKET_NAME_LENGTH
        or bucket_name.startswith(".")
        or bucket_name.endswith(".")
    ):
        return False

    if _IPV4_PATTERN.match(bucket_name):
        return False

    return all(_LABEL_PATTERN.match(label) for label in bucket_name.split("."))


def make_stream_seekable(stream: IO[bytes]) -> IO[bytes]:
    """Return ``stream`` if it can seek, else a buffered copy of its contents."""
    if stream.seekable():
        return stream
    try:
        buffer = io.BytesIO()
        while True:
            chunk = stream.read(Limits.DEFAULT_BUFFER_SIZE)
            if not chunk:
                break
            buffer.write(chunk)
    finally:
        stream.close()
    buffer.seek(0)
    return buffer
