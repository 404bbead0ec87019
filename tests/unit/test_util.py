"""Unit tests for helpers and MIME lookup."""

import io
from datetime import datetime, timedelta, timezone

import pytest

from s3engine.mime import DEFAULT_MIME_TYPE, EXTENSION_TO_MIME, mime_type_from_extension
from s3engine.util import (
    epoch_seconds,
    make_stream_seekable,
    url_encode,
    validate_v2_bucket,
)


class TestValidateV2Bucket:
    """Tests for virtual-host bucket validation."""

    @pytest.mark.parametrize(
        "bucket",
        [
            "abc",
            "my-bucket",
            "bucket1",
            "my.bucket.name",
            "a" * 63,
            "my-bucket.s3.amazonaws.com",
        ],
    )
    def test_valid(self, bucket):
        assert validate_v2_bucket(bucket) is True

    @pytest.mark.parametrize(
        "bucket",
        [
            "ab",
            "a" * 64,
            "My-Bucket",
            "my_bucket",
            "-bucket",
            "bucket-",
            ".bucket",
            "bucket.",
            "my..bucket",
            "192.168.1.1",
            "s3.amazonaws.com-bucket",
        ],
    )
    def test_invalid(self, bucket):
        assert validate_v2_bucket(bucket) is False

    def test_service_host_suffix_judged_on_prefix(self):
        """Only the part before the service domain is checked."""
        assert validate_v2_bucket("ab.s3.amazonaws.com") is False
        assert validate_v2_bucket("abc.s3.amazonaws.com") is True

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            validate_v2_bucket("")


class TestUrlEncode:
    """Tests for RFC 3986 encoding."""

    def test_path_mode_keeps_separators(self):
        assert url_encode("https://host/my file.txt", path=True) == "https://host/my%20file.txt"

    def test_query_mode_encodes_everything(self):
        assert url_encode("abc+/=") == "abc%2B%2F%3D"

    def test_unreserved_untouched(self):
        assert url_encode("AZaz09-_.~") == "AZaz09-_.~"

    def test_empty(self):
        assert url_encode(None) == ""


class TestEpochSeconds:
    """Tests for expiry conversion."""

    def test_aware(self):
        assert epoch_seconds(datetime(2030, 1, 1, tzinfo=timezone.utc)) == 1893456000

    def test_naive_is_utc(self):
        assert epoch_seconds(datetime(2030, 1, 1)) == 1893456000

    def test_offset(self):
        tz = timezone(timedelta(hours=2))
        assert epoch_seconds(datetime(2030, 1, 1, 2, tzinfo=tz)) == 1893456000


class _ForwardOnly(io.RawIOBase):
    def __init__(self, data):
        self._data = io.BytesIO(data)

    def readable(self):
        return True

    def readinto(self, buffer):
        chunk = self._data.read(len(buffer))
        buffer[:len(chunk)] = chunk
        return len(chunk)


class TestMakeStreamSeekable:
    """Tests for body materialization."""

    def test_seekable_stream_returned_as_is(self):
        stream = io.BytesIO(b"data")
        assert make_stream_seekable(stream) is stream

    def test_forward_only_stream_is_buffered(self):
        source = _ForwardOnly(b"x" * 20000)

        result = make_stream_seekable(source)

        assert result.seekable()
        assert result.read() == b"x" * 20000
        assert source.closed


class TestMimeLookup:
    """Tests for the extension table."""

    def test_known_extension(self):
        assert mime_type_from_extension("a.png") == "image/png"
        assert mime_type_from_extension("docs/a.txt") == "text/plain"

    def test_case_insensitive(self):
        assert mime_type_from_extension("A.PNG") == "image/png"

    def test_unknown_extension(self):
        assert mime_type_from_extension("a.unknownext") == DEFAULT_MIME_TYPE
        assert DEFAULT_MIME_TYPE == "application/octet-stream"

    def test_custom_default(self):
        assert mime_type_from_extension("noextension", default=None) is None

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            EXTENSION_TO_MIME[".new"] = "application/x-new"
