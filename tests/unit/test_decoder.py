"""Unit tests for response decoding."""

import io

import httpx
import pytest

from s3engine import DecodingError, ServiceTerminalError, ServiceTransientError
from s3engine.decoder import ResponseDecoder, ResponseStream, parse_error_document
from s3engine.models import GetObjectResponse, HttpVerb, PutObjectResponse

HEADERS = httpx.Headers({"x-amz-request-id": "REQ123", "ETag": '"abc"'})


def _error_document(code, message="Something happened"):
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f"<Error><Code>{code}</Code><Message>{message}</Message>"
        "<RequestId>DOCREQ</RequestId></Error>\n"
    )


@pytest.fixture
def decoder():
    return ResponseDecoder()


class TestDecode:
    """Tests for non-fetch body classification."""

    def test_empty_body_is_header_only(self, decoder):
        response = decoder.decode(PutObjectResponse, "PutObject", 200, HEADERS, "")

        assert isinstance(response, PutObjectResponse)
        assert response.status_code == 200
        assert response.etag == '"abc"'
        assert response.request_id == "REQ123"
        assert response.response_xml is None
        assert response.fields == {}

    def test_plain_text_is_header_only(self, decoder):
        response = decoder.decode(PutObjectResponse, "PutObject", 200, HEADERS, "  OK  ")

        assert response.fields == {}
        assert response.response_xml == "  OK  "

    def test_structured_body(self, decoder):
        body = (
            '<PutObjectResponse xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
            "<ETag>\"abc\"</ETag></PutObjectResponse>"
        )

        response = decoder.decode(PutObjectResponse, "PutObject", 200, HEADERS, body)

        assert response.fields == {"ETag": '"abc"'}
        assert response.response_xml == body

    def test_malformed_body(self, decoder):
        with pytest.raises(DecodingError):
            decoder.decode(PutObjectResponse, "PutObject", 200, HEADERS, "<PutObjectResponse><a></PutObjectResponse>")

    def test_unexpected_root(self, decoder):
        with pytest.raises(DecodingError):
            decoder.decode(PutObjectResponse, "PutObject", 200, HEADERS, "<Other/>")

    def test_terminal_error_document(self, decoder):
        with pytest.raises(ServiceTerminalError) as exc_info:
            decoder.decode(PutObjectResponse, "PutObject", 200, HEADERS, _error_document("InvalidArgument", "Bad"))

        assert exc_info.value.code == "InvalidArgument"
        assert exc_info.value.message == "Bad"
        assert exc_info.value.request_id == "DOCREQ"

    def test_transient_error_document(self, decoder):
        with pytest.raises(ServiceTransientError) as exc_info:
            decoder.decode(PutObjectResponse, "PutObject", 200, HEADERS, _error_document("SlowDown"))

        assert exc_info.value.code == "SlowDown"
        assert exc_info.value.retryable is True

    def test_legacy_error_document_retry(self):
        decoder = ResponseDecoder(legacy_error_document_retry=True)

        with pytest.raises(ServiceTransientError) as exc_info:
            decoder.decode(PutObjectResponse, "PutObject", 200, HEADERS, _error_document("InvalidArgument"))

        assert exc_info.value.code == "ERROR_DOCUMENT"


class TestRaiseForStatus:
    """Tests for status based classification."""

    @pytest.mark.parametrize("status", [200, 204, 301, 307])
    def test_success_and_redirect_pass(self, decoder, status):
        decoder.raise_for_status("GetObject", HttpVerb.GET, status, HEADERS)

    @pytest.mark.parametrize("status", [500, 503])
    def test_transient_statuses(self, decoder, status):
        with pytest.raises(ServiceTransientError) as exc_info:
            decoder.raise_for_status("GetObject", HttpVerb.GET, status, HEADERS)

        assert exc_info.value.status_code == status

    def test_head_not_found(self, decoder):
        with pytest.raises(ServiceTerminalError) as exc_info:
            decoder.raise_for_status("HeadObject", HttpVerb.HEAD, 404, HEADERS)

        assert exc_info.value.code == "NoSuchKey"
        assert exc_info.value.request_id == "REQ123"

    def test_head_other_failure(self, decoder):
        with pytest.raises(ServiceTerminalError) as exc_info:
            decoder.raise_for_status("HeadObject", HttpVerb.HEAD, 403, HEADERS)

        assert "HeadObject" in exc_info.value.message
        assert "403" in exc_info.value.message

    def test_head_server_error_is_transient(self, decoder):
        with pytest.raises(ServiceTransientError):
            decoder.raise_for_status("HeadObject", HttpVerb.HEAD, 503, HEADERS)

    def test_error_document_decoded(self, decoder):
        with pytest.raises(ServiceTerminalError) as exc_info:
            decoder.raise_for_status(
                "GetObject", HttpVerb.GET, 403, HEADERS, _error_document("AccessDenied", "Access Denied")
            )

        assert exc_info.value.code == "AccessDenied"
        assert exc_info.value.status_code == 403

    def test_error_without_document(self, decoder):
        with pytest.raises(ServiceTerminalError) as exc_info:
            decoder.raise_for_status("GetObject", HttpVerb.GET, 400, HEADERS, "not xml")

        assert exc_info.value.code == "SERVICE_ERROR"


class TestDecodeObject:
    """Tests for fetch responses."""

    def test_stream_passed_through(self, decoder):
        stream = ResponseStream(httpx.Response(200, content=b"hello"))

        response = decoder.decode_object(200, httpx.Headers({"Content-Length": "5"}), stream)

        assert isinstance(response, GetObjectResponse)
        assert response.response_stream is stream
        assert response.read() == b"hello"
        assert response.content_length == 5

    def test_verify_checksum_materializes(self, decoder):
        stream = ResponseStream(httpx.Response(200, content=b"hello"))

        response = decoder.decode_object(200, httpx.Headers(), stream, verify_checksum=True)

        assert isinstance(response.response_stream, io.BytesIO)
        assert stream.closed
        assert response.read() == b"hello"

    def test_metadata(self, decoder):
        headers = httpx.Headers({"x-amz-meta-owner": "me", "Content-Type": "text/plain"})

        response = decoder.decode_object(200, headers, io.BytesIO(b""))

        assert response.metadata == {"owner": "me"}
        assert response.content_type == "text/plain"


def test_parse_error_document_ignores_other_roots():
    assert parse_error_document("<Other/>") is None
    assert parse_error_document("garbage") is None
