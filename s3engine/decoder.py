"""
s3engine - Response decoding

Classifies raw HTTP responses and turns them into typed results or errors.
"""

import io
import logging
from typing import Mapping, Optional, Type
from xml.etree import ElementTree

import httpx

from s3engine.config import Defaults, Headers
from s3engine.exceptions import (
    DecodingError,
    ServiceTerminalError,
    ServiceTransientError,
)
from s3engine.models import GetObjectResponse, HttpVerb, S3Response
from s3engine.util import make_stream_seekable

logger = logging.getLogger("s3engine.decoder")

TRANSIENT_STATUS_CODES = (500, 503)


class ResponseStream(io.RawIOBase):
    """Forward-only byte stream over a streamed httpx response."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._chunks = response.iter_bytes()
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self) -> None:
        if not self.closed:
            self._response.close()
        super().close()


def parse_error_document(text: str) -> Optional[dict]:
    """Return Code/Message/RequestId from an ``<Error>`` document, if it is one."""
    try:
        root = ElementTree.fromstring(text.replace(Defaults.S3_XML_NAMESPACE, ""))
    except ElementTree.ParseError:
        return None
    if root.tag != "Error":
        return None
    return {
        "code": root.findtext("Code"),
        "message": root.findtext("Message"),
        "request_id": root.findtext("RequestId"),
    }


class ResponseDecoder:
    """
    Turns responses into results or classified errors.

    Args:
        legacy_error_document_retry: Treat every successful response whose
            body is an error document as transient instead of decoding it.
    """

    def __init__(self, legacy_error_document_retry: bool = False) -> None:
        self.legacy_error_document_retry = legacy_error_document_retry

    def raise_for_status(
        self,
        action: str,
        verb: HttpVerb,
        status_code: int,
        headers: Mapping[str, str],
        body: str = "",
    ) -> None:
        """Raise the error a non-2xx/3xx response stands for."""
        if status_code < 400:
            return

        request_id = headers.get(Headers.AMZ_REQUEST_ID)
        document = parse_error_document(body.strip()) if body.strip() else None
        if document:
            request_id = document["request_id"] or request_id

        if status_code in TRANSIENT_STATUS_CODES:
            raise ServiceTransientError(
                f"Service returned status {status_code} for {action}",
                code=(document or {}).get("code") or "SERVICE_UNAVAILABLE",
                status_code=status_code,
                request_id=request_id,
            )

        if verb is HttpVerb.HEAD:
            # HEAD responses carry no body, so only the status is known
            if status_code == 404:
                raise ServiceTerminalError(
                    "The specified key does not exist.",
                    code="NoSuchKey",
                    status_code=status_code,
                    request_id=request_id,
                )
            raise ServiceTerminalError(
                f"Error making request {action}: status {status_code}",
                status_code=status_code,
                request_id=request_id,
            )

        if document and document["code"]:
            raise ServiceTerminalError(
                document["message"] or f"Error making request {action}",
                code=document["code"],
                status_code=status_code,
                request_id=request_id,
            )
        raise ServiceTerminalError(
            f"Error making request {action}: status {status_code}",
            status_code=status_code,
            request_id=request_id,
        )

    def decode(
        self,
        response_class: Type[S3Response],
        action: str,
        status_code: int,
        headers: httpx.Headers,
        body: str,
    ) -> S3Response:
        """
        Decode the body of a non-fetch operation.

        Raises:
            ServiceTransientError: If the body is a transient error document
            ServiceTerminalError: If the body is any other error document
            DecodingError: If a structured body cannot be parsed
        """
        text = body.strip()
        response = response_class()

        if text.endswith("/Error>"):
            self._raise_for_error_document(action, status_code, headers, text)
        elif text.endswith(">"):
            text = text.replace(Defaults.S3_XML_NAMESPACE, "")
            text = text.replace("InitiateMultipartUploadResult", "InitiateMultipartUploadResponse")
            try:
                root = ElementTree.fromstring(text)
            except ElementTree.ParseError as e:
                raise DecodingError(f"Unable to parse {action} response: {e}") from e
            if root.tag != response_class.xml_root():
                raise DecodingError(
                    f"Unexpected root element {root.tag} in {action} response, "
                    f"expected {response_class.xml_root()}"
                )
            response.apply_xml(root)

        self.stamp(response, status_code, headers, body)
        return response

    def decode_object(
        self,
        status_code: int,
        headers: httpx.Headers,
        stream: io.IOBase,
        verify_checksum: bool = False,
    ) -> GetObjectResponse:
        """Wrap the body of a fetch operation without reading it."""
        response = GetObjectResponse()
        if verify_checksum:
            stream = make_stream_seekable(stream)
        response.response_stream = stream
        self.stamp(response, status_code, headers)
        return response

    @staticmethod
    def stamp(
        response: S3Response,
        status_code: int,
        headers: httpx.Headers,
        body: Optional[str] = None,
    ) -> None:
        response.status_code = status_code
        response.headers = httpx.Headers(headers)
        if body:
            response.response_xml = body

    def _raise_for_error_document(
        self,
        action: str,
        status_code: int,
        headers: Mapping[str, str],
        text: str,
    ) -> None:
        request_id = headers.get(Headers.AMZ_REQUEST_ID)
        if self.legacy_error_document_retry:
            raise ServiceTransientError(
                f"Service returned an error document for {action}",
                code="ERROR_DOCUMENT",
                status_code=status_code,
                request_id=request_id,
            )

        document = parse_error_document(text)
        if document is None:
            raise DecodingError(f"Unable to parse error document in {action} response")

        code = document["code"] or "SERVICE_ERROR"
        message = document["message"] or f"Error making request {action}"
        request_id = document["request_id"] or request_id
        if code in Defaults.TRANSIENT_ERROR_CODES:
            raise ServiceTransientError(message, code=code, status_code=status_code, request_id=request_id)
        raise ServiceTerminalError(message, code=code, status_code=status_code, request_id=request_id)
