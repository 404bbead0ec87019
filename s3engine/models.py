"""
s3engine - Data Models

This module contains the request and response types for the supported
operations, along with the enumerations shared by the engine.
"""

from __future__ import annotations

import io
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
from xml.etree import ElementTree

import httpx

from s3engine.exceptions import ConfigurationError


# =============================================================================
# Enums
# =============================================================================

class S3QueryParameter(str, Enum):
    """Keys of the parameter map produced by the request builder."""
    ACTION = "Action"
    VERB = "Verb"
    KEY = "Key"
    CONTENT_TYPE = "ContentType"
    CONTENT_LENGTH = "ContentLength"
    CONTENT_BODY = "ContentBody"
    EXPIRES = "Expires"
    URL = "Url"
    QUERY = "Query"
    QUERY_TO_SIGN = "QueryToSign"
    CANONICALIZED_RESOURCE = "CanonicalizedResource"
    DESTINATION_BUCKET = "DestinationBucket"
    BUCKET_VERSION = "BucketVersion"
    REQUEST_TIMEOUT = "RequestTimeout"
    AUTHORIZATION = "Authorization"
    REQUEST_ADDRESS = "RequestAddress"
    VERIFY_CHECKSUM = "VerifyChecksum"
    RANGE = "Range"


class HttpVerb(str, Enum):
    """HTTP verbs accepted by the service."""
    GET = "GET"
    HEAD = "HEAD"
    PUT = "PUT"
    DELETE = "DELETE"
    POST = "POST"


class Protocol(str, Enum):
    """Transport protocol used to reach the service."""
    HTTP = "HTTP"
    HTTPS = "HTTPS"

    @property
    def scheme(self) -> str:
        return self.value.lower()


class BucketAddressing(str, Enum):
    """How the bucket name is placed in the request URL."""
    PATH = "V1"
    VIRTUAL_HOSTED = "V2"


class S3StorageClass(str, Enum):
    """Storage class written with stored objects."""
    STANDARD = "STANDARD"
    REDUCED_REDUNDANCY = "REDUCED_REDUNDANCY"
    STANDARD_IA = "STANDARD_IA"
    GLACIER = "GLACIER"


# =============================================================================
# Request models
# =============================================================================

@dataclass
class ResponseHeaderOverrides:
    """Headers the service should return in place of the stored ones."""
    cache_control: Optional[str] = None
    content_disposition: Optional[str] = None
    content_encoding: Optional[str] = None
    content_language: Optional[str] = None
    content_type: Optional[str] = None
    expires: Optional[str] = None

    def to_query_pairs(self) -> List[Tuple[str, str]]:
        """Return the set overrides as ordered ``response-*`` query pairs."""
        pairs = [
            ("response-cache-control", self.cache_control),
            ("response-content-disposition", self.content_disposition),
            ("response-content-encoding", self.content_encoding),
            ("response-content-language", self.content_language),
            ("response-content-type", self.content_type),
            ("response-expires", self.expires),
        ]
        return [(name, value) for name, value in pairs if value]


@dataclass
class RequestMetrics:
    """Timings collected while a request executes, in seconds."""
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.perf_counter)
    response_time: float = 0.0
    response_read_time: float = 0.0
    response_processing_time: float = 0.0
    bytes_processed: int = 0

    @property
    def total_request_time(self) -> float:
        return time.perf_counter() - self.started_at

    def __str__(self) -> str:
        return (
            f"Request {self.request_id}: total={self.total_request_time:.3f}s "
            f"response={self.response_time:.3f}s read={self.response_read_time:.3f}s "
            f"processing={self.response_processing_time:.3f}s bytes={self.bytes_processed}"
        )


BeforeRequestHandler = Callable[["BeforeRequestEventArgs"], None]


@dataclass
class BeforeRequestEventArgs:
    """Payload of the before-request notification."""
    request: "S3Request"
    config: Any


class S3Request:
    """
    Base class for all operation requests.

    Holds the parameter map filled in by the request builder, the outgoing
    headers and the optional body. Only ``timeout`` and ``position`` change
    once a request has been converted.
    """

    action: str = ""

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        key: Optional[str] = None,
        timeout: int = 0,
    ) -> None:
        self.bucket_name = bucket_name
        self.key = key
        self.timeout = timeout
        self.parameters: Dict[S3QueryParameter, str] = {}
        self.headers: Dict[str, str] = {}
        self.data: Optional[bytes] = None
        self.position = 0
        self.destination_bucket: Optional[str] = None
        self.on_progress: Optional[Callable[["PutObjectProgressArgs"], None]] = None
        self.metrics = RequestMetrics()
        self._before_request_handlers: Tuple[BeforeRequestHandler, ...] = ()
        self._handler_lock = threading.Lock()

    @property
    def id(self) -> str:
        return self.metrics.request_id

    @property
    def verb(self) -> HttpVerb:
        return HttpVerb(self.parameters.get(S3QueryParameter.VERB, HttpVerb.GET.value))

    @property
    def supports_timeout(self) -> bool:
        return self.timeout > 0

    def with_before_request_handler(self, handler: BeforeRequestHandler) -> "S3Request":
        """Register a handler that runs before this request is signed."""
        with self._handler_lock:
            self._before_request_handlers = self._before_request_handlers + (handler,)
        return self

    @property
    def before_request_handlers(self) -> Tuple[BeforeRequestHandler, ...]:
        return self._before_request_handlers

    def add_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def report_progress(self, increment: int, transferred: int, total: int) -> None:
        if self.on_progress is not None:
            self.on_progress(PutObjectProgressArgs(increment, transferred, total))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(bucket_name={self.bucket_name!r}, key={self.key!r})"


class GetObjectRequest(S3Request):
    """
    Request to fetch an object.

    Args:
        bucket_name: Bucket holding the object
        key: Object key
        version_id: Specific version to fetch
        byte_range: Inclusive (first, last) byte range
        response_header_overrides: Headers to override in the response
        verify_checksum: Materialize the body so it can be verified
        timeout: Request timeout in milliseconds, 0 for the client default
    """

    action = "GetObject"

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        key: Optional[str] = None,
        version_id: Optional[str] = None,
        byte_range: Optional[Tuple[int, int]] = None,
        response_header_overrides: Optional[ResponseHeaderOverrides] = None,
        verify_checksum: bool = False,
        timeout: int = 0,
    ) -> None:
        super().__init__(bucket_name, key, timeout)
        self.version_id = version_id
        self.byte_range = byte_range
        self.response_header_overrides = response_header_overrides or ResponseHeaderOverrides()
        self.verify_checksum = verify_checksum


@dataclass
class PutObjectProgressArgs:
    """Progress reported while a request body is written."""
    increment: int
    transferred: int
    total: int

    @property
    def percent_done(self) -> int:
        if not self.total:
            return 100
        return int(self.transferred * 100 / self.total)


class PutObjectRequest(S3Request):
    """
    Request to store an object.

    Exactly one of ``data`` (bytes) or ``content_body`` (text) may be given.
    """

    action = "PutObject"

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        key: Optional[str] = None,
        data: Optional[bytes] = None,
        content_body: Optional[str] = None,
        content_type: Optional[str] = None,
        storage_class: S3StorageClass = S3StorageClass.STANDARD,
        metadata: Optional[Dict[str, str]] = None,
        position: int = 0,
        on_progress: Optional[Callable[[PutObjectProgressArgs], None]] = None,
        timeout: int = 0,
    ) -> None:
        super().__init__(bucket_name, key, timeout)
        if data is not None and content_body is not None:
            raise ConfigurationError("Please specify one of either data or content_body to upload")
        self.data = data
        self.content_body = content_body
        self.content_type = content_type
        self.storage_class = storage_class
        self.metadata = dict(metadata or {})
        self.position = position
        self.on_progress = on_progress


class GetPreSignedUrlRequest(S3Request):
    """
    Request for a signed URL that authorizes one operation until ``expires``.
    """

    action = "GetPreSignedUrl"

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        key: Optional[str] = None,
        expires: Optional[datetime] = None,
        verb: Optional[HttpVerb] = HttpVerb.GET,
        version_id: Optional[str] = None,
        content_type: Optional[str] = None,
        protocol: Protocol = Protocol.HTTPS,
        response_header_overrides: Optional[ResponseHeaderOverrides] = None,
    ) -> None:
        super().__init__(bucket_name, key)
        self.expires = expires
        self.http_verb = verb
        self.version_id = version_id
        self.content_type = content_type
        self.protocol = protocol
        self.response_header_overrides = response_header_overrides or ResponseHeaderOverrides()


# =============================================================================
# Response models
# =============================================================================

class S3Response:
    """
    Base class for all operation responses.

    Every response is stamped with the HTTP status, the response headers and,
    for textual bodies, the raw body.
    """

    XML_ROOT: Optional[str] = None

    def __init__(self) -> None:
        self.status_code: int = 0
        self.headers: httpx.Headers = httpx.Headers()
        self.response_xml: Optional[str] = None
        self.fields: Dict[str, str] = {}

    @classmethod
    def xml_root(cls) -> str:
        return cls.XML_ROOT or cls.__name__

    def apply_xml(self, root: ElementTree.Element) -> None:
        """Copy the child elements of a parsed document into ``fields``."""
        for child in root:
            self.fields[child.tag] = (child.text or "").strip()

    @property
    def request_id(self) -> Optional[str]:
        return self.headers.get("x-amz-request-id")

    @property
    def amz_id_2(self) -> Optional[str]:
        return self.headers.get("x-amz-id-2")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status_code={self.status_code}, request_id={self.request_id!r})"


class PutObjectResponse(S3Response):
    """Result of storing an object."""

    @property
    def etag(self) -> Optional[str]:
        return self.headers.get("etag")

    @property
    def version_id(self) -> Optional[str]:
        return self.headers.get("x-amz-version-id")


class GetObjectResponse(S3Response):
    """
    Result of fetching an object.

    ``response_stream`` yields the object body. It is a seekable buffer when
    the body was materialized, otherwise a forward-only stream that must be
    closed by the caller.
    """

    def __init__(self) -> None:
        super().__init__()
        self.bucket_name: Optional[str] = None
        self.key: Optional[str] = None
        self.response_stream: Optional[io.IOBase] = None

    @property
    def etag(self) -> Optional[str]:
        return self.headers.get("etag")

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int:
        return int(self.headers.get("content-length", 0))

    @property
    def version_id(self) -> Optional[str]:
        return self.headers.get("x-amz-version-id")

    @property
    def metadata(self) -> Dict[str, str]:
        prefix = "x-amz-meta-"
        return {
            name[len(prefix):]: value
            for name, value in self.headers.items()
            if name.lower().startswith(prefix)
        }

    def read(self) -> bytes:
        """Read the remaining object body."""
        if self.response_stream is None:
            return b""
        return self.response_stream.read()

    def close(self) -> None:
        if self.response_stream is not None:
            self.response_stream.close()

    def __enter__(self) -> "GetObjectResponse":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
