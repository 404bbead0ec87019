"""
s3engine - Configuration

This module contains configuration classes and defaults for the engine.
"""

import os
from dataclasses import dataclass
from typing import Optional

from s3engine.models import Protocol


@dataclass
class ClientConfig:
    """
    Configuration for the storage client.

    Attributes:
        service_url: Service endpoint host, optionally with a scheme
        protocol: Scheme used when service_url carries none
        max_error_retry: Attempt budget shared by retries and redirects
        timeout: Default request timeout in seconds
        user_agent: Value of the User-Agent header
        use_secure_string_for_secret_key: Keep snapshot secrets in wipeable buffers
        force_path_style: Always address buckets as a path segment
        legacy_error_document_retry: Retry every 2xx body that is an error document
        max_workers: Size of the worker pool used by begin_* operations
        debug: Enable debug logging
    """
    service_url: Optional[str] = "s3.amazonaws.com"
    protocol: Protocol = Protocol.HTTPS
    max_error_retry: int = 3
    timeout: float = 30.0
    user_agent: str = "s3engine-python/1.0.0"
    use_secure_string_for_secret_key: bool = True
    force_path_style: bool = False
    legacy_error_document_retry: bool = False
    max_workers: int = 4
    debug: bool = False

    @classmethod
    def from_environment(cls, **overrides) -> "ClientConfig":
        """Build a config from S3ENGINE_* environment variables."""
        values = {}
        if os.environ.get("S3ENGINE_SERVICE_URL"):
            values["service_url"] = os.environ["S3ENGINE_SERVICE_URL"]
        if os.environ.get("S3ENGINE_PROTOCOL"):
            values["protocol"] = Protocol(os.environ["S3ENGINE_PROTOCOL"].upper())
        if os.environ.get("S3ENGINE_MAX_ERROR_RETRY"):
            values["max_error_retry"] = int(os.environ["S3ENGINE_MAX_ERROR_RETRY"])
        if os.environ.get("S3ENGINE_TIMEOUT"):
            values["timeout"] = float(os.environ["S3ENGINE_TIMEOUT"])
        values.update(overrides)
        return cls(**values)


# Default configuration
DEFAULT_CONFIG = ClientConfig()


class Headers:
    """Header names used on the wire."""

    AUTHORIZATION = "Authorization"
    CONTENT_TYPE = "Content-Type"
    CONTENT_LENGTH = "Content-Length"
    LOCATION = "Location"
    RANGE = "Range"
    USER_AGENT = "User-Agent"
    ETAG = "ETag"
    LAST_MODIFIED = "Last-Modified"

    AMZ_PREFIX = "x-amz-"
    AMZ_DATE = "x-amz-date"
    AMZ_STORAGE_CLASS = "x-amz-storage-class"
    AMZ_SECURITY_TOKEN = "x-amz-security-token"
    AMZ_META_PREFIX = "x-amz-meta-"
    AMZ_VERSION_ID = "x-amz-version-id"
    AMZ_REQUEST_ID = "x-amz-request-id"
    AMZ_ID_2 = "x-amz-id-2"


class Limits:
    """Protocol limits."""

    MIN_BUCKET_NAME_LENGTH = 3
    MAX_BUCKET_NAME_LENGTH = 63
    DEFAULT_BUFFER_SIZE = 8192
    BACKOFF_BASE_MS = 100
    BACKOFF_FACTOR = 4


class Defaults:
    """Default values applied by the request builder and decoder."""

    SERVICE_DOMAIN = ".s3.amazonaws.com"
    SERVICE_HOST = "s3.amazonaws.com"
    BINARY_CONTENT_TYPE = "application/octet-stream"
    FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"
    S3_XML_NAMESPACE = 'xmlns="http://s3.amazonaws.com/doc/2006-03-01/"'
    TRANSIENT_ERROR_CODES = frozenset({"InternalError", "ServiceUnavailable", "SlowDown"})
