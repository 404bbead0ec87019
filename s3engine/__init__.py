"""
s3engine

A client-side request engine for S3-style object storage services.
Signs, sends, retries and decodes object fetches and stores, and builds
presigned URLs.

Example:
    >>> from s3engine import S3Client, S3Credentials, GetObjectRequest, PutObjectRequest
    >>> client = S3Client(S3Credentials("AKIDEXAMPLE", "secret"))
    >>> client.put_object(
    ...     PutObjectRequest(bucket_name="my-bucket", key="a.txt", content_body="hello")
    ... )
    >>> with client.get_object(GetObjectRequest("my-bucket", "a.txt")) as response:
    ...     print(response.read())
"""

__version__ = "1.0.0"
__author__ = "s3engine Team"
__license__ = "MIT"

from s3engine.client import S3Client, AsyncS3Client
from s3engine.config import ClientConfig, DEFAULT_CONFIG
from s3engine.credentials import S3Credentials, CredentialsSnapshot, ProtectedSecret
from s3engine.future import S3AsyncResult, ExecutionState, RetryState
from s3engine.models import (
    BeforeRequestEventArgs,
    GetObjectRequest,
    GetObjectResponse,
    GetPreSignedUrlRequest,
    HttpVerb,
    Protocol,
    PutObjectProgressArgs,
    PutObjectRequest,
    PutObjectResponse,
    ResponseHeaderOverrides,
    S3QueryParameter,
    S3Request,
    S3Response,
    S3StorageClass,
)
from s3engine.exceptions import (
    S3EngineError,
    ConfigurationError,
    TransportError,
    ServiceError,
    ServiceTransientError,
    ServiceTerminalError,
    RetryExhausted,
    DecodingError,
)

__all__ = [
    # Version
    "__version__",
    # Clients
    "S3Client",
    "AsyncS3Client",
    "S3AsyncResult",
    "ExecutionState",
    "RetryState",
    # Configuration
    "ClientConfig",
    "DEFAULT_CONFIG",
    # Credentials
    "S3Credentials",
    "CredentialsSnapshot",
    "ProtectedSecret",
    # Models
    "BeforeRequestEventArgs",
    "GetObjectRequest",
    "GetObjectResponse",
    "GetPreSignedUrlRequest",
    "HttpVerb",
    "Protocol",
    "PutObjectProgressArgs",
    "PutObjectRequest",
    "PutObjectResponse",
    "ResponseHeaderOverrides",
    "S3QueryParameter",
    "S3Request",
    "S3Response",
    "S3StorageClass",
    # Exceptions
    "S3EngineError",
    "ConfigurationError",
    "TransportError",
    "ServiceError",
    "ServiceTransientError",
    "ServiceTerminalError",
    "RetryExhausted",
    "DecodingError",
]
