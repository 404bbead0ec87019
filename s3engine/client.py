"""
s3engine - Main Client

This module provides the S3Client and AsyncS3Client classes that serve as
the entry points for all storage operations.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Type

import httpx

from s3engine.config import ClientConfig, Headers
from s3engine.credentials import S3Credentials
from s3engine.events import BeforeRequestEvent
from s3engine.exceptions import ConfigurationError
from s3engine.future import S3AsyncResult
from s3engine.marshalling import convert_get_object, convert_put_object, resolve_endpoint
from s3engine.models import (
    BeforeRequestHandler,
    GetObjectRequest,
    GetObjectResponse,
    GetPreSignedUrlRequest,
    PutObjectRequest,
    PutObjectResponse,
    S3Request,
    S3Response,
)
from s3engine.presigner import presign
from s3engine.transport import AsyncTransportExecutor, TransportExecutor

logger = logging.getLogger("s3engine")

AsyncCallback = Callable[[S3AsyncResult], None]


def _resolve_credentials(credentials: Optional[S3Credentials], own_credentials: Optional[bool]):
    """Return (credentials, owned). Credentials read from the environment are owned."""
    if credentials is None:
        return S3Credentials.from_environment(), True
    return credentials, bool(own_credentials)


class _ClientBase:
    def __init__(
        self,
        credentials: Optional[S3Credentials],
        config: Optional[ClientConfig],
        own_credentials: Optional[bool],
    ) -> None:
        self._config = config or ClientConfig.from_environment()
        self._credentials, self._owns_credentials = _resolve_credentials(credentials, own_credentials)
        self._before_request = BeforeRequestEvent()
        self._closed = False

        # Setup logging
        if self._config.debug:
            logging.basicConfig(level=logging.DEBUG)
            logger.setLevel(logging.DEBUG)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def owns_credentials(self) -> bool:
        return self._owns_credentials

    def add_before_request_handler(self, handler: BeforeRequestHandler) -> None:
        """Register a handler notified before every request is signed."""
        self._before_request.add(handler)

    def remove_before_request_handler(self, handler: BeforeRequestHandler) -> None:
        self._before_request.remove(handler)

    def get_presigned_url(self, request: GetPreSignedUrlRequest) -> str:
        """
        Create a signed URL granting time-limited access to one operation.

        Args:
            request: Bucket, key, verb and expiry of the URL

        Returns:
            The presigned URL

        Raises:
            ConfigurationError: If the request is incomplete, or the client
                has no credentials or only temporary ones
        """
        if request is None:
            raise ConfigurationError("The GetPreSignedUrlRequest specified is null")
        if self._credentials is None:
            raise ConfigurationError("Credentials are required to presign a URL")
        with self._credentials.snapshot(self._config.use_secure_string_for_secret_key) as snapshot:
            return presign(request, self._config, snapshot)

    def _check_not_closed(self) -> None:
        if self._closed:
            raise ConfigurationError("The client has been closed")

    def _prepare_get_object(self, request: GetObjectRequest) -> None:
        self._check_not_closed()
        if request is None:
            raise ConfigurationError("The GetObjectRequest specified is null")
        if not request.bucket_name:
            raise ConfigurationError("The bucket_name specified is null or empty")
        if not request.key:
            raise ConfigurationError("The key specified is null or empty")
        resolve_endpoint(self._config)
        convert_get_object(request)

    def _prepare_put_object(self, request: PutObjectRequest) -> None:
        self._check_not_closed()
        if request is None:
            raise ConfigurationError("The PutObjectRequest specified is null")
        if not request.bucket_name:
            raise ConfigurationError("The bucket_name specified is null or empty")
        if not request.key:
            raise ConfigurationError("The key specified is null or empty")
        resolve_endpoint(self._config)
        convert_put_object(request)

    def _release_credentials(self) -> None:
        if self._owns_credentials and self._credentials is not None:
            self._credentials.destroy()


class S3Client(_ClientBase):
    """
    Client for the object storage service.

    Operations come in three forms: ``begin_*`` returns an S3AsyncResult
    at once and runs the request on a worker pool, ``end_*`` collects its
    result, and the plain form runs the whole attempt chain inline.

    Args:
        credentials: Credentials used to sign requests. If not provided, will
            look for the S3ENGINE_ACCESS_KEY_ID and S3ENGINE_SECRET_ACCESS_KEY
            environment variables; requests are anonymous when neither is set.
        config: Client configuration. Defaults to ClientConfig.from_environment()
        own_credentials: Destroy the passed credentials when the client closes.
            Credentials read from the environment are always owned.
        http_client: Pre-configured httpx.Client. It must not follow redirects
            and is not closed by this client.

    Example:
        >>> client = S3Client(S3Credentials("AKIDEXAMPLE", "secret"))
        >>> response = client.put_object(
        ...     PutObjectRequest(bucket_name="my-bucket", key="a.txt", content_body="hello")
        ... )
        >>> print(response.etag)
    """

    def __init__(
        self,
        credentials: Optional[S3Credentials] = None,
        config: Optional[ClientConfig] = None,
        *,
        own_credentials: Optional[bool] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(credentials, config, own_credentials)

        self._owns_http_client = http_client is None
        self._http_client = http_client or self._create_http_client()
        self._executor = TransportExecutor(
            self._config, self._http_client, self._credentials, self._before_request
        )
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()

        logger.debug(f"S3Client initialized with service URL: {self._config.service_url}")

    def _create_http_client(self) -> httpx.Client:
        """Create and configure the HTTP client."""
        return httpx.Client(
            headers={Headers.USER_AGENT: self._config.user_agent},
            timeout=httpx.Timeout(self._config.timeout),
            follow_redirects=False,
        )

    def _get_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._config.max_workers,
                    thread_name_prefix="s3engine",
                )
            return self._pool

    # -------------------------------------------------------------------------
    # GetObject
    # -------------------------------------------------------------------------

    def begin_get_object(
        self,
        request: GetObjectRequest,
        callback: Optional[AsyncCallback] = None,
        state: Any = None,
        synchronous: bool = False,
    ) -> S3AsyncResult:
        """
        Start fetching an object.

        Args:
            request: Bucket and key of the object
            callback: Called once with the S3AsyncResult when the operation ends
            state: Caller state exposed as ``async_state`` on the result
            synchronous: Run the whole attempt chain on the calling thread

        Returns:
            The handle to pass to end_get_object
        """
        self._prepare_get_object(request)
        return self._begin(request, GetObjectResponse, callback, state, synchronous)

    def end_get_object(self, async_result: S3AsyncResult) -> Optional[GetObjectResponse]:
        """Wait for a begin_get_object call and return its response."""
        return self._end(async_result)

    def get_object(self, request: GetObjectRequest) -> GetObjectResponse:
        """
        Fetch an object.

        The response body is a stream that must be closed; use the response
        as a context manager.
        """
        return self.end_get_object(self.begin_get_object(request, synchronous=True))

    # -------------------------------------------------------------------------
    # PutObject
    # -------------------------------------------------------------------------

    def begin_put_object(
        self,
        request: PutObjectRequest,
        callback: Optional[AsyncCallback] = None,
        state: Any = None,
        synchronous: bool = False,
    ) -> S3AsyncResult:
        """Start storing an object. See begin_get_object for the arguments."""
        self._prepare_put_object(request)
        return self._begin(request, PutObjectResponse, callback, state, synchronous)

    def end_put_object(self, async_result: S3AsyncResult) -> Optional[PutObjectResponse]:
        """Wait for a begin_put_object call and return its response."""
        return self._end(async_result)

    def put_object(self, request: PutObjectRequest) -> PutObjectResponse:
        """Store an object."""
        return self.end_put_object(self.begin_put_object(request, synchronous=True))

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _begin(
        self,
        request: S3Request,
        response_class: Type[S3Response],
        callback: Optional[AsyncCallback],
        state: Any,
        synchronous: bool,
    ) -> S3AsyncResult:
        async_result = S3AsyncResult(request, callback, state, completed_synchronously=synchronous)
        if synchronous:
            self._invoke(async_result, response_class)
        else:
            self._get_pool().submit(self._invoke, async_result, response_class)
        return async_result

    def _invoke(self, async_result: S3AsyncResult, response_class: Type[S3Response]) -> None:
        try:
            response = self._executor.execute(
                async_result.request, response_class, async_result.retry_state
            )
        except Exception as e:
            async_result.set_exception(e)
        else:
            async_result.set_result(response)

    @staticmethod
    def _end(async_result: S3AsyncResult):
        if not isinstance(async_result, S3AsyncResult):
            raise TypeError("end_* expects the S3AsyncResult returned by the matching begin_* call")
        return async_result.end()

    def close(self) -> None:
        """Wait for pending operations, then release the client's resources."""
        if self._closed:
            return
        self._closed = True
        if self._pool is not None:
            self._pool.shutdown(wait=True)
        if self._owns_http_client:
            self._http_client.close()
        self._release_credentials()

    def __enter__(self) -> "S3Client":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"S3Client(service_url='{self._config.service_url}')"


class AsyncS3Client(_ClientBase):
    """
    Asynchronous client for the object storage service.

    Takes the same arguments as S3Client, with an httpx.AsyncClient in
    place of the synchronous one. Object bodies are read fully into a
    seekable buffer before get_object returns.

    Example:
        >>> async with AsyncS3Client(S3Credentials("AKIDEXAMPLE", "secret")) as client:
        ...     response = await client.get_object(GetObjectRequest("my-bucket", "a.txt"))
        ...     print(response.read())
    """

    def __init__(
        self,
        credentials: Optional[S3Credentials] = None,
        config: Optional[ClientConfig] = None,
        *,
        own_credentials: Optional[bool] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(credentials, config, own_credentials)

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            headers={Headers.USER_AGENT: self._config.user_agent},
            timeout=httpx.Timeout(self._config.timeout),
            follow_redirects=False,
        )
        self._executor = AsyncTransportExecutor(
            self._config, self._http_client, self._credentials, self._before_request
        )

    async def get_object(self, request: GetObjectRequest) -> GetObjectResponse:
        """Fetch an object."""
        self._prepare_get_object(request)
        return await self._executor.execute(request, GetObjectResponse)

    async def put_object(self, request: PutObjectRequest) -> PutObjectResponse:
        """Store an object."""
        self._prepare_put_object(request)
        return await self._executor.execute(request, PutObjectResponse)

    async def aclose(self) -> None:
        """Release the client's resources."""
        if self._closed:
            return
        self._closed = True
        if self._owns_http_client:
            await self._http_client.aclose()
        self._release_credentials()

    async def __aenter__(self) -> "AsyncS3Client":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"AsyncS3Client(service_url='{self._config.service_url}')"
