"""
s3engine - Transport executor

Drives one logical operation through sign, send, redirect, retry and
decode. Retries and redirects draw from a single attempt budget; retries
back off for ``100ms * 4^attempt`` before the next attempt.

``TransportExecutor`` runs on ``httpx.Client`` and blocks the calling
thread while backing off. ``AsyncTransportExecutor`` runs the same steps on
``httpx.AsyncClient``.
"""

import asyncio
import contextlib
import io
import logging
import time
from enum import Enum
from typing import AsyncIterator, Dict, Iterator, Optional, Tuple, Type

import httpx

from s3engine.config import ClientConfig, Headers, Limits
from s3engine.credentials import CredentialsSnapshot, S3Credentials
from s3engine.decoder import ResponseDecoder, ResponseStream
from s3engine.events import BeforeRequestEvent
from s3engine.exceptions import (
    ConfigurationError,
    RetryExhausted,
    S3EngineError,
    ServiceTransientError,
    TransportError,
)
from s3engine.future import ExecutionState, RetryState
from s3engine.marshalling import add_s3_query_parameters, add_url_to_parameters, request_body
from s3engine.models import GetObjectResponse, S3QueryParameter, S3Request, S3Response
from s3engine.signer import authorization_header, build_signing_string, hmac_sign

logger = logging.getLogger("s3engine.transport")

P = S3QueryParameter


class Route(str, Enum):
    """What to do with a response once its status line is known."""
    REDIRECT = "redirect"
    STREAM = "stream"
    READ = "read"


def backoff_delay(attempt: int) -> float:
    """Pause in seconds before retrying after ``attempt`` earlier retries."""
    return Limits.BACKOFF_BASE_MS * (Limits.BACKOFF_FACTOR ** attempt) / 1000.0


def map_transport_error(exc: Exception) -> S3EngineError:
    """Translate an httpx exception into the engine's error taxonomy."""
    if isinstance(exc, (httpx.UnsupportedProtocol, httpx.InvalidURL)):
        return ConfigurationError(f"Invalid request URL: {exc}")
    if isinstance(exc, httpx.TimeoutException):
        return TransportError(f"Request timed out: {exc}", timeout=True)
    return TransportError(f"Request failed: {exc}")


class _ExecutorBase:
    """Steps shared by the sync and async drivers."""

    def __init__(
        self,
        config: ClientConfig,
        credentials: Optional[S3Credentials] = None,
        before_request: Optional[BeforeRequestEvent] = None,
    ) -> None:
        self._config = config
        self._credentials = credentials
        self._before_request = before_request if before_request is not None else BeforeRequestEvent()
        self._decoder = ResponseDecoder(config.legacy_error_document_retry)

    def _snapshot(self):
        if self._credentials is None:
            return contextlib.nullcontext(None)
        return self._credentials.snapshot(self._config.use_secure_string_for_secret_key)

    @staticmethod
    def _transition(request: S3Request, retry_state: RetryState, state: ExecutionState) -> None:
        logger.debug(f"Request {request.id}: {retry_state.state.value} -> {state.value}")
        retry_state.state = state

    def _prepare_attempt(
        self,
        request: S3Request,
        retry_state: RetryState,
        credentials: Optional[CredentialsSnapshot],
    ) -> Tuple[str, Dict[str, str]]:
        """Run INIT, SIGNING and CONNECTING for one attempt."""
        self._transition(request, retry_state, ExecutionState.INIT)
        self._before_request.fire(request, self._config)

        request.headers[Headers.USER_AGENT] = self._config.user_agent
        add_s3_query_parameters(request, self._config, credentials)

        self._transition(request, retry_state, ExecutionState.SIGNING)
        if credentials is not None:
            signature = hmac_sign(build_signing_string(request.parameters, request.headers), credentials)
            request.parameters[P.AUTHORIZATION] = signature
            request.headers[Headers.AUTHORIZATION] = authorization_header(credentials.access_key, signature)

        self._transition(request, retry_state, ExecutionState.CONNECTING)
        add_url_to_parameters(request, self._config)
        url = request.parameters[P.URL]
        request.parameters[P.REQUEST_ADDRESS] = url

        headers = dict(request.headers)
        content_type = request.parameters.get(P.CONTENT_TYPE)
        if content_type:
            headers[Headers.CONTENT_TYPE] = content_type
        if P.CONTENT_LENGTH in request.parameters:
            headers[Headers.CONTENT_LENGTH] = request.parameters[P.CONTENT_LENGTH]
        return url, headers

    def _timeout(self, request: S3Request) -> httpx.Timeout:
        if request.supports_timeout:
            return httpx.Timeout(request.timeout / 1000.0)
        return httpx.Timeout(self._config.timeout)

    def _next_attempt(self, request: S3Request, retry_state: RetryState, cause: S3EngineError) -> None:
        """Record ``cause`` and fail once the attempt budget is used up."""
        retry_state.last_cause = cause
        if retry_state.attempt >= self._config.max_error_retry:
            self._transition(request, retry_state, ExecutionState.FAILED)
            logger.debug(f"Request {request.id}: giving up after {retry_state.attempt} attempts")
            raise RetryExhausted(retry_state.attempt, cause) from cause

    def _reset_for_retry(self, request: S3Request, retry_state: RetryState) -> None:
        request.position = retry_state.original_position
        retry_state.attempt += 1

    def _redirect(self, request: S3Request, retry_state: RetryState, response: httpx.Response) -> None:
        """
        Follow a 3xx to its Location, keeping the current URL when none is
        given. Redirects use up the retry budget but do not back off.
        """
        location = response.headers.get(Headers.LOCATION)
        self._transition(request, retry_state, ExecutionState.REDIRECTING)
        cause = ServiceTransientError(
            f"Request redirected to {location}",
            code="REDIRECT",
            status_code=response.status_code,
            request_id=response.headers.get(Headers.AMZ_REQUEST_ID),
        )
        self._next_attempt(request, retry_state, cause)
        if location:
            request.parameters[P.URL] = str(response.request.url.join(location))
        logger.debug(f"Redirecting request {request.id} to {request.parameters[P.URL]}")
        self._reset_for_retry(request, retry_state)

    def _route(self, request: S3Request, response: httpx.Response, response_class: Type[S3Response]) -> Route:
        status = response.status_code
        logger.debug(
            f"Received response for {request.parameters.get(P.ACTION)} (id {request.id}) "
            f"with status code {status} in {request.metrics.response_time:.3f}s"
        )
        if 300 <= status < 400:
            return Route.REDIRECT
        if 200 <= status < 300 and issubclass(response_class, GetObjectResponse):
            return Route.STREAM
        return Route.READ

    def _decode_body(
        self,
        request: S3Request,
        response: httpx.Response,
        response_class: Type[S3Response],
        body: bytes,
    ) -> S3Response:
        action = request.parameters.get(P.ACTION, request.action)
        text = body.decode("utf-8", errors="replace")
        started = time.perf_counter()
        self._decoder.raise_for_status(action, request.verb, response.status_code, response.headers, text)
        result = self._decoder.decode(response_class, action, response.status_code, response.headers, text)
        request.metrics.response_processing_time = time.perf_counter() - started
        return result

    def _fail(self, request: S3Request, retry_state: RetryState, error: Exception) -> None:
        self._transition(request, retry_state, ExecutionState.FAILED)
        logger.debug(f"Request {request.id} failed: {error}")

    def _complete(self, request: S3Request, retry_state: RetryState) -> None:
        self._transition(request, retry_state, ExecutionState.COMPLETE)
        logger.debug(str(request.metrics))


class TransportExecutor(_ExecutorBase):
    """
    Executes requests on a synchronous ``httpx.Client``.

    Args:
        config: Client configuration
        http_client: Client used to send requests. Redirects must not be
            followed by the client itself.
        credentials: Credentials to sign with, or None for anonymous access
        before_request: Observers notified before each attempt is signed
    """

    def __init__(
        self,
        config: ClientConfig,
        http_client: httpx.Client,
        credentials: Optional[S3Credentials] = None,
        before_request: Optional[BeforeRequestEvent] = None,
    ) -> None:
        super().__init__(config, credentials, before_request)
        self._http_client = http_client

    def execute(
        self,
        request: S3Request,
        response_class: Type[S3Response],
        retry_state: Optional[RetryState] = None,
    ) -> S3Response:
        """
        Run ``request`` to completion.

        Raises:
            RetryExhausted: If retries and redirects used up the budget
            S3EngineError: For any terminal failure
        """
        if retry_state is None:
            retry_state = RetryState(original_position=request.position)
        logger.debug(f"Starting request {request.id} for {request.parameters.get(P.ACTION)}")

        body = request_body(request)
        stream = io.BytesIO(body) if body is not None else None

        with self._snapshot() as credentials:
            while True:
                url, headers = self._prepare_attempt(request, retry_state, credentials)
                if stream is not None:
                    stream.seek(request.position)

                try:
                    response = self._send(request, retry_state, url, headers, stream)
                except TransportError as cause:
                    self._retry(request, retry_state, cause)
                    continue

                try:
                    result = self._handle_response(request, retry_state, response, response_class)
                except S3EngineError as cause:
                    if not cause.retryable:
                        self._fail(request, retry_state, cause)
                        raise
                    self._retry(request, retry_state, cause)
                    continue

                if result is None:
                    continue
                self._complete(request, retry_state)
                return result

    def _send(
        self,
        request: S3Request,
        retry_state: RetryState,
        url: str,
        headers: Dict[str, str],
        stream: Optional[io.BytesIO],
    ) -> httpx.Response:
        content = None
        if stream is not None:
            self._transition(request, retry_state, ExecutionState.SENDING_BODY)
            content = self._iter_body(request, retry_state, stream)

        started = time.perf_counter()
        try:
            http_request = self._http_client.build_request(
                request.verb.value,
                url,
                headers=headers,
                content=content,
                timeout=self._timeout(request),
            )
            response = self._http_client.send(http_request, stream=True)
        except (httpx.TransportError, httpx.InvalidURL) as e:
            raise map_transport_error(e) from e
        request.metrics.response_time = time.perf_counter() - started
        if retry_state.state is not ExecutionState.AWAITING_RESPONSE:
            self._transition(request, retry_state, ExecutionState.AWAITING_RESPONSE)
        return response

    def _iter_body(self, request: S3Request, retry_state: RetryState, stream: io.BytesIO) -> Iterator[bytes]:
        total = len(stream.getbuffer()) - stream.tell()
        transferred = 0
        while True:
            chunk = stream.read(Limits.DEFAULT_BUFFER_SIZE)
            if not chunk:
                break
            transferred += len(chunk)
            request.metrics.bytes_processed += len(chunk)
            request.report_progress(len(chunk), transferred, total)
            yield chunk
        self._transition(request, retry_state, ExecutionState.AWAITING_RESPONSE)

    def _handle_response(
        self,
        request: S3Request,
        retry_state: RetryState,
        response: httpx.Response,
        response_class: Type[S3Response],
    ) -> Optional[S3Response]:
        """Return the decoded result, or None when the attempt was redirected."""
        route = self._route(request, response, response_class)

        if route is Route.REDIRECT:
            response.close()
            self._redirect(request, retry_state, response)
            return None

        if route is Route.STREAM:
            verify = request.parameters.get(P.VERIFY_CHECKSUM) == "true"
            try:
                return self._decoder.decode_object(
                    response.status_code, response.headers, ResponseStream(response), verify
                )
            except httpx.TransportError as e:
                raise map_transport_error(e) from e

        started = time.perf_counter()
        try:
            body = response.read()
        except httpx.TransportError as e:
            raise map_transport_error(e) from e
        finally:
            response.close()
        request.metrics.response_read_time = time.perf_counter() - started
        return self._decode_body(request, response, response_class, body)

    def _retry(self, request: S3Request, retry_state: RetryState, cause: S3EngineError) -> None:
        self._transition(request, retry_state, ExecutionState.RETRYING)
        self._next_attempt(request, retry_state, cause)
        delay = backoff_delay(retry_state.attempt)
        logger.debug(f"Retry number {retry_state.attempt + 1} for request {request.id} in {delay:.1f}s: {cause}")
        time.sleep(delay)
        self._reset_for_retry(request, retry_state)


class AsyncTransportExecutor(_ExecutorBase):
    """Executes requests on an ``httpx.AsyncClient``."""

    def __init__(
        self,
        config: ClientConfig,
        http_client: httpx.AsyncClient,
        credentials: Optional[S3Credentials] = None,
        before_request: Optional[BeforeRequestEvent] = None,
    ) -> None:
        super().__init__(config, credentials, before_request)
        self._http_client = http_client

    async def execute(
        self,
        request: S3Request,
        response_class: Type[S3Response],
        retry_state: Optional[RetryState] = None,
    ) -> S3Response:
        """Run ``request`` to completion. See ``TransportExecutor.execute``."""
        if retry_state is None:
            retry_state = RetryState(original_position=request.position)
        logger.debug(f"Starting request {request.id} for {request.parameters.get(P.ACTION)}")

        body = request_body(request)
        stream = io.BytesIO(body) if body is not None else None

        with self._snapshot() as credentials:
            while True:
                url, headers = self._prepare_attempt(request, retry_state, credentials)
                if stream is not None:
                    stream.seek(request.position)

                try:
                    response = await self._send(request, retry_state, url, headers, stream)
                except TransportError as cause:
                    await self._retry(request, retry_state, cause)
                    continue

                try:
                    result = await self._handle_response(request, retry_state, response, response_class)
                except S3EngineError as cause:
                    if not cause.retryable:
                        self._fail(request, retry_state, cause)
                        raise
                    await self._retry(request, retry_state, cause)
                    continue

                if result is None:
                    continue
                self._complete(request, retry_state)
                return result

    async def _send(
        self,
        request: S3Request,
        retry_state: RetryState,
        url: str,
        headers: Dict[str, str],
        stream: Optional[io.BytesIO],
    ) -> httpx.Response:
        content = None
        if stream is not None:
            self._transition(request, retry_state, ExecutionState.SENDING_BODY)
            content = self._aiter_body(request, retry_state, stream)

        started = time.perf_counter()
        try:
            http_request = self._http_client.build_request(
                request.verb.value,
                url,
                headers=headers,
                content=content,
                timeout=self._timeout(request),
            )
            response = await self._http_client.send(http_request, stream=True)
        except (httpx.TransportError, httpx.InvalidURL) as e:
            raise map_transport_error(e) from e
        request.metrics.response_time = time.perf_counter() - started
        if retry_state.state is not ExecutionState.AWAITING_RESPONSE:
            self._transition(request, retry_state, ExecutionState.AWAITING_RESPONSE)
        return response

    async def _aiter_body(
        self,
        request: S3Request,
        retry_state: RetryState,
        stream: io.BytesIO,
    ) -> AsyncIterator[bytes]:
        total = len(stream.getbuffer()) - stream.tell()
        transferred = 0
        while True:
            chunk = stream.read(Limits.DEFAULT_BUFFER_SIZE)
            if not chunk:
                break
            transferred += len(chunk)
            request.metrics.bytes_processed += len(chunk)
            request.report_progress(len(chunk), transferred, total)
            yield chunk
        self._transition(request, retry_state, ExecutionState.AWAITING_RESPONSE)

    async def _handle_response(
        self,
        request: S3Request,
        retry_state: RetryState,
        response: httpx.Response,
        response_class: Type[S3Response],
    ) -> Optional[S3Response]:
        route = self._route(request, response, response_class)

        if route is Route.REDIRECT:
            await response.aclose()
            self._redirect(request, retry_state, response)
            return None

        started = time.perf_counter()
        try:
            body = await response.aread()
        except httpx.TransportError as e:
            raise map_transport_error(e) from e
        finally:
            await response.aclose()
        request.metrics.response_read_time = time.perf_counter() - started

        if route is Route.STREAM:
            return self._decoder.decode_object(response.status_code, response.headers, io.BytesIO(body))
        return self._decode_body(request, response, response_class, body)

    async def _retry(self, request: S3Request, retry_state: RetryState, cause: S3EngineError) -> None:
        self._transition(request, retry_state, ExecutionState.RETRYING)
        self._next_attempt(request, retry_state, cause)
        delay = backoff_delay(retry_state.attempt)
        logger.debug(f"Retry number {retry_state.attempt + 1} for request {request.id} in {delay:.1f}s: {cause}")
        await asyncio.sleep(delay)
        self._reset_for_retry(request, retry_state)
