"""
s3engine - Async results

The handle returned by ``begin_*`` operations.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from s3engine.exceptions import S3EngineError
from s3engine.models import S3Request, S3Response

logger = logging.getLogger("s3engine.future")


class ExecutionState(str, Enum):
    """States of one logical operation in the transport executor."""
    INIT = "init"
    SIGNING = "signing"
    CONNECTING = "connecting"
    SENDING_BODY = "sending_body"
    AWAITING_RESPONSE = "awaiting_response"
    REDIRECTING = "redirecting"
    RETRYING = "retrying"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class RetryState:
    """Attempt bookkeeping shared by retries and redirects."""
    original_position: int = 0
    attempt: int = 0
    last_cause: Optional[S3EngineError] = None
    state: ExecutionState = ExecutionState.INIT


class S3AsyncResult:
    """
    Completion handle for one logical operation.

    The result slot is filled once, the wait event is set once and the
    callback fires once, however many redirects and retries the operation
    went through.

    Attributes:
        request: The request being executed
        async_state: Caller-supplied state object
        completed_synchronously: True when the whole chain ran inline
        retry_state: Attempt counter and last retryable cause
    """

    def __init__(
        self,
        request: S3Request,
        callback: Optional[Callable[["S3AsyncResult"], None]] = None,
        state: Any = None,
        completed_synchronously: bool = False,
    ) -> None:
        self.request = request
        self.callback = callback
        self.async_state = state
        self.completed_synchronously = completed_synchronously
        self.retry_state = RetryState(original_position=request.position)
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._completed = False
        self._response: Optional[S3Response] = None
        self._exception: Optional[BaseException] = None

    @property
    def is_completed(self) -> bool:
        return self._completed

    @property
    def exception(self) -> Optional[BaseException]:
        return self._exception

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def set_result(self, response: S3Response) -> None:
        self._complete(response=response)

    def set_exception(self, exception: BaseException) -> None:
        self._complete(exception=exception)

    def _complete(
        self,
        response: Optional[S3Response] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        with self._lock:
            if self._completed:
                logger.debug(f"Ignoring late completion for request {self.request.id}")
                return
            self._response = response
            self._exception = exception
            self._completed = True
        self._event.set()

        if self.callback is not None:
            try:
                self.callback(self)
            except Exception as e:
                logger.error(f"Error in completion callback for request {self.request.id}: {e}")

    def end(self) -> Optional[S3Response]:
        """
        Wait for completion and hand back the response.

        Raises the stored error if the operation failed. The response is
        returned once; later calls return None.
        """
        if not self._completed:
            self._event.wait()

        if self._exception is not None:
            raise self._exception

        with self._lock:
            response, self._response = self._response, None
        return response

    def __repr__(self) -> str:
        return (
            f"S3AsyncResult(request={self.request!r}, completed={self._completed}, "
            f"attempt={self.retry_state.attempt})"
        )
