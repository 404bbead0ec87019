"""
Before-request notifications.
"""

import threading
from typing import Tuple

from s3engine.models import BeforeRequestEventArgs, BeforeRequestHandler, S3Request


class BeforeRequestEvent:
    """
    Observer list fired before each request is signed.

    Handlers are stored in a tuple that is replaced on every change, so
    dispatch can iterate without holding the lock while other threads
    add or remove handlers.
    """

    def __init__(self) -> None:
        self._handlers: Tuple[BeforeRequestHandler, ...] = ()
        self._lock = threading.Lock()

    def add(self, handler: BeforeRequestHandler) -> None:
        with self._lock:
            self._handlers = self._handlers + (handler,)

    def remove(self, handler: BeforeRequestHandler) -> None:
        with self._lock:
            handlers = list(self._handlers)
            if handler in handlers:
                handlers.remove(handler)
            self._handlers = tuple(handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def fire(self, request: S3Request, config) -> None:
        """Notify request-level handlers, then client-level ones."""
        args = BeforeRequestEventArgs(request=request, config=config)
        for handler in request.before_request_handlers + self._handlers:
            handler(args)
