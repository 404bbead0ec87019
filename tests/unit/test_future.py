"""Unit tests for async results and before-request events."""

from unittest.mock import MagicMock

import pytest

from s3engine import ServiceTerminalError
from s3engine.events import BeforeRequestEvent
from s3engine.future import ExecutionState, S3AsyncResult
from s3engine.models import GetObjectRequest, PutObjectRequest, S3Response


class TestS3AsyncResult:
    """Tests for S3AsyncResult."""

    def test_initial_state(self):
        request = PutObjectRequest(bucket_name="b", key="k", data=b"0123", position=2)
        result = S3AsyncResult(request, state="user-state")

        assert result.is_completed is False
        assert result.async_state == "user-state"
        assert result.retry_state.original_position == 2
        assert result.retry_state.attempt == 0
        assert result.retry_state.state is ExecutionState.INIT
        assert result.wait(timeout=0.01) is False

    def test_result_consumed_once(self):
        result = S3AsyncResult(GetObjectRequest("b", "k"))
        response = S3Response()

        result.set_result(response)

        assert result.is_completed is True
        assert result.end() is response
        assert result.end() is None

    def test_exception_reraised(self):
        result = S3AsyncResult(GetObjectRequest("b", "k"))
        error = ServiceTerminalError("denied", code="AccessDenied")

        result.set_exception(error)

        with pytest.raises(ServiceTerminalError) as exc_info:
            result.end()
        assert exc_info.value is error
        with pytest.raises(ServiceTerminalError):
            result.end()

    def test_callback_fires_once(self):
        callback = MagicMock()
        result = S3AsyncResult(GetObjectRequest("b", "k"), callback=callback)

        result.set_result(S3Response())
        result.set_exception(RuntimeError("late"))

        callback.assert_called_once_with(result)
        assert result.exception is None

    def test_callback_error_does_not_lose_result(self):
        response = S3Response()
        result = S3AsyncResult(GetObjectRequest("b", "k"), callback=MagicMock(side_effect=ValueError("boom")))

        result.set_result(response)

        assert result.end() is response

    def test_wait_after_completion(self):
        result = S3AsyncResult(GetObjectRequest("b", "k"))
        result.set_result(S3Response())

        assert result.wait(timeout=0.01) is True


class TestBeforeRequestEvent:
    """Tests for BeforeRequestEvent."""

    def test_request_handlers_fire_first(self):
        calls = []
        event = BeforeRequestEvent()
        event.add(lambda args: calls.append("client"))
        request = GetObjectRequest("b", "k").with_before_request_handler(lambda args: calls.append("request"))

        event.fire(request, config="config")

        assert calls == ["request", "client"]

    def test_args_carry_request_and_config(self):
        handler = MagicMock()
        event = BeforeRequestEvent()
        event.add(handler)
        request = GetObjectRequest("b", "k")

        event.fire(request, config="config")

        args = handler.call_args.args[0]
        assert args.request is request
        assert args.config == "config"

    def test_remove(self):
        handler = MagicMock()
        event = BeforeRequestEvent()
        event.add(handler)

        event.remove(handler)
        event.remove(handler)
        event.fire(GetObjectRequest("b", "k"), config=None)

        handler.assert_not_called()
        assert len(event) == 0

    def test_handler_added_during_dispatch(self):
        event = BeforeRequestEvent()
        late = MagicMock()
        event.add(lambda args: event.add(late))

        event.fire(GetObjectRequest("b", "k"), config=None)

        late.assert_not_called()
        assert len(event) == 2
