"""
Tests for the response envelope.

INVARIANT: Every response passes through finalize_response().
"""

import pytest
from pydantic import BaseModel

from matchbuffer.main import unhandled_error_handler
from matchbuffer.models.failure import (
    ApiResponse,
    FailureDetail,
    FailureKind,
    GroupNotFoundError,
    KnownError,
    OutcomeType,
    create_known_failure,
    create_success,
    create_unknown_failure,
    finalize_response,
    is_finalized,
)


class Payload(BaseModel):
    value: int


class TestCreateResponses:
    def test_success_is_finalized(self) -> None:
        response = create_success(Payload(value=3))

        assert response.outcome is OutcomeType.SUCCESS
        assert response.data == Payload(value=3)
        assert response.failure is None
        assert is_finalized(response)
        assert "_finalized" not in response.model_dump()

    def test_known_failure_keeps_reason_as_detail(self) -> None:
        response = create_known_failure(FailureKind.EMPTY_RESULT, "buffer empty")

        assert response.outcome is OutcomeType.KNOWN_FAILURE
        assert response.failure.kind is FailureKind.EMPTY_RESULT
        assert response.failure.detail == "buffer empty"
        assert response.failure.message == "The operation failed due to a known issue."
        assert is_finalized(response)

    def test_unknown_failure_names_exception_type(self) -> None:
        response = create_unknown_failure(RuntimeError("secret internals"))

        assert response.failure.kind is FailureKind.UNKNOWN
        assert response.failure.detail == "RuntimeError"
        assert "secret internals" not in response.model_dump_json()

    def test_unknown_failure_without_type(self) -> None:
        response = create_unknown_failure(RuntimeError("x"), include_type=False)

        assert response.failure.detail is None


class TestFinalizeResponse:
    def test_success_with_failure_is_rejected(self) -> None:
        response: ApiResponse[int] = ApiResponse(
            outcome=OutcomeType.SUCCESS,
            failure=FailureDetail(kind=FailureKind.UNKNOWN, message="x"),
        )

        with pytest.raises(ValueError, match="must not have failure"):
            finalize_response(response)

    def test_failure_without_detail_is_rejected(self) -> None:
        response: ApiResponse[int] = ApiResponse(outcome=OutcomeType.KNOWN_FAILURE)

        with pytest.raises(ValueError, match="must have failure details"):
            finalize_response(response)

    def test_unfinalized_response(self) -> None:
        response: ApiResponse[int] = ApiResponse(outcome=OutcomeType.SUCCESS, data=1)

        assert not is_finalized(response)


class TestKnownError:
    def test_to_response(self) -> None:
        error = KnownError(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message="Not ready",
            suggestion="Retry",
            status_code=503,
        )

        response = error.to_response()

        assert error.status_code == 503
        assert response.failure.kind is FailureKind.SERVICE_UNAVAILABLE
        assert response.failure.message == "Not ready"
        assert is_finalized(response)

    def test_group_not_found(self) -> None:
        error = GroupNotFoundError("gamma")

        assert error.status_code == 404
        assert error.kind is FailureKind.NOT_FOUND
        assert "gamma" in error.message


class TestUnhandledErrorHandler:
    async def test_unknown_failure_body(self) -> None:
        response = await unhandled_error_handler(None, ZeroDivisionError("boom"))

        assert response.status_code == 500
        assert b'"unknown_failure"' in response.body
        assert b"ZeroDivisionError" in response.body
