import httpx
import pytest

from bambite_client_sdk.errors import (
    ApiError,
    AuthExpiredError,
    AuthInvalidError,
    NetworkUnreachableError,
    RateLimitedError,
    ServerError,
    ValidationRejectedError,
    error_class_for_status,
)


@pytest.mark.parametrize(
    "status, auth_exempt, expected",
    [
        (401, False, AuthExpiredError),
        (401, True, AuthInvalidError),
        (429, False, RateLimitedError),
        (500, False, ServerError),
        (502, True, ServerError),
        (400, False, ValidationRejectedError),
        (403, False, ValidationRejectedError),
        (0, False, NetworkUnreachableError),
    ],
)
def test_error_class_for_status(status, auth_exempt, expected):
    assert error_class_for_status(status, auth_exempt=auth_exempt) is expected


def test_json_error_body_is_normalized():
    response = httpx.Response(
        422,
        json={"code": "VALIDATION_ERROR", "message": "status is invalid", "details": {"field": "status"}},
        headers={"X-Trace-ID": "trace-422"},
    )

    error = ApiError.from_http_response(response)

    assert isinstance(error, ValidationRejectedError)
    assert error.code == "VALIDATION_ERROR"
    assert error.details == {"field": "status"}
    assert error.trace_id == "trace-422"
    assert str(error) == "VALIDATION_ERROR: status is invalid"
    assert error.to_payload() == {"message": "status is invalid", "statusCode": 422, "errorCode": "VALIDATION_ERROR"}


def test_error_field_doubles_as_message():
    error = ApiError.from_http_response(httpx.Response(401, json={"error": "Token expired"}))

    assert isinstance(error, AuthExpiredError)
    assert error.message == "Token expired"


def test_html_error_page_yields_readable_message():
    html = "<!DOCTYPE html><html><body><pre>Error: Cannot GET /api/v1/nowhere</pre></body></html>"
    error = ApiError.from_http_response(httpx.Response(404, text=html))

    assert error.message == "Cannot GET /api/v1/nowhere"
    assert error.code == "HTTP_ERROR"


def test_retry_after_prefers_body_over_header():
    response = httpx.Response(429, json={"message": "slow down", "retryAfter": 12}, headers={"Retry-After": "60"})

    error = ApiError.from_http_response(response)

    assert isinstance(error, RateLimitedError)
    assert error.retry_after == 12.0
    assert error.to_payload()["retryAfter"] == 12.0


def test_unparseable_retry_after_is_dropped():
    response = httpx.Response(429, text="Too Many Requests", headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"})

    error = ApiError.from_http_response(response)

    assert error.retry_after is None
    assert error.code == "RATE_LIMITED"
    assert "retryAfter" not in error.to_payload()


def test_trace_id_from_body():
    error = ApiError.from_http_response(httpx.Response(500, json={"message": "boom", "trace_id": "t-body"}))

    assert error.trace_id == "t-body"
