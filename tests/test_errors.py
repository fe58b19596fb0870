"""Tests for the error taxonomy."""

from __future__ import annotations

import pytest

from stylist.ai.errors import (
    AnalysisInvalidJSONError,
    ClipboardEmptyError,
    ConfigMissingError,
    ErrorCode,
    NoStylesFoundError,
    PipelineError,
    StylistError,
    TransportHTTPError,
    TransportNetworkError,
)


@pytest.mark.parametrize("error_type", [ConfigMissingError, NoStylesFoundError, ClipboardEmptyError])
def test_startup_errors_are_fatal(error_type: type[StylistError]) -> None:
    assert error_type().fatal is True


@pytest.mark.parametrize(
    "error",
    [
        TransportNetworkError(),
        TransportHTTPError(status_code=500, body="oops"),
        AnalysisInvalidJSONError(),
        PipelineError(),
        StylistError(error_code=ErrorCode.UNKNOWN_STYLE, message="Unknown style: pirate"),
    ],
)
def test_per_request_errors_are_not_fatal(error: StylistError) -> None:
    assert error.fatal is False


def test_to_dict_omits_empty_details() -> None:
    error = StylistError(error_code=ErrorCode.UNKNOWN_STYLE, message="Unknown style: pirate")

    assert error.to_dict() == {"error": "unknown_style", "message": "Unknown style: pirate"}
    assert str(error) == "Unknown style: pirate"


def test_to_dict_copies_details() -> None:
    error = ClipboardEmptyError(details={"reason": "no display"})

    payload = error.to_dict()
    payload["details"]["reason"] = "changed"

    assert payload["error"] == ErrorCode.CLIPBOARD_EMPTY
    assert error.details == {"reason": "no display"}


def test_http_error_records_status_in_details() -> None:
    error = TransportHTTPError(status_code=429, body="slow down")

    assert error.message == "API error (HTTP 429):\nslow down"
    assert error.to_dict()["details"] == {"status_code": 429}
