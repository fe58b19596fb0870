"""Error taxonomy shared by the pipeline, its collaborators and the app shell.

Fatal startup errors (configuration, styles, clipboard) abort before any tab
exists. Transport errors describe a single failed remote call. Analysis errors
never leave the two-pass transform; pipeline errors end one tab.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for machine-readable error codes."""

    # Startup errors
    CONFIG_MISSING = "config_missing"
    NO_STYLES_FOUND = "no_styles_found"
    CLIPBOARD_EMPTY = "clipboard_empty"
    UNKNOWN_STYLE = "unknown_style"

    # Transport errors
    TRANSPORT_NETWORK = "transport_network"
    TRANSPORT_HTTP = "transport_http"
    TRANSPORT_MALFORMED = "transport_malformed"

    # Pipeline errors
    ANALYSIS_INVALID_JSON = "analysis_invalid_json"
    PIPELINE_ERROR = "pipeline_error"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class StylistError(Exception):
    """Base exception for every error raised by the stylist package.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable description shown to the user.
        details: Additional structured information for logs.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    fatal: ClassVar[bool] = False

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return self.message


# -----------------------------------------------------------------------------
# Startup Errors
# -----------------------------------------------------------------------------

@dataclass
class ConfigMissingError(StylistError):
    """Raised when the API configuration is absent or has no API key."""

    error_code: str = field(default=ErrorCode.CONFIG_MISSING)
    message: str = field(
        default="API key not configured.\n\nSet STYLIST_API_KEY or add api_key to your settings file."
    )
    details: dict[str, Any] = field(default_factory=dict)

    fatal: ClassVar[bool] = True


@dataclass
class NoStylesFoundError(StylistError):
    """Raised when no style prompt could be loaded."""

    error_code: str = field(default=ErrorCode.NO_STYLES_FOUND)
    message: str = field(default="No prompt files found in prompts directory.")
    details: dict[str, Any] = field(default_factory=dict)

    fatal: ClassVar[bool] = True


@dataclass
class ClipboardEmptyError(StylistError):
    """Raised when there is no text to transform."""

    error_code: str = field(default=ErrorCode.CLIPBOARD_EMPTY)
    message: str = field(
        default="Clipboard is empty or contains unsupported data.\n\nPlease copy some text and try again."
    )
    details: dict[str, Any] = field(default_factory=dict)

    fatal: ClassVar[bool] = True


# -----------------------------------------------------------------------------
# Transport Errors
# -----------------------------------------------------------------------------

@dataclass
class TransportError(StylistError):
    """Base class for a failed chat-completion request."""

    error_code: str = field(default=ErrorCode.TRANSPORT_NETWORK)
    message: str = field(default="Request failed")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransportNetworkError(TransportError):
    """Connection failure or timeout; the two are not distinguished."""

    error_code: str = field(default=ErrorCode.TRANSPORT_NETWORK)
    message: str = field(default="Network error")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransportHTTPError(TransportError):
    """The endpoint answered with a non-2xx status."""

    error_code: str = field(default=ErrorCode.TRANSPORT_HTTP)
    message: str = field(default="")
    details: dict[str, Any] = field(default_factory=dict)

    status_code: int = 0
    body: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"API error (HTTP {self.status_code}):\n{self.body}".rstrip()
        self.details.setdefault("status_code", self.status_code)
        super().__post_init__()


@dataclass
class TransportMalformedError(TransportError):
    """The response did not carry ``choices[0].message.content``."""

    error_code: str = field(default=ErrorCode.TRANSPORT_MALFORMED)
    message: str = field(default="Unexpected API response format")
    details: dict[str, Any] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Pipeline Errors
# -----------------------------------------------------------------------------

@dataclass
class AnalysisInvalidJSONError(StylistError):
    """First-pass output did not contain a parseable JSON object."""

    error_code: str = field(default=ErrorCode.ANALYSIS_INVALID_JSON)
    message: str = field(default="Semantic analysis was not valid JSON")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineError(StylistError):
    """Terminal, user-visible failure of one tab."""

    error_code: str = field(default=ErrorCode.PIPELINE_ERROR)
    message: str = field(default="Transformation failed")
    details: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ErrorCode",
    "StylistError",
    "ConfigMissingError",
    "NoStylesFoundError",
    "ClipboardEmptyError",
    "TransportError",
    "TransportNetworkError",
    "TransportHTTPError",
    "TransportMalformedError",
    "AnalysisInvalidJSONError",
    "PipelineError",
]
