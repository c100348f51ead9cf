"""
registry_sdk.tier0_core.errors
───────────────────────────────
Standard error taxonomy for schema negotiation and wire encoding, plus
optional Sentry/OTel error capture. Constructing an SDKError here
automatically reports it if an error backend is configured.

Every error carries keyword context (subject, operation, schema_id,
byte_length, ...) so a failure can be diagnosed without retrying.

Select via:    REGISTRY_SDK_ERROR_BACKEND=sentry|otel|none
"""
from __future__ import annotations

import os
from typing import Any


# ── Base error ────────────────────────────────────────────────────────────────

class SDKError(Exception):
    """
    Base class for all registry_sdk errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: short human-readable description
    - detail: internal context, defaults to user_message
    - status_code: closest HTTP status, for services that surface the error
    - metadata: keyword context rendered after the message
    """

    status_code: int = 500
    code: str = "internal_error"
    # Whether construction reports the error to the capture backend.
    reportable: bool = True

    def __init__(
        self,
        user_message: str = "An unexpected error occurred.",
        *,
        code: str | None = None,
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)
        _capture(self)

    def __str__(self) -> str:
        if not self.metadata:
            return self.detail
        context = ", ".join(f"{k}={v!r}" for k, v in self.metadata.items())
        return f"{self.detail} ({context})"

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
                "context": dict(self.metadata),
            }
        }


# ── Input and configuration ───────────────────────────────────────────────────

class ValidationError(SDKError):
    """Caller input failed validation (e.g. an empty subject)."""
    status_code = 422
    code = "validation_error"

    def __init__(
        self,
        user_message: str = "Validation failed.",
        *,
        fields: dict | None = None,
        **kwargs: Any,
    ) -> None:
        self.fields = fields or {}
        super().__init__(user_message, **kwargs)

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.fields:
            d["error"]["fields"] = self.fields
        return d


class ConfigurationError(SDKError):
    """Misconfiguration detected at startup."""
    status_code = 500
    code = "configuration_error"


class SpecParseError(SDKError):
    """Schema text is not valid JSON or not a valid Avro schema."""
    status_code = 422
    code = "spec_parse_error"


class ConflictError(SDKError):
    """A schema id was offered with a document other than the one it names."""
    status_code = 409
    code = "conflict"


# ── Registry round trips ──────────────────────────────────────────────────────

class TransportError(SDKError):
    """Connection failure or deadline exceeded talking to the registry."""
    status_code = 503
    code = "transport_error"


class NotFoundError(SDKError):
    """
    The registry has no schema registered under the subject yet. Negotiation
    treats this as the cue to register, so it is not reported.
    """
    status_code = 404
    code = "not_found"
    reportable = False


class AuthError(SDKError):
    """The registry rejected the configured credentials."""
    status_code = 401
    code = "auth_error"


class UpstreamError(SDKError):
    """The registry answered with an error or a malformed response."""
    status_code = 502
    code = "upstream_error"


# ── Wire codec ────────────────────────────────────────────────────────────────

class CodecError(SDKError):
    """Base for per-message encode/decode failures."""
    status_code = 422
    code = "codec_error"


class FormatError(CodecError):
    """Envelope shorter than the header or carrying the wrong marker byte."""
    code = "format_error"


class UnknownSchemaError(CodecError):
    """Envelope references a schema id the decoder cannot resolve."""
    code = "unknown_schema"


class EncodingError(CodecError):
    """Value does not conform to the schema's expected shape."""
    code = "encoding_error"


class DecodingError(CodecError):
    """Payload is malformed, truncated, or does not match the schema."""
    code = "decoding_error"


# ── Error capture backend ─────────────────────────────────────────────────────

def _capture(error: SDKError) -> None:
    """Send error to configured backend. Called automatically by SDKError.__init__."""
    backend = os.getenv("REGISTRY_SDK_ERROR_BACKEND", "none").lower()
    if backend == "none" or not error.reportable:
        return
    if backend == "sentry":
        _capture_sentry(error)
    elif backend == "otel":
        _capture_otel(error)


def _capture_sentry(error: SDKError) -> None:
    try:
        import sentry_sdk
    except ImportError:
        return
    if error.status_code >= 500:
        sentry_sdk.capture_exception(error)
    else:
        sentry_sdk.capture_message(
            str(error),
            level="warning",
            extras={"code": error.code, **error.metadata},
        )


def _capture_otel(error: SDKError) -> None:
    try:
        from opentelemetry import trace
    except ImportError:
        return
    span = trace.get_current_span()
    span.record_exception(error)
    span.set_status(trace.StatusCode.ERROR, str(error))



__all__ = [
    "SDKError", "ValidationError", "ConfigurationError", "SpecParseError",
    "ConflictError", "TransportError", "NotFoundError", "AuthError",
    "UpstreamError", "CodecError", "FormatError", "UnknownSchemaError",
    "EncodingError", "DecodingError",
]
