"""Logging and redaction for git-dx runs."""

from git_dx.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    correlation_scope,
    get_active_logging_handle,
    get_correlation_context,
    redact_fields,
    redact_text,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "get_active_logging_handle",
    "get_correlation_context",
    "redact_fields",
    "redact_text",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
