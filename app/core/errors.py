# Error taxonomy and JSON error envelopes

import traceback
from typing import Any, Dict, Optional

from fastapi import status


class WarehouseError(Exception):
    """Raised when the analytics warehouse rejects or fails a query"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# (patterns, status, public message); first match wins
ERROR_CLASSES = (
    (
        ("Not found: Table",),
        status.HTTP_404_NOT_FOUND,
        "BigQuery table not found. Please ensure BigQuery export is enabled and data exists.",
    ),
    (
        ("Permission denied", "Access Denied"),
        status.HTTP_403_FORBIDDEN,
        "Permission denied. Check service account permissions.",
    ),
    (
        ("Firebase", "credential", "authentication", "invalid_grant"),
        status.HTTP_401_UNAUTHORIZED,
        "Firebase authentication error",
    ),
)


def classify_error(exc: BaseException) -> tuple[int, Optional[str]]:
    """
    Map an exception to an HTTP status by looking at its message.

    Returns:
        (status_code, public_message). public_message is None when the
        error is unclassified and the raw message should be reported.
    """
    message = str(exc)
    lowered = message.lower()

    for patterns, status_code, public_message in ERROR_CLASSES:
        if any(pattern.lower() in lowered for pattern in patterns):
            return status_code, public_message

    status_code = getattr(exc, "status_code", None) or status.HTTP_500_INTERNAL_SERVER_ERROR
    return status_code, None


def error_response_body(exc: BaseException, include_stack: bool = False) -> tuple[int, Dict[str, Any]]:
    """Build the failure envelope for an exception"""
    status_code, public_message = classify_error(exc)

    if public_message is not None:
        return status_code, {
            "success": False,
            "error": public_message,
            "details": str(exc),
        }

    body: Dict[str, Any] = {
        "success": False,
        "error": str(exc) or "Internal server error",
    }
    if include_stack:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    return status_code, body
