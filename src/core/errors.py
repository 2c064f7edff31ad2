"""Shared error kinds for recognition results.

Every failure produced by the recognition core is normalized into one of
these kinds before it reaches the API layer.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"  # Empty or non-image payload
    MISSING_CREDENTIAL = "MISSING_CREDENTIAL"  # No provider API key supplied
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"  # DNS/connect/timeout before any HTTP status
    PROVIDER_REJECTED = "PROVIDER_REJECTED"  # Non-2xx HTTP status from provider
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"  # 2xx body not matching the success schema


__all__ = ["ErrorKind"]
