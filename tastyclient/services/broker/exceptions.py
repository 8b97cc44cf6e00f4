"""
Broker Exception Hierarchy
==========================
Normalized error types for every client operation.

Local problems (validation, expired session) are raised before any request
is sent. Non-2xx responses become BrokerAPIException; transport failures
become BrokerTimeoutException / BrokerUnavailableException.
"""

import json
from typing import List, Optional


class BrokerException(Exception):
    """Base exception for all broker operations."""

    def __init__(self, message: str, status_code: int = None, raw_response: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.raw_response = raw_response


class BrokerAPIException(BrokerException):
    """Non-2xx response from the API, decoded into status + message + sub-errors."""

    def __init__(self, status_code: int, message: str, errors: List[str] = None,
                 code: str = None, raw_response: str = None):
        super().__init__(message, status_code=status_code, raw_response=raw_response)
        self.message = message
        self.code = code
        self.errors = tuple(errors or ())

    def __str__(self):
        if self.errors:
            return (f"API error (status {self.status_code}): {self.message} - "
                    f"{'; '.join(self.errors)}")
        return f"API error (status {self.status_code}): {self.message}"

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def is_forbidden(self) -> bool:
        return self.status_code == 403


class BrokerAuthException(BrokerException):
    """No usable session. The caller must (re-)authenticate explicitly."""
    pass


class BrokerSessionExpiredException(BrokerAuthException):
    """Session token is past (or within the safety margin of) its expiry.

    Detected before any request is sent; there is no silent refresh.
    """
    pass


class BrokerOrderValidationException(BrokerException):
    """Order is structurally invalid. Raised before any network call."""

    def __init__(self, reason: str):
        super().__init__(f"Invalid order: {reason}")
        self.reason = reason


class BrokerDecodeException(BrokerException):
    """Response body matched neither the enveloped nor the bare shape."""

    def __init__(self, message: str, target: str = None, raw_response: str = None):
        super().__init__(message, raw_response=raw_response)
        self.target = target


class BrokerUnavailableException(BrokerException):
    """Connection to the API failed."""
    pass


class BrokerTimeoutException(BrokerException):
    """Request to the API timed out."""
    pass


class BrokerCancelledException(BrokerException):
    """Operation was cancelled by the caller or its deadline passed."""
    pass


def is_api_error(exc) -> bool:
    return isinstance(exc, BrokerAPIException)


def _flatten_errors(raw) -> List[str]:
    """Sub-errors arrive as strings or as {domain, reason, message} objects."""
    flattened = []
    for item in raw or []:
        if isinstance(item, dict):
            text = item.get("message") or item.get("reason") or json.dumps(item)
            domain = item.get("domain") or item.get("code")
            flattened.append(f"{domain}: {text}" if domain else text)
        else:
            flattened.append(str(item))
    return flattened


def parse_error_response(status_code: int, body: str) -> BrokerAPIException:
    """Build a BrokerAPIException from an error response body.

    Accepts {"error": {"message", "code", "errors"}} and the flat
    {"message", "code", "errors"} shape. Anything else (including non-JSON)
    is kept verbatim as the message.
    """
    raw = (body or "")[:2000]
    try:
        data = json.loads(body) if body else None
    except ValueError:
        data = None

    if isinstance(data, dict):
        payload = data.get("error", data)
        if isinstance(payload, str):
            return BrokerAPIException(status_code, payload, raw_response=raw)
        if isinstance(payload, dict) and ("message" in payload or "errors" in payload or "code" in payload):
            errors = _flatten_errors(payload.get("errors"))
            message = payload.get("message") or (errors[0] if errors else raw)
            return BrokerAPIException(
                status_code,
                message,
                errors=errors,
                code=payload.get("code"),
                raw_response=raw,
            )

    return BrokerAPIException(status_code, raw or f"HTTP {status_code}", raw_response=raw)
