"""Backend HTTP failures.

A rejected request carries the status code and a one-line reason taken from
the response body. The backend answers errors as ``{"message": "..."}`` or
``{"error": ...}``; its validation layer answers
``{"detail": [{"loc": [...], "msg": "..."}]}``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

DETAIL_LIMIT = 300


class BackendError(Exception):
    """Base class for every failure talking to the backend."""

    def __init__(self, message: str, method: str = "", path: str = "") -> None:
        super().__init__(message)
        self.method = method
        self.path = path


class BackendUnavailable(BackendError):
    """The request never got an HTTP response (DNS, refused connection, reset)."""


class BackendTimeout(BackendUnavailable):
    """The request exceeded the configured timeout; the outcome server-side is unknown."""


class BackendRejected(BackendError):
    """The backend answered with an HTTP error status."""

    def __init__(self, status_code: int, detail: str, method: str = "", path: str = "") -> None:
        super().__init__(f"{method} {path} returned {status_code}: {detail}", method, path)
        self.status_code = status_code
        self.detail = detail

    @classmethod
    def from_response(cls, response: httpx.Response, method: str = "", path: str = "") -> BackendRejected:
        try:
            body = response.json()
        except ValueError:
            detail = response.text[:DETAIL_LIMIT] or f"HTTP {response.status_code} with no body"
        else:
            detail = _reason(body)
        return cls(response.status_code, detail, method, path)

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


class MalformedResponse(BackendError):
    """The backend answered 2xx with a body the client cannot use."""


def _reason(body: Any) -> str:
    if isinstance(body, dict):
        validation = body.get("detail")
        if isinstance(validation, list):
            return " | ".join(_validation_entry(entry) for entry in validation)
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, dict):
                return ", ".join(f"{field}: {problem}" for field, problem in value.items())
            if value:
                return str(value)
    return str(body)[:DETAIL_LIMIT]


def _validation_entry(entry: Any) -> str:
    if not isinstance(entry, dict):
        return str(entry)
    location = ".".join(str(part) for part in entry.get("loc", ()))
    message = entry.get("msg", "invalid")
    return f"{location}: {message}" if location else message
