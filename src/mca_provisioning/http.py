"""HTTP utilities for working with ARM JSON responses."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

from requests import Response

from .errors import ProvisioningError

# ARM echoes these on every response; support tickets need one of them
REQUEST_ID_HEADERS = ("x-ms-request-id", "x-ms-correlation-request-id")


@dataclass(slots=True)
class UnexpectedResponseError(ProvisioningError):
    """A 2xx ARM response whose body could not be decoded as JSON."""

    status_code: int
    url: str
    body_preview: str
    request_id: Optional[str] = None

    def __str__(self) -> str:
        where = self.url.split("?")[0]
        tracking = f" [request id {self.request_id}]" if self.request_id else ""
        return f"Undecodable response from {where} (HTTP {self.status_code}){tracking}: {self.body_preview}"


def request_id(response: Response) -> Optional[str]:
    headers = getattr(response, "headers", None) or {}
    for name in REQUEST_ID_HEADERS:
        if headers.get(name):
            return headers[name]
    return None


def parse_json(response: Response) -> Any:
    """Decode an ARM response body, raising UnexpectedResponseError on empty or malformed content."""

    url = response.request.url if response.request else "<unknown>"
    if not response.content:
        preview = "<empty body>"
    else:
        try:
            return response.json()
        except ValueError:
            preview = response.text[:300].replace("\n", " ").strip() or "<no text>"
    raise UnexpectedResponseError(
        status_code=response.status_code,
        url=url,
        body_preview=preview,
        request_id=request_id(response),
    )


def error_payload(response: Response) -> Any:
    """Best-effort extraction of a provider error body for diagnostics.

    ARM wraps failures as ``{"error": {"code": ..., "message": ...}}``; the
    wrapped object is returned when present, otherwise the decoded JSON or
    the raw text.
    """

    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    return body


def error_message(payload: Any) -> str:
    if isinstance(payload, dict):
        code = payload.get("code")
        message = payload.get("message") or payload.get("error_description")
        if code and message:
            return f"{code}: {message}"
        if message:
            return str(message)
        return json.dumps(payload, sort_keys=True)
    return str(payload)
