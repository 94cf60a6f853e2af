# calendar_core/utils/http.py
"""HTTP helpers shared by the vendor calendar clients and the OAuth2 token endpoints"""
from typing import Any, Optional, Tuple

import requests

from calendar_core.exceptions import ApiError, AuthenticationError


def extract_error(body: Any) -> Tuple[Optional[str], Optional[str]]:
    """(message, code) from Google / Graph ``{"error": {...}}`` or OAuth2 ``{"error": "..."}`` bodies"""
    if not isinstance(body, dict):
        return None, None
    error = body.get("error")
    if isinstance(error, dict):
        code = error.get("code") or error.get("status")
        return error.get("message"), str(code) if code is not None else None
    if isinstance(error, str):
        return body.get("error_description") or error, error
    return body.get("message"), None


def raise_for_response(response: requests.Response, operation: str) -> None:
    """Map a non-2xx vendor response onto the error taxonomy"""
    status = response.status_code
    if 200 <= status < 300:
        return

    try:
        body = response.json()
    except ValueError:
        body = None
    message, code = extract_error(body)
    detail = message or f"HTTP {status}"

    if status in (401, 403):
        raise AuthenticationError(f"Authentication error while trying to {operation}: {detail}")
    raise ApiError(
        f"Calendar API error while trying to {operation}: {detail}",
        status_code=status,
        error_code=code,
    )


def send(
        session: requests.Session,
        method: str,
        url: str,
        operation: str,
        timeout: float,
        **kwargs
) -> requests.Response:
    """Perform one HTTP call; timeouts and connection failures become transient ApiErrors"""
    try:
        return session.request(method, url, timeout=timeout, **kwargs)
    except requests.Timeout as exc:
        raise ApiError(
            f"Timed out while trying to {operation}",
            transient=True,
            cause=exc,
        )
    except requests.RequestException as exc:
        raise ApiError(
            f"Network error while trying to {operation}: {exc}",
            transient=True,
            cause=exc,
        )
