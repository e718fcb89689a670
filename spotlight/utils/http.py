"""Shared HTTP helpers for external collaborator services."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from spotlight.config import settings

logger = logging.getLogger(__name__)


class CollaboratorError(RuntimeError):
    """Raised when an external collaborator rejects a request or returns garbage."""


class CollaboratorUnavailableError(CollaboratorError):
    """Raised when an external collaborator cannot be reached."""


def extract_error_detail(response: httpx.Response) -> str:
    """Extract concise error detail from a collaborator response."""
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text or f"HTTP {response.status_code}"

    if isinstance(payload, dict):
        parts: List[str] = []
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if value:
                parts.append(str(value))
        if parts:
            return ": ".join(parts)

    return f"HTTP {response.status_code}"


async def request_json(
    method: str,
    url: str,
    service: str,
    payload: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
) -> Any:
    """
    Send a JSON request to a collaborator and return the decoded body.

    Args:
        method: HTTP method
        url: Full URL
        service: Collaborator name used in error messages
        payload: Optional JSON body
        params: Optional query parameters
        timeout: Request timeout (defaults to settings.collaborator_timeout_sec)

    Raises:
        CollaboratorUnavailableError: On timeouts and connection errors
        CollaboratorError: On non-2xx responses or invalid JSON
    """
    timeout = timeout or settings.collaborator_timeout_sec
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.request(method, url, json=payload, params=params)
    except httpx.TimeoutException as exc:
        raise CollaboratorUnavailableError(f"{service} request timed out") from exc
    except httpx.RequestError as exc:
        raise CollaboratorUnavailableError(f"Unable to reach {service}") from exc

    if response.status_code >= 400:
        detail = extract_error_detail(response)
        raise CollaboratorError(f"{service} returned an error: {detail}")

    try:
        return response.json()
    except ValueError as exc:
        raise CollaboratorError(f"{service} returned an invalid response") from exc
