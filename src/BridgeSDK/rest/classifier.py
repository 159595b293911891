# === NAVMAP v1 ===
# {
#   "module": "BridgeSDK.rest.classifier",
#   "purpose": "Map completed exchanges and transport failures to the SDK error taxonomy.",
#   "sections": [
#     {
#       "id": "classify-response",
#       "name": "classify_response",
#       "anchor": "function-classify-response",
#       "kind": "function"
#     },
#     {
#       "id": "create-classifier-stage",
#       "name": "create_classifier_stage",
#       "anchor": "function-create-classifier-stage",
#       "kind": "function"
#     },
#     {
#       "id": "create-warning-stage",
#       "name": "create_warning_stage",
#       "anchor": "function-create-warning-stage",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Map completed exchanges and transport failures to the SDK error taxonomy.

This is the single place where raw HTTPX outcomes become typed errors.  The
classifier never retries; retry decisions belong to the session attacher
(authentication only) or to caller policy (see :mod:`BridgeSDK.rest.retry`).

The companion warning stage tags responses carrying a deprecation or
``Warning`` header so they show up in logs, without changing control flow.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Set, Type

import httpx

from BridgeSDK.errors import (
    AuthenticationFailed,
    BridgeHTTPError,
    Conflict,
    ConsentRequired,
    Forbidden,
    NotFound,
    ServerError,
    TransportError,
    UnsupportedVersion,
    ValidationFailed,
)
from BridgeSDK.models import UserSessionInfo
from BridgeSDK.rest.instrumentation import redact_url
from BridgeSDK.rest.policy import (
    API_STATUS_DEPRECATED,
    API_STATUS_HEADER,
    STAGE_CLASSIFY,
    STAGE_WARNINGS,
    WARNING_HEADER,
)
from BridgeSDK.rest.stages import CallNext, NamedStage

logger = logging.getLogger(__name__)

#: Response extension key listing warning messages attached by the warning stage
WARNINGS_EXTENSION = "bridge_warnings"

_STATUS_ERRORS: Dict[int, Type[BridgeHTTPError]] = {
    400: ValidationFailed,
    401: AuthenticationFailed,
    403: Forbidden,
    404: NotFound,
    409: Conflict,
    410: UnsupportedVersion,
    412: ConsentRequired,
}

_warned: Set[str] = set()
_warned_lock = threading.Lock()


def classify_response(response: httpx.Response) -> httpx.Response:
    """Return ``response`` unchanged on success, otherwise raise its typed error.

    Raises:
        ValidationFailed: 400, with per-field ``errors`` when the body has them.
        AuthenticationFailed: 401.
        Forbidden: 403.
        NotFound: 404.
        Conflict: 409.
        UnsupportedVersion: 410.
        ConsentRequired: 412, carrying the session from the body when present.
        ServerError: Any 5xx.
        BridgeHTTPError: Any other status of 400 or above.
    """
    status = response.status_code
    if status < 400:
        return response

    response.read()
    body = _json_body(response)
    message = _message(body, response)
    headers = dict(response.headers.items())

    if status >= 500:
        raise ServerError(message, status_code=status, body=body, headers=headers)

    error_type = _STATUS_ERRORS.get(status, BridgeHTTPError)
    if error_type is ValidationFailed:
        raise ValidationFailed(
            message, status_code=status, body=body, headers=headers, errors=_field_errors(body)
        )
    if error_type is ConsentRequired:
        raise ConsentRequired(
            message, status_code=status, body=body, headers=headers, session=_session(body)
        )
    raise error_type(message, status_code=status, body=body, headers=headers)


def create_classifier_stage() -> NamedStage:
    """Create the stage that turns outcomes into typed results or errors."""

    def _classify(request: httpx.Request, call_next: CallNext) -> httpx.Response:
        try:
            response = call_next(request)
        except httpx.TransportError as exc:
            raise TransportError(
                f"{request.method} {redact_url(str(request.url))} failed: {exc}"
            ) from exc
        return classify_response(response)

    return NamedStage(STAGE_CLASSIFY, _classify)


def create_warning_stage() -> NamedStage:
    """Create the stage that tags deprecation and warning headers on responses."""

    def _tag(request: httpx.Request, call_next: CallNext) -> httpx.Response:
        response = call_next(request)
        warnings = response_warnings(response)
        if warnings:
            response.extensions[WARNINGS_EXTENSION] = warnings
            for warning in warnings:
                _warn_once(f"{request.method} {request.url.path}: {warning}")
        return response

    return NamedStage(STAGE_WARNINGS, _tag)


def response_warnings(response: httpx.Response) -> List[str]:
    """Collect the warning signals carried by ``response`` headers."""
    found: List[str] = []
    status = response.headers.get(API_STATUS_HEADER)
    if status and status.strip().lower() == API_STATUS_DEPRECATED:
        found.append("this endpoint is deprecated and may be removed")
    for value in response.headers.get_list(WARNING_HEADER):
        if value.strip():
            found.append(value.strip())
    return found


def reset_warning_registry() -> None:
    """Forget which warnings were already logged (for testing)."""
    with _warned_lock:
        _warned.clear()


def _warn_once(message: str) -> None:
    with _warned_lock:
        if message in _warned:
            return
        _warned.add(message)
    logger.warning("Server warning: %s", message, extra={"stage": STAGE_WARNINGS})


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _message(body: Mapping[str, Any], response: httpx.Response) -> str:
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    return response.reason_phrase or f"HTTP {response.status_code}"


def _field_errors(body: Mapping[str, Any]) -> Dict[str, List[str]]:
    raw = body.get("errors")
    if not isinstance(raw, dict):
        return {}
    errors: Dict[str, List[str]] = {}
    for field, messages in raw.items():
        if isinstance(messages, str):
            errors[str(field)] = [messages]
        elif isinstance(messages, list):
            errors[str(field)] = [str(m) for m in messages]
    return errors


def _session(body: Mapping[str, Any]) -> Optional[UserSessionInfo]:
    # 412 responses to sign-in carry a usable session in the body
    session_body = body.get("session") if isinstance(body.get("session"), dict) else body
    try:
        return UserSessionInfo.from_json(session_body)
    except ValueError:
        return None


__all__ = [
    "WARNINGS_EXTENSION",
    "classify_response",
    "create_classifier_stage",
    "create_warning_stage",
    "response_warnings",
    "reset_warning_registry",
]
