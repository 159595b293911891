# === NAVMAP v1 ===
# {
#   "module": "BridgeSDK.rest.instrumentation",
#   "purpose": "HTTP network layer instrumentation and logging.",
#   "sections": [
#     {
#       "id": "create-logging-stage",
#       "name": "create_logging_stage",
#       "anchor": "function-create-logging-stage",
#       "kind": "function"
#     },
#     {
#       "id": "redact-url",
#       "name": "redact_url",
#       "anchor": "function-redact-url",
#       "kind": "function"
#     },
#     {
#       "id": "redact-headers",
#       "name": "redact_headers",
#       "anchor": "function-redact-headers",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTP network layer instrumentation and logging.

The logging stage is the innermost stage, so it records every network
exchange exactly as it happened: a call retried after a session refresh shows
up as two records.  Records carry method, redacted URL, status and timing;
session tokens and query strings never reach the log.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, Mapping
from urllib.parse import urlparse, urlunparse

import httpx

from BridgeSDK.rest.policy import SENSITIVE_HEADERS, STAGE_LOG
from BridgeSDK.rest.stages import CallNext, NamedStage

logger = logging.getLogger(__name__)


def create_logging_stage() -> NamedStage:
    """Create the stage that logs each network exchange.

    Usage:
        >>> stage = create_logging_stage()
        >>> config = TransportConfiguration(name="x", base_url=url, stages=(stage,))
    """

    def _log(request: httpx.Request, call_next: CallNext) -> httpx.Response:
        start = time.perf_counter()
        url_redacted = redact_url(str(request.url))
        try:
            response = call_next(request)
        except httpx.TransportError as exc:
            logger.warning(
                "%s %s failed: %s",
                request.method,
                url_redacted,
                exc.__class__.__name__,
                extra={
                    "stage": STAGE_LOG,
                    "method": request.method,
                    "url_redacted": url_redacted,
                    "elapsed_ms": (time.perf_counter() - start) * 1000,
                },
            )
            raise

        elapsed_ms = (time.perf_counter() - start) * 1000
        response.request = request
        logger.debug(
            "%s %s -> %s",
            request.method,
            url_redacted,
            response.status_code,
            extra={
                "stage": STAGE_LOG,
                "method": request.method,
                "url_redacted": url_redacted,
                "host": request.url.host or "unknown",
                "status": response.status_code,
                "elapsed_ms": elapsed_ms,
                "headers": redact_headers(request.headers),
            },
        )
        return response

    return NamedStage(STAGE_LOG, _log)


def redact_url(url: str) -> str:
    """Redact query parameters from URL.

    Strips query strings, keeping only scheme + host + path.
    """
    try:
        parsed = urlparse(url)
        return urlunparse((parsed.scheme, parsed.netloc, parsed.path, "", "", ""))
    except ValueError:
        return "[URL_REDACTION_FAILED]"


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Return a copy of ``headers`` with credential-bearing values masked."""
    return {
        key: ("***" if key.lower() in SENSITIVE_HEADERS else value)
        for key, value in headers.items()
    }


__all__ = [
    "create_logging_stage",
    "redact_url",
    "redact_headers",
]
