"""Static per-process request headers: ``User-Agent`` and ``Accept-Language``."""

from __future__ import annotations

from typing import Iterable, List, Optional

import httpx

from BridgeSDK.models import ClientInfo
from BridgeSDK.rest.policy import STAGE_HEADERS
from BridgeSDK.rest.stages import CallNext, NamedStage

__all__ = [
    "build_user_agent",
    "build_accept_language",
    "split_languages",
    "create_header_stage",
]


def build_user_agent(info: ClientInfo) -> str:
    """Render ``info`` in the server's expected ``User-Agent`` format.

    The layout is ``appName/appVersion (deviceName; osName/osVersion) sdkName/sdkVersion``;
    absent parts are left out, so a bare SDK record renders as ``sdkName/sdkVersion``.

    Example:
        >>> build_user_agent(ClientInfo(sdk_name="X", sdk_version=3, os_name="Linux"))
        '(Linux) X/3'
    """
    parts: List[str] = []

    if info.app_name:
        parts.append(_versioned(info.app_name, info.app_version))

    platform_bits = []
    if info.device_name:
        platform_bits.append(info.device_name)
    if info.os_name:
        platform_bits.append(_versioned(info.os_name, info.os_version))
    if platform_bits:
        parts.append("(" + "; ".join(platform_bits) + ")")

    if info.sdk_name:
        parts.append(_versioned(info.sdk_name, info.sdk_version))

    return " ".join(parts)


def split_languages(value: Optional[str]) -> List[str]:
    """Split a comma-separated language list, trimming and dropping empties."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def build_accept_language(languages: Optional[Iterable[str]]) -> Optional[str]:
    """Join ``languages`` most-preferred first; duplicates keep their first position."""
    ordered: List[str] = []
    for language in languages or ():
        tag = language.strip() if isinstance(language, str) else ""
        if tag and tag not in ordered:
            ordered.append(tag)
    return ",".join(ordered) if ordered else None


def create_header_stage(user_agent: str, accept_language: Optional[str] = None) -> NamedStage:
    """Create the stage that stamps the static headers onto every request."""

    def _decorate(request: httpx.Request, call_next: CallNext) -> httpx.Response:
        request.headers["User-Agent"] = user_agent
        if accept_language:
            request.headers["Accept-Language"] = accept_language
        request.headers.setdefault("Accept", "application/json")
        return call_next(request)

    return NamedStage(STAGE_HEADERS, _decorate)


def _versioned(name: str, version: object) -> str:
    if version is None or version == "":
        return name
    return f"{name}/{version}"
