"""Environment-driven SDK configuration.

Values come from ``BRIDGE_``-prefixed environment variables and, optionally,
a dotenv-style file:

    BRIDGE_ENVIRONMENT   local | develop | staging | production (default production)
    BRIDGE_STUDY         study identifier
    BRIDGE_EMAIL         account email
    BRIDGE_PASSWORD      account password
    BRIDGE_LANGUAGES     comma-separated preferred languages, most preferred first
    BRIDGE_SDK_VERSION   integer SDK version reported in the User-Agent
    BRIDGE_TIMEOUT_SEC   read/write timeout for API calls
    BRIDGE_VERIFY_TLS    verify HTTPS certificates (default true)
    BRIDGE_LOG_LEVEL     level passed to :func:`BridgeSDK.logging_utils.setup_logging`

The core treats these purely as constructor inputs for
:class:`BridgeSDK.manager.ClientManager`; nothing below the manager reads them.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional, Union

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from BridgeSDK.models import Environment, SignIn
from BridgeSDK.rest.headers import split_languages

__all__ = ["BridgeSettings", "get_settings", "load_settings", "reset_settings"]

logger = logging.getLogger(__name__)

_settings: Optional["BridgeSettings"] = None
_settings_lock = threading.Lock()


class BridgeSettings(BaseSettings):
    environment: Environment = Environment.PRODUCTION
    study: Optional[str] = None
    email: Optional[str] = None
    password: Optional[SecretStr] = None
    languages: str = ""
    sdk_version: int = Field(default=1, ge=0)
    timeout_sec: float = Field(default=120.0, gt=0)
    verify_tls: bool = True
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="BRIDGE_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("environment", mode="before")
    @classmethod
    def _normalise_environment(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def language_list(self) -> List[str]:
        return split_languages(self.languages)

    def account_sign_in(self) -> Optional[SignIn]:
        """Return the configured account credentials, or ``None`` if incomplete."""
        if not (self.study and self.email and self.password):
            return None
        return SignIn(
            study=self.study,
            email=self.email,
            password=self.password.get_secret_value(),
        )


def load_settings(env_file: Optional[Union[str, Path]] = None) -> BridgeSettings:
    """Read settings from the environment and, if given, ``env_file``."""
    if env_file is not None:
        settings = BridgeSettings(_env_file=str(env_file))
    else:
        settings = BridgeSettings()
    logger.debug(
        "Settings loaded",
        extra={"environment": settings.environment.value, "stage": "config"},
    )
    return settings


def get_settings() -> BridgeSettings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    with _settings_lock:
        if _settings is None:
            _settings = load_settings()
        return _settings


def reset_settings() -> None:
    """Forget cached settings (primarily for testing)."""
    global _settings
    with _settings_lock:
        _settings = None
