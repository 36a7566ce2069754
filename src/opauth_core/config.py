#!/usr/bin/env python3
# MIT License
#
# Copyright (c) 2025 opauth-core Contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
Configuration module for the strategy runtime
Holds the shared environment dictionary and settings read from environment variables
"""

import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any

from dotenv import load_dotenv

from .templating import env_replace

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_PATH = "/opauth/"
DEFAULT_CALLBACK_URL = "{path}callback"
DEFAULT_CALLBACK_TRANSPORT = "session"
DEFAULT_SECURITY_ITERATION = 300
DEFAULT_SECURITY_TIMEOUT = 120

# Environment fields that may reference each other, substituted in this order
_TEMPLATED_FIELDS = ("host", "path", "callback_url")


@dataclass(frozen=True)
class Environment:
    """Process-wide values shared by every strategy.

    Created once and never mutated. ``host``, ``path`` and ``callback_url``
    are substituted against the environment itself on construction, so the
    default ``callback_url`` of ``{path}callback`` resolves to
    ``/opauth/callback``.
    """

    host: str
    path: str = DEFAULT_PATH
    callback_url: str = DEFAULT_CALLBACK_URL
    callback_transport: str = DEFAULT_CALLBACK_TRANSPORT
    security_salt: str = ""
    security_iteration: int = DEFAULT_SECURITY_ITERATION
    security_timeout: int = DEFAULT_SECURITY_TIMEOUT
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))
        for name in _TEMPLATED_FIELDS:
            object.__setattr__(self, name, env_replace(getattr(self, name), self.as_dict()))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "Environment":
        """Build an environment from a flat mapping; unknown keys go to ``extra``."""
        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs = {key: value for key, value in values.items() if key in known}
        extra = {key: value for key, value in values.items() if key not in known}
        if "host" not in kwargs:
            kwargs["host"] = ""
        return cls(**kwargs, extra=extra)

    def as_dict(self) -> dict[str, Any]:
        """Flat dictionary view used as a templating source."""
        values = dict(self.extra)
        values.update(
            {
                "host": self.host,
                "path": self.path,
                "callback_url": self.callback_url,
                "callback_transport": self.callback_transport,
                "security_salt": self.security_salt,
                "security_iteration": self.security_iteration,
                "security_timeout": self.security_timeout,
            }
        )
        return values


@dataclass
class RuntimeSettings:
    """Settings for the runtime, read from OPAUTH_* environment variables"""

    host: str = field(default_factory=lambda: os.getenv("OPAUTH_HOST", ""))
    path: str = field(default_factory=lambda: os.getenv("OPAUTH_PATH", DEFAULT_PATH))
    callback_url: str = field(
        default_factory=lambda: os.getenv("OPAUTH_CALLBACK_URL", DEFAULT_CALLBACK_URL)
    )
    callback_transport: str = field(
        default_factory=lambda: os.getenv("OPAUTH_CALLBACK_TRANSPORT", DEFAULT_CALLBACK_TRANSPORT)
    )
    security_salt: str = field(default_factory=lambda: os.getenv("OPAUTH_SECURITY_SALT", ""))
    security_iteration: int = field(
        default_factory=lambda: int(
            os.getenv("OPAUTH_SECURITY_ITERATION", str(DEFAULT_SECURITY_ITERATION))
        )
    )
    security_timeout: int = field(
        default_factory=lambda: int(
            os.getenv("OPAUTH_SECURITY_TIMEOUT", str(DEFAULT_SECURITY_TIMEOUT))
        )
    )

    # Provider HTTP calls
    http_timeout: float | None = field(
        default_factory=lambda: (
            float(os.environ["OPAUTH_HTTP_TIMEOUT"]) if os.getenv("OPAUTH_HTTP_TIMEOUT") else None
        )
    )
    user_agent: str = field(default_factory=lambda: os.getenv("OPAUTH_USER_AGENT", "opauth"))

    # Session handoff
    session_ttl: int = field(default_factory=lambda: int(os.getenv("OPAUTH_SESSION_TTL", "600")))
    session_maxsize: int = 10000

    log_level: str = field(default_factory=lambda: os.getenv("OPAUTH_LOG_LEVEL", "WARNING"))

    def to_environment(self) -> Environment:
        """Build the shared environment dictionary from these settings."""
        if not self.security_salt:
            logger.warning("OPAUTH_SECURITY_SALT is empty; callback signatures are trivially forgeable")
        return Environment(
            host=self.host,
            path=self.path,
            callback_url=self.callback_url,
            callback_transport=self.callback_transport,
            security_salt=self.security_salt,
            security_iteration=self.security_iteration,
            security_timeout=self.security_timeout,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to a dictionary with the salt masked"""
        return {
            "host": self.host,
            "path": self.path,
            "callback_url": self.callback_url,
            "callback_transport": self.callback_transport,
            "security_salt": "[REDACTED]" if self.security_salt else "",
            "security_iteration": self.security_iteration,
            "security_timeout": self.security_timeout,
            "http_timeout": self.http_timeout,
            "user_agent": self.user_agent,
            "session_ttl": self.session_ttl,
        }


def load_settings(dotenv_path: str | None = None) -> RuntimeSettings:
    """Load settings, reading a .env file first when one is present.

    Variables already set in the process environment take precedence over
    the .env file.
    """
    load_dotenv(dotenv_path)
    settings = RuntimeSettings()
    logger.debug(f"Runtime settings loaded: {settings.to_dict()}")
    return settings


def configure_logging(level: str | int | None = None) -> None:
    """Send runtime logs to stderr with the standard format."""
    if level is None:
        level = os.getenv("OPAUTH_LOG_LEVEL", "WARNING")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
