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
Sanitizing of strategy configs and provider payloads before they are logged.
"""

import re
from collections.abc import Mapping
from typing import Any


class ConfigSanitizer:
    """Redacts app secrets, salts and OAuth tokens from logged data."""

    PATTERNS = {
        "bearer_token": re.compile(r"(?:Bearer)\s+([A-Za-z0-9\-._~+/]{8,}=*)", re.IGNORECASE),
        "query_secret": re.compile(
            r"(?:client_secret|app_secret|access_token|refresh_token|oauth_token_secret)=([^&\s]+)",
            re.IGNORECASE,
        ),
    }

    # Substrings of key names whose values are never logged
    SENSITIVE_FIELDS = {
        "secret",
        "salt",
        "token",
        "password",
        "private_key",
        "api_key",
        "authorization",
        "signature",
    }

    @classmethod
    def is_sensitive(cls, key: str) -> bool:
        lowered = key.lower()
        return any(sensitive in lowered for sensitive in cls.SENSITIVE_FIELDS)

    @classmethod
    def sanitize_string(cls, text: str) -> str:
        """
        Redact credentials embedded in free text such as URLs or headers.

        Args:
            text: String to sanitize

        Returns:
            Sanitized string
        """
        if not text:
            return text

        sanitized = text
        for pattern_name, pattern in cls.PATTERNS.items():
            sanitized = pattern.sub(
                lambda m, name=pattern_name: m.group(0).replace(
                    m.group(1), f"[REDACTED_{name.upper()}]"
                ),
                sanitized,
            )
        return sanitized

    @classmethod
    def sanitize(cls, data: Any, max_depth: int = 10) -> Any:
        """
        Recursively sanitize mappings and lists.

        Args:
            data: Value to sanitize
            max_depth: Maximum recursion depth

        Returns:
            Sanitized copy of ``data``
        """
        if max_depth <= 0:
            return "[Max recursion depth reached]"

        if isinstance(data, Mapping):
            sanitized = {}
            for key, value in data.items():
                if cls.is_sensitive(str(key)) and not isinstance(value, (Mapping, list)):
                    sanitized[key] = "[REDACTED]"
                else:
                    sanitized[key] = cls.sanitize(value, max_depth - 1)
            return sanitized
        if isinstance(data, list):
            return [cls.sanitize(item, max_depth - 1) for item in data]
        if isinstance(data, str):
            return cls.sanitize_string(data)
        return data
