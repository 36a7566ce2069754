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
Minimal synchronous HTTP client for strategies talking to providers.
No retries; a timeout applies only when one is configured.
"""

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

import httpx

from .errors import HTTPRequestError
from .security import ConfigSanitizer

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "opauth"


def merge_options(base: Mapping[str, Any], override: Mapping[str, Any] | None) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``.

    Nested mappings are merged key by key, any other value replaces.
    """
    result = dict(base)
    for key, value in (override or {}).items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = merge_options(result[key], value)
        else:
            result[key] = value
    return result


def _with_user_agent(headers: Mapping[str, str] | None, user_agent: str) -> dict[str, str]:
    merged = dict(headers or {})
    for name in list(merged):
        if name.lower() == "user-agent":
            merged[name] = f"{merged[name]} {user_agent}"
            return merged
    merged["User-Agent"] = user_agent
    return merged


class HTTPClient:
    """Blocking HTTP helper built on httpx."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ):
        """
        Initialize HTTP client.

        Args:
            user_agent: Identifying User-Agent added to every request
            timeout: Default timeout in seconds, None for no timeout
            client: Preconfigured httpx client (e.g. with a mock transport)
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def request(
        self,
        url: str,
        options: Mapping[str, Any] | None = None,
        response_headers: dict[str, str] | None = None,
    ) -> str:
        """
        Issue one blocking HTTP call.

        Args:
            url: Full URL to load
            options: ``method``, ``headers``, ``data``, ``content``, ``timeout``
            response_headers: Dict filled with the response headers

        Returns:
            Response body. Non-2xx bodies are returned as well since
            providers report errors in them.

        Raises:
            HTTPRequestError: On connection, timeout or protocol failures, or a
                malformed URL
        """
        options = dict(options or {})
        method = str(options.get("method", "GET")).upper()
        headers = _with_user_agent(options.get("headers"), self.user_agent)
        kwargs: dict[str, Any] = {"headers": headers}
        for key in ("data", "content"):
            if options.get(key) is not None:
                kwargs[key] = options[key]
        if "timeout" in options:
            kwargs["timeout"] = options["timeout"]

        logger.debug(f"{method} {ConfigSanitizer.sanitize_string(url)}")
        try:
            response = self._client.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"{method} {ConfigSanitizer.sanitize_string(url)} failed: {e}")
            raise HTTPRequestError(url, e) from e

        if response_headers is not None:
            response_headers.clear()
            response_headers.update(response.headers)
        if response.is_error:
            logger.info(f"{method} {ConfigSanitizer.sanitize_string(url)} -> {response.status_code}")
        return response.text

    def get(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> tuple[str, dict[str, str]]:
        """GET ``url`` with ``params`` appended as a query string."""
        if params:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode(params, doseq=True)}"
        headers: dict[str, str] = {}
        body = self.request(url, merge_options({"method": "GET"}, options), headers)
        return body, headers

    def post(
        self,
        url: str,
        data: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> tuple[str, dict[str, str]]:
        """POST ``data`` form-encoded to ``url``; ``options`` override the defaults."""
        defaults: dict[str, Any] = {
            "method": "POST",
            "headers": {"Content-Type": "application/x-www-form-urlencoded"},
        }
        if not options or ("content" not in options and "data" not in options):
            defaults["content"] = urlencode(data or {}, doseq=True)
        headers: dict[str, str] = {}
        body = self.request(url, merge_options(defaults, options), headers)
        return body, headers
