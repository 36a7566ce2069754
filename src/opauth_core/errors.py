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
Exception hierarchy for the strategy runtime.

Configuration and signing failures are fatal and must stop a strategy before
anything is shipped. Provider failures are converted into error envelopes by
the strategy base class.
"""

from typing import Any


class OpauthError(Exception):
    """Base class for all runtime errors."""

    pass


class MissingParameterError(OpauthError):
    """A required strategy config key is absent, empty or forbidden."""

    def __init__(self, strategy: str, key: str):
        self.strategy = strategy
        self.key = key
        super().__init__(f'{strategy} config parameter for "{key}" expected.')


class InvalidIterationCountError(OpauthError):
    """Signing was requested with a non-positive iteration count."""

    def __init__(self, iterations: Any):
        self.iterations = iterations
        super().__init__(f"Signing requires a positive iteration count, got {iterations!r}")


class HTTPRequestError(OpauthError):
    """Transport-level failure while talking to a provider."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"HTTP request to {url} failed: {cause}")


class ProviderError(OpauthError):
    """Explicit error reported by an identity provider (e.g. access denied).

    Always surfaced to the relying application through the error callback.
    """

    def __init__(self, message: str, code: Any, raw: Any = None, provider: str | None = None):
        self.message = message
        self.code = code
        self.raw = raw
        self.provider = provider
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Error fields in envelope shape."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.provider is not None:
            error["provider"] = self.provider
        if self.raw is not None:
            error["raw"] = self.raw
        return error


class UnknownActionError(OpauthError):
    """Requested strategy action has no handler."""

    pass


class UnknownTransportError(OpauthError):
    """Callback transport name is not one of get, post or session."""

    pass


class FlowCompletedError(OpauthError):
    """A strategy already shipped its envelope for this attempt."""

    pass


class InvalidPayloadError(OpauthError):
    """Wire payload could not be decoded into an envelope."""

    pass


class InvalidSignatureError(OpauthError):
    """Envelope signature does not match its auth tree."""

    pass


class EnvelopeExpiredError(OpauthError):
    """Envelope timestamp is outside the accepted window."""

    pass
