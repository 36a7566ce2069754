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
Delivery of finished envelopes to the relying application's callback URL.

Three interchangeable transports:
- get: redirect with the encoded envelope in the ``opauth`` query parameter.
  Works cross-domain but is bounded by browser URL length limits.
- post: auto-submitting HTML form with the flattened envelope as hidden
  fields. Works cross-domain but needs client-side JavaScript.
- session: envelope stored server-side, followed by a plain redirect. Only
  works when the callback shares the session with this runtime.
"""

import html
import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any
from urllib.parse import urlencode

from starlette.responses import HTMLResponse, RedirectResponse, Response

from ..envelope import PAYLOAD_PARAM, encode_payload, is_error_envelope
from ..errors import UnknownTransportError
from ..tree import flatten
from .session import SessionStore

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "opauth_"


class CallbackTransport(str, Enum):
    """Supported callback delivery mechanisms"""

    GET = "get"
    POST = "post"
    SESSION = "session"

    @classmethod
    def parse(cls, value: "CallbackTransport | str") -> "CallbackTransport":
        try:
            return cls(value)
        except ValueError as e:
            raise UnknownTransportError(
                f"Unknown callback transport {value!r}; expected one of get, post, session"
            ) from e


def session_key(provider: str) -> str:
    """Session key under which a provider's envelope is handed off."""
    return f"{SESSION_KEY_PREFIX}{provider}"


def append_query(url: str, params: Mapping[str, Any]) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


def render_form_post(url: str, data: Mapping[str, Any]) -> str:
    """Minimal HTML page that POSTs ``data`` to ``url`` on load."""
    parts = [
        '<html><body onload="postit();">',
        f'<form name="auth" method="post" action="{html.escape(url, quote=True)}">',
    ]
    for key, value in flatten(data).items():
        value = "" if value is None else value
        parts.append(
            f'<input type="hidden" name="{html.escape(key, quote=True)}" '
            f'value="{html.escape(str(value), quote=True)}">'
        )
    parts.append("</form>")
    parts.append('<script type="text/javascript">function postit(){ document.auth.submit(); }</script>')
    parts.append("</body></html>")
    return "".join(parts)


class CallbackDispatcher:
    """
    Ships envelopes to the callback URL.

    ``ship`` is terminal for an authentication flow: the returned response is
    what the host application must send back, and nothing else should happen
    for the current strategy instance afterwards.
    """

    def __init__(
        self,
        session_store: SessionStore,
        default_transport: CallbackTransport | str | None = None,
    ):
        """
        Initialize dispatcher.

        Args:
            session_store: Storage for the session handoff transport
            default_transport: Transport used when ``ship`` is not given one,
                normally the environment's ``callback_transport``
        """
        self.session_store = session_store
        self.default_transport = (
            CallbackTransport.parse(default_transport) if default_transport else None
        )

    def select_transport(self, transport: CallbackTransport | str | None = None) -> CallbackTransport:
        if transport:
            return CallbackTransport.parse(transport)
        if self.default_transport is not None:
            return self.default_transport
        return CallbackTransport.SESSION

    def ship(
        self,
        envelope: Mapping[str, Any],
        callback_url: str,
        transport: CallbackTransport | str | None = None,
        provider: str | None = None,
    ) -> Response:
        """
        Deliver an envelope.

        Args:
            envelope: Success or error envelope
            callback_url: Absolute callback URL of the relying application
            transport: Explicit transport, falls back to the dispatcher default
            provider: Provider name for the session key; read from the
                envelope when omitted

        Returns:
            Starlette response carrying the delivery
        """
        kind = self.select_transport(transport)
        if provider is None:
            body = envelope.get("auth") or envelope.get("error") or {}
            provider = str(body.get("provider", ""))
        outcome = "error" if is_error_envelope(envelope) else "auth"
        logger.info(f"Shipping {outcome} envelope for {provider} via {kind.value} to {callback_url}")

        if kind is CallbackTransport.GET:
            return self.redirect(append_query(callback_url, {PAYLOAD_PARAM: encode_payload(envelope)}))
        if kind is CallbackTransport.POST:
            return HTMLResponse(render_form_post(callback_url, envelope))

        self.session_store.set(session_key(provider), dict(envelope))
        return self.redirect(callback_url)

    @staticmethod
    def redirect(url: str) -> RedirectResponse:
        return RedirectResponse(url, status_code=302)


def consume_session_envelope(session_store: SessionStore, provider: str) -> dict[str, Any] | None:
    """Read and remove the envelope handed off for ``provider``.

    Used by the relying application on the request following a session
    handoff. Returns None when nothing is pending.
    """
    key = session_key(provider)
    envelope = session_store.get(key)
    if envelope is not None:
        session_store.delete(key)
    return envelope
