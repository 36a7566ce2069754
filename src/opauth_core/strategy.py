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
Base class for identity-provider strategies.

A strategy is constructed per authentication attempt with its config and the
shared environment. ``request()`` starts the login (usually by redirecting to
the provider), ``provider_callback()`` handles the provider's return, and
``callback()`` / ``error_callback()`` ship the finished result to the relying
application.

Example:
    class ExampleStrategy(Strategy):
        name = "Example"
        expects = ("app_id", "app_secret")
        defaults = {"scope": "email"}
        response_map = {"uid": "id", "info.name": "name"}

        def request(self):
            return self.client_get("https://example.com/oauth", self.add_params(["app_id", "scope"]))

        def provider_callback(self):
            body, _ = self.http.get("https://example.com/me", {"token": ...})
            self.apply_response_map(json.loads(body))
            return self.callback()
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from enum import Enum
from operator import methodcaller
from typing import Any, ClassVar

from starlette.responses import RedirectResponse, Response

from .config import Environment
from .envelope import build_error_envelope, build_success_envelope
from .errors import FlowCompletedError, ProviderError, UnknownActionError
from .http_client import HTTPClient
from .resolver import ExpectedKey, add_params, resolve_config
from .signing import iso_timestamp
from .transport.callback import CallbackDispatcher, CallbackTransport, append_query
from .transport.session import SessionStore
from .tree import apply_response_map, map_profile

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """Actions a routed request may invoke on a strategy"""

    REQUEST = "request"
    PROVIDER_CALLBACK = "provider_callback"


_ACTION_HANDLERS = {
    Action.REQUEST: methodcaller("request"),
    Action.PROVIDER_CALLBACK: methodcaller("provider_callback"),
}


class Strategy(ABC):
    """Shared behaviour for all provider strategies."""

    # Declared provider name, reported as ``provider`` in every envelope
    name: ClassVar[str | None] = None

    # Compulsory config keys, or (key, forbidden_value) pairs
    expects: ClassVar[tuple[ExpectedKey, ...]] = ()

    # Optional config keys with default values
    defaults: ClassVar[Mapping[str, Any]] = {}

    # {auth_path: profile_path}; extended by a ``response_map`` config entry
    response_map: ClassVar[Mapping[str, str]] = {}

    session_data_key: ClassVar[str] = "_opauth_data"

    def __init__(
        self,
        config: Mapping[str, Any] | None,
        environment: Environment,
        session_store: SessionStore,
        http_client: HTTPClient | None = None,
        dispatcher: CallbackDispatcher | None = None,
    ):
        """
        Resolve config and wire collaborators.

        Args:
            config: Strategy-specific configuration from the host application
            environment: Shared environment dictionary
            session_store: Session of the user being authenticated
            http_client: Client for provider calls
            dispatcher: Callback dispatcher, defaults to one using the
                environment's ``callback_transport``

        Raises:
            MissingParameterError: If an expected config key is missing.
                Nothing else is set up in that case.
        """
        strategy_name = self.name or type(self).__name__
        self.strategy = resolve_config(strategy_name, config, self.defaults, self.expects, environment)
        self.environment = environment
        self.session_store = session_store
        self.http = http_client or HTTPClient()
        self.dispatcher = dispatcher or CallbackDispatcher(
            session_store, environment.callback_transport or None
        )
        self.mapping = {**self.response_map, **(self.strategy.get("response_map") or {})}
        self.auth: dict[str, Any] = {}
        self._shipped = False

    @property
    def provider(self) -> str:
        return self.strategy["strategy_name"]

    @property
    def callback_url(self) -> str:
        return self.strategy["strategy_callback_url"]

    @property
    def finished(self) -> bool:
        """Whether an envelope has already been shipped."""
        return self._shipped

    def value(self, key: str, default: Any = None) -> Any:
        return self.strategy.get(key, default)

    @abstractmethod
    def request(self) -> Response:
        """Start the login, usually by redirecting to the provider."""

    def provider_callback(self) -> Response:
        """Handle the provider's return. Strategies without one reject the action."""
        raise UnknownActionError(f"{self.provider} does not handle provider callbacks")

    def call_action(self, action: Action | str) -> Response:
        """
        Run a strategy action.

        Provider errors raised by the handler are shipped as an error envelope.
        Configuration and signing errors propagate and nothing is shipped.

        Raises:
            UnknownActionError: If ``action`` is not a known action
        """
        try:
            tag = Action(action)
        except ValueError as e:
            raise UnknownActionError(f"Unknown action {action!r} for {self.provider}") from e

        logger.debug(f"{self.provider}: running {tag.value}")
        try:
            return _ACTION_HANDLERS[tag](self)
        except ProviderError as e:
            logger.warning(f"{self.provider} reported error {e.code}: {e.message}")
            return self.error_callback(e)

    def callback(self, transport: CallbackTransport | str | None = None) -> Response:
        """Sign ``self.auth`` and ship it to the callback URL."""
        self._ensure_open()
        envelope = build_success_envelope(
            self.auth,
            self.provider,
            iso_timestamp(),
            self.environment.security_salt,
            self.environment.security_iteration,
        )
        self.auth = envelope["auth"]
        return self._ship(envelope, transport)

    def error_callback(
        self,
        error: Mapping[str, Any] | ProviderError,
        transport: CallbackTransport | str | None = None,
    ) -> Response:
        """
        Ship an error envelope.

        Args:
            error: ``code``, ``message`` and optional ``raw`` provider detail
            transport: Explicit transport, defaults to the environment's
        """
        self._ensure_open()
        if isinstance(error, ProviderError):
            error = error.to_dict()
        envelope = build_error_envelope(error, self.provider, iso_timestamp())
        return self._ship(envelope, transport)

    def error(self, message: str, code: Any, raw: Any = None) -> None:
        """Abort the current action with a provider error.

        Args:
            message: User-friendly message (e.g. "User denied access.")
            code: Error code, HTTP status or symbolic (e.g. "access_denied")
            raw: Provider response to help debugging
        """
        raise ProviderError(message, code, raw, self.provider)

    def map_profile(self, profile: Any, profile_path: str, auth_path: str) -> bool:
        """Copy a profile value (dotted path) into ``self.auth`` (dotted path)."""
        self.auth, found = map_profile(profile, self.auth, profile_path, auth_path)
        return found

    def apply_response_map(self, profile: Any) -> dict[str, Any]:
        """Fill ``self.auth`` from a provider profile using the response map."""
        self.auth = apply_response_map(profile, self.auth, self.mapping)
        return self.auth

    def add_params(
        self, config_keys: Iterable[str | tuple[str, str]], params: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        return add_params(self.strategy, config_keys, params)

    def session_data(self, data: Any = None) -> Any:
        """
        Strategy-private state kept between ``request`` and the provider's return.

        Writes ``data`` when given. Without ``data``, reads and removes the
        stored value.
        """
        key = f"{self.session_data_key}{self.provider}"
        if data is None:
            stored = self.session_store.get(key)
            self.session_store.delete(key)
            return stored
        self.session_store.set(key, data)
        return data

    def redirect(self, url: str) -> RedirectResponse:
        return RedirectResponse(url, status_code=302)

    def client_get(self, url: str, params: Mapping[str, Any] | None = None) -> RedirectResponse:
        """Redirect the user agent to ``url`` with ``params`` in the query string."""
        return self.redirect(append_query(url, params) if params else url)

    def _ensure_open(self) -> None:
        if self._shipped:
            raise FlowCompletedError(f"{self.provider} already shipped a response for this attempt")

    def _ship(self, envelope: dict[str, Any], transport: CallbackTransport | str | None) -> Response:
        response = self.dispatcher.ship(envelope, self.callback_url, transport, provider=self.provider)
        self._shipped = True
        return response
