"""
opauth-core
Shared runtime for pluggable identity-provider authentication strategies:
config resolution, response signing and callback delivery.

Logging goes through the standard ``logging`` module under the
``opauth_core`` namespace. Host applications call ``configure_logging()``
to route it to stderr.
"""

from .config import Environment, RuntimeSettings, configure_logging, load_settings
from .envelope import (
    build_error_envelope,
    build_success_envelope,
    decode_payload,
    encode_payload,
    read_envelope,
)
from .errors import (
    EnvelopeExpiredError,
    FlowCompletedError,
    HTTPRequestError,
    InvalidIterationCountError,
    InvalidPayloadError,
    InvalidSignatureError,
    MissingParameterError,
    OpauthError,
    ProviderError,
    UnknownActionError,
    UnknownTransportError,
)
from .http_client import HTTPClient
from .resolver import add_params, resolve_config
from .signing import iso_timestamp, sign, verify, verify_envelope
from .strategy import Action, Strategy
from .templating import env_replace
from .transport import (
    CallbackDispatcher,
    CallbackTransport,
    InMemorySessionStore,
    RequestSessionStore,
    SessionStore,
    consume_session_envelope,
)
from .tree import flatten, get_path, set_path, to_tree, unflatten

__version__ = "1.0.0"

__all__ = [
    "Action",
    "CallbackDispatcher",
    "CallbackTransport",
    "EnvelopeExpiredError",
    "Environment",
    "FlowCompletedError",
    "HTTPClient",
    "HTTPRequestError",
    "InMemorySessionStore",
    "InvalidIterationCountError",
    "InvalidPayloadError",
    "InvalidSignatureError",
    "MissingParameterError",
    "OpauthError",
    "ProviderError",
    "RequestSessionStore",
    "RuntimeSettings",
    "SessionStore",
    "Strategy",
    "UnknownActionError",
    "UnknownTransportError",
    "add_params",
    "build_error_envelope",
    "build_success_envelope",
    "configure_logging",
    "consume_session_envelope",
    "decode_payload",
    "encode_payload",
    "env_replace",
    "flatten",
    "get_path",
    "iso_timestamp",
    "load_settings",
    "read_envelope",
    "resolve_config",
    "set_path",
    "sign",
    "to_tree",
    "unflatten",
    "verify",
    "verify_envelope",
]
