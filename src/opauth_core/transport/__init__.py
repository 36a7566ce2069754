"""Callback transports for delivering auth results"""

from .callback import (
    PAYLOAD_PARAM,
    SESSION_KEY_PREFIX,
    CallbackDispatcher,
    CallbackTransport,
    consume_session_envelope,
    render_form_post,
    session_key,
)
from .session import InMemorySessionStore, RequestSessionStore, SessionStore

__all__ = [
    "PAYLOAD_PARAM",
    "SESSION_KEY_PREFIX",
    "CallbackDispatcher",
    "CallbackTransport",
    "InMemorySessionStore",
    "RequestSessionStore",
    "SessionStore",
    "consume_session_envelope",
    "render_form_post",
    "session_key",
]
