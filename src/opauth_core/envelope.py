"""
Callback envelopes and their wire encoding.

Success: {"auth": {..., "provider": name}, "timestamp": iso, "signature": sig}
Error:   {"error": {"provider", "code", "message", "raw"?}, "timestamp": iso}
"""

import base64
import binascii
import json
from collections.abc import Mapping
from typing import Any

from .errors import InvalidPayloadError
from .signing import canonical_json, sign
from .tree import to_tree, unflatten

PAYLOAD_PARAM = "opauth"


def build_success_envelope(
    auth: Any, provider: str, timestamp: str, salt: str, iterations: int
) -> dict[str, Any]:
    """Normalize, tag and sign an auth tree.

    Raises:
        InvalidIterationCountError: Propagated from signing; nothing is built
    """
    tree = to_tree(auth) if auth is not None else {}
    if not isinstance(tree, dict):
        raise TypeError(f"Auth response must be a mapping, got {type(auth).__name__}")
    tree["provider"] = provider
    return {
        "auth": tree,
        "timestamp": timestamp,
        "signature": sign(tree, timestamp, salt, iterations),
    }


def build_error_envelope(error: Mapping[str, Any], provider: str, timestamp: str) -> dict[str, Any]:
    """Normalize an error mapping and tag it with the provider name."""
    tree = to_tree(error)
    tree["provider"] = provider
    tree.setdefault("code", "unknown_error")
    tree.setdefault("message", "")
    return {"error": tree, "timestamp": timestamp}


def is_error_envelope(envelope: Mapping[str, Any]) -> bool:
    return "error" in envelope


def encode_payload(envelope: Mapping[str, Any]) -> str:
    """URL-safe base64 of the envelope's canonical JSON."""
    return base64.urlsafe_b64encode(canonical_json(envelope).encode("utf-8")).decode("ascii")


def decode_payload(payload: str) -> dict[str, Any]:
    """Reverse ``encode_payload``.

    Raises:
        InvalidPayloadError: If the payload is not an encoded envelope
    """
    try:
        padded = payload + "=" * (-len(payload) % 4)
        envelope = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidPayloadError(f"Cannot decode callback payload: {e}") from e
    if not isinstance(envelope, dict) or "timestamp" not in envelope:
        raise InvalidPayloadError("Callback payload is not an envelope")
    return envelope


def read_envelope(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Rebuild an envelope from the fields the callback request carries.

    Accepts the query parameters of a redirect delivery (a single ``opauth``
    payload) or the form fields of a form-post delivery (``auth[info][name]``
    style names). Error envelopes are returned as they are; success envelopes
    still have to pass ``verify_envelope``.

    Raises:
        InvalidPayloadError: If the fields do not carry an envelope
    """
    if PAYLOAD_PARAM in fields:
        envelope = decode_payload(str(fields[PAYLOAD_PARAM]))
    else:
        try:
            envelope = unflatten(fields)
        except ValueError as e:
            raise InvalidPayloadError(f"Cannot read callback fields: {e}") from e
    if "timestamp" not in envelope:
        raise InvalidPayloadError("Callback fields carry no timestamp")
    if not is_error_envelope(envelope) and "auth" not in envelope:
        raise InvalidPayloadError("Callback fields carry neither auth nor error")
    return envelope
