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
Response signing for callback envelopes.

The signature is an iterated, salted SHA-1 chain over the signing form of the
auth tree, its flattened field names mapped to string values:

    digest = sha1(canonical_json(signing_form(auth))).hexdigest()
    repeat iterations times:
        digest = base36(int(sha1(digest + salt + timestamp).hexdigest(), 16))

The relying application recomputes it with the same salt and iteration count.
The signing form is what a form-post delivery carries, so an auth tree rebuilt
from posted fields verifies the same as one decoded from a redirect payload.
This is an integrity check by shared secret. It does not authenticate the
sender against anyone who also holds the salt, and it is not a public-key
signature.
"""

import hashlib
import hmac
import json
import logging
import string
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from .errors import (
    EnvelopeExpiredError,
    InvalidIterationCountError,
    InvalidPayloadError,
    InvalidSignatureError,
)
from .tree import flatten

logger = logging.getLogger(__name__)

_BASE36_DIGITS = string.digits + string.ascii_lowercase


def canonical_json(tree: Any) -> str:
    """Serialize a tree with stable key ordering."""
    return json.dumps(tree, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def signing_form(tree: Any) -> dict[str, str]:
    """Flatten a tree to form-field names with string values.

    Empty containers carry no fields and None becomes an empty string, as in a
    posted form.

    >>> signing_form({"uid": 42, "info": {"verified": 1, "tags": ["a"]}})
    {'uid': '42', 'info[verified]': '1', 'info[tags][0]': 'a'}
    """
    if not isinstance(tree, (Mapping, list)):
        return {"": "" if tree is None else str(tree)}
    return {name: "" if value is None else str(value) for name, value in flatten(tree).items()}


def base36(hex_digest: str) -> str:
    """Render a hex digest's integer value in lower-case base 36."""
    number = int(hex_digest, 16)
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def iso_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 timestamp in UTC with second precision."""
    now = now or datetime.now(timezone.utc)
    return now.isoformat(timespec="seconds")


def sign(auth_tree: Any, timestamp: str, salt: str, iterations: int) -> str:
    """
    Compute the signature of an auth tree.

    Args:
        auth_tree: Auth tree, ``provider`` included; hashed in its signing form
        timestamp: ISO-8601 timestamp carried in the envelope
        salt: Shared security salt
        iterations: Number of hashing rounds, must be positive

    Returns:
        Base-36 signature string

    Raises:
        InvalidIterationCountError: If ``iterations`` is not a positive integer
    """
    try:
        rounds = int(iterations)
    except (TypeError, ValueError) as e:
        raise InvalidIterationCountError(iterations) from e
    if rounds <= 0:
        raise InvalidIterationCountError(iterations)

    digest = hashlib.sha1(canonical_json(signing_form(auth_tree)).encode("utf-8")).hexdigest()
    for _ in range(rounds):
        digest = base36(hashlib.sha1(f"{digest}{salt}{timestamp}".encode("utf-8")).hexdigest())
    return digest


def verify(auth_tree: Any, timestamp: str, signature: str, salt: str, iterations: int) -> bool:
    """Recompute the signature and compare it with ``signature``."""
    expected = sign(auth_tree, timestamp, salt, iterations)
    return hmac.compare_digest(expected, str(signature))


def verify_envelope(
    envelope: Mapping[str, Any],
    salt: str,
    iterations: int,
    timeout: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Validate a success envelope received by the relying application.

    Args:
        envelope: Decoded envelope with ``auth``, ``timestamp`` and ``signature``
        salt: Shared security salt
        iterations: Number of hashing rounds used by the sender
        timeout: Maximum envelope age in seconds, or None to skip the check
        now: Current time, defaults to the system clock

    Returns:
        The verified auth tree

    Raises:
        InvalidPayloadError: If required fields are missing
        InvalidSignatureError: If the signature does not match
        EnvelopeExpiredError: If the envelope is older than ``timeout``
    """
    try:
        auth = envelope["auth"]
        timestamp = envelope["timestamp"]
        signature = envelope["signature"]
    except (KeyError, TypeError) as e:
        raise InvalidPayloadError(f"Envelope is missing {e}") from e

    if not verify(auth, timestamp, signature, salt, iterations):
        provider = auth.get("provider") if isinstance(auth, Mapping) else None
        logger.warning(f"Signature mismatch for provider {provider!r}")
        raise InvalidSignatureError("Signature does not match auth response")

    if timeout is not None:
        try:
            issued = datetime.fromisoformat(timestamp)
        except (TypeError, ValueError) as e:
            raise InvalidPayloadError(f"Invalid timestamp {timestamp!r}") from e
        if issued.tzinfo is None:
            issued = issued.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        age = (now - issued).total_seconds()
        if age > timeout:
            raise EnvelopeExpiredError(f"Auth response expired {age - timeout:.0f}s ago")

    return dict(auth)
