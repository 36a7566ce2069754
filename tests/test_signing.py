"""
Tests for response signing and verification.
"""

import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from opauth_core.errors import (
    EnvelopeExpiredError,
    InvalidIterationCountError,
    InvalidPayloadError,
    InvalidSignatureError,
)
from opauth_core.signing import (
    base36,
    canonical_json,
    iso_timestamp,
    sign,
    signing_form,
    verify,
    verify_envelope,
)

TREE = {"uid": "1", "info": {"name": "Bob", "verified": 1}, "provider": "Example"}
TIMESTAMP = "2025-01-01T12:00:00+00:00"


class TestCanonicalJson:
    """Test deterministic serialization"""

    def test_key_order_independent(self):
        """Logically equal trees serialize identically"""
        first = {"b": 1, "a": {"y": 2, "x": 3}}
        second = {"a": {"x": 3, "y": 2}, "b": 1}
        assert canonical_json(first) == canonical_json(second)

    def test_compact(self):
        """No whitespace between tokens"""
        assert canonical_json({"a": [1, 2]}) == '{"a":[1,2]}'


class TestSigningForm:
    """Test the string-valued flat form that signatures cover"""

    def test_flattened_strings(self):
        assert signing_form({"uid": 42, "info": {"verified": 1, "tags": ["a", "b"]}}) == {
            "uid": "42",
            "info[verified]": "1",
            "info[tags][0]": "a",
            "info[tags][1]": "b",
        }

    def test_none_and_empty_containers(self):
        """None posts as an empty string and empty containers post nothing"""
        assert signing_form({"a": None, "b": {}, "c": []}) == {"a": ""}

    def test_typed_and_posted_trees_sign_alike(self):
        """A tree whose leaves arrived as form strings keeps its signature"""
        typed = {"uid": 42, "verified": 1, "info": {"tags": ["x"]}}
        posted = {"uid": "42", "verified": "1", "info": {"tags": ["x"]}}
        assert sign(typed, TIMESTAMP, "salt", 5) == sign(posted, TIMESTAMP, "salt", 5)


class TestBase36:
    """Test the base-36 text encoding"""

    def test_known_values(self):
        assert base36("0") == "0"
        assert base36("ff") == "73"
        assert base36("24") == "10"
        assert base36("23") == "z"


class TestSign:
    """Test signature computation"""

    def test_single_round_matches_formula(self):
        """One round is base36(sha1(sha1(json) + salt + timestamp))"""
        seed = hashlib.sha1(canonical_json(signing_form(TREE)).encode("utf-8")).hexdigest()
        expected = base36(hashlib.sha1(f"{seed}salt{TIMESTAMP}".encode("utf-8")).hexdigest())
        assert sign(TREE, TIMESTAMP, "salt", 1) == expected

    def test_deterministic(self):
        """Identical inputs yield identical signatures"""
        assert sign(TREE, TIMESTAMP, "salt", 10) == sign(dict(TREE), TIMESTAMP, "salt", 10)

    def test_salt_change_changes_signature(self):
        """Changing one character of the salt changes the output"""
        assert sign(TREE, TIMESTAMP, "salt", 10) != sign(TREE, TIMESTAMP, "salu", 10)

    def test_timestamp_change_changes_signature(self):
        assert sign(TREE, TIMESTAMP, "salt", 10) != sign(TREE, TIMESTAMP[:-1] + "1", "salt", 10)

    def test_tree_change_changes_signature(self):
        tampered = {**TREE, "uid": "2"}
        assert sign(TREE, TIMESTAMP, "salt", 10) != sign(tampered, TIMESTAMP, "salt", 10)

    def test_iteration_change_changes_signature(self):
        assert sign(TREE, TIMESTAMP, "salt", 10) != sign(TREE, TIMESTAMP, "salt", 11)

    def test_string_iterations_coerced(self):
        """Iteration counts from configuration strings are accepted"""
        assert sign(TREE, TIMESTAMP, "salt", "3") == sign(TREE, TIMESTAMP, "salt", 3)

    @pytest.mark.parametrize("iterations", [0, -1, "0", "abc", None])
    def test_invalid_iterations(self, iterations):
        """Non-positive or non-numeric counts fail"""
        with pytest.raises(InvalidIterationCountError):
            sign(TREE, TIMESTAMP, "salt", iterations)

    def test_output_is_base36(self):
        signature = sign(TREE, TIMESTAMP, "salt", 5)
        assert signature
        assert set(signature) <= set("0123456789abcdefghijklmnopqrstuvwxyz")


class TestVerify:
    """Test signature verification"""

    def test_verify_roundtrip(self):
        signature = sign(TREE, TIMESTAMP, "salt", 5)
        assert verify(TREE, TIMESTAMP, signature, "salt", 5) is True
        assert verify(TREE, TIMESTAMP, signature, "pepper", 5) is False

    def test_verify_envelope_success(self):
        """A valid, fresh envelope yields its auth tree"""
        envelope = {
            "auth": TREE,
            "timestamp": TIMESTAMP,
            "signature": sign(TREE, TIMESTAMP, "salt", 5),
        }
        now = datetime(2025, 1, 1, 12, 1, tzinfo=timezone.utc)

        assert verify_envelope(envelope, "salt", 5, timeout=120, now=now) == TREE

    def test_verify_envelope_tampered(self):
        envelope = {
            "auth": {**TREE, "uid": "666"},
            "timestamp": TIMESTAMP,
            "signature": sign(TREE, TIMESTAMP, "salt", 5),
        }
        with pytest.raises(InvalidSignatureError):
            verify_envelope(envelope, "salt", 5)

    def test_verify_envelope_expired(self):
        envelope = {
            "auth": TREE,
            "timestamp": TIMESTAMP,
            "signature": sign(TREE, TIMESTAMP, "salt", 5),
        }
        now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc) + timedelta(minutes=5)
        with pytest.raises(EnvelopeExpiredError):
            verify_envelope(envelope, "salt", 5, timeout=120, now=now)

    @pytest.mark.parametrize("timestamp", [12345, "yesterday"])
    def test_verify_envelope_bad_timestamp(self, timestamp):
        """Timestamps that do not parse are reported as a bad payload"""
        envelope = {
            "auth": TREE,
            "timestamp": timestamp,
            "signature": sign(TREE, timestamp, "salt", 5),
        }
        with pytest.raises(InvalidPayloadError):
            verify_envelope(envelope, "salt", 5, timeout=120)

    def test_verify_envelope_naive_now(self):
        """A naive clock reading is taken as UTC"""
        envelope = {
            "auth": TREE,
            "timestamp": TIMESTAMP,
            "signature": sign(TREE, TIMESTAMP, "salt", 5),
        }
        now = datetime(2025, 1, 1, 12, 1)

        assert verify_envelope(envelope, "salt", 5, timeout=120, now=now) == TREE

    def test_verify_envelope_missing_fields(self):
        """Error envelopes carry no signature and cannot be verified"""
        with pytest.raises(InvalidPayloadError):
            verify_envelope({"error": {"code": "x"}, "timestamp": TIMESTAMP}, "salt", 5)


class TestIsoTimestamp:
    def test_format(self):
        now = datetime(2025, 3, 4, 5, 6, 7, 891011, tzinfo=timezone.utc)
        assert iso_timestamp(now) == "2025-03-04T05:06:07+00:00"
