"""Tests for the L2 request signer — preimage, secret normalization, digest format."""

from __future__ import annotations

import base64
import hashlib
import hmac

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from src.execution.polymarket_signer import build_preimage, normalize_secret, sign_request

_KEY_BYTES = bytes(range(256))[::7] + b"\xfb\xff\xfe"
_STD_SECRET = base64.b64encode(_KEY_BYTES).decode()
_URL_SECRET = base64.urlsafe_b64encode(_KEY_BYTES).decode()

_methods = st.sampled_from(["GET", "POST", "DELETE"])
_paths = st.sampled_from(["/order", "/auth/api-keys", "/auth/ban-status/closed-only"])
_timestamps = st.integers(min_value=0, max_value=4_102_444_800)
_bodies = st.binary(max_size=256)


class TestPreimage:
    def test_concatenation_has_no_separators(self) -> None:
        assert build_preimage("POST", "/order", 1700000000, '{"a":1}') == b'POST/order1700000000{"a":1}'

    def test_empty_body_for_get(self) -> None:
        assert build_preimage("GET", "/auth/api-keys", 1700000000) == b"GET/auth/api-keys1700000000"

    def test_bytes_body_used_verbatim(self) -> None:
        body = b'{"b": 2,  "a":1}'
        assert build_preimage("POST", "/order", 1, body).endswith(body)

    def test_non_string_method_raises(self) -> None:
        with pytest.raises(TypeError):
            build_preimage(None, "/order", 1)  # type: ignore[arg-type]

    def test_float_timestamp_raises(self) -> None:
        with pytest.raises(TypeError):
            build_preimage("GET", "/order", 1.5)  # type: ignore[arg-type]

    def test_dict_body_raises(self) -> None:
        with pytest.raises(TypeError):
            build_preimage("POST", "/order", 1, {"a": 1})  # type: ignore[arg-type]


class TestSecretNormalization:
    def test_url_and_standard_secrets_give_same_key(self) -> None:
        assert "-" in _URL_SECRET or "_" in _URL_SECRET
        assert normalize_secret(_URL_SECRET) == normalize_secret(_STD_SECRET) == _KEY_BYTES

    def test_missing_padding_restored(self) -> None:
        assert normalize_secret(_URL_SECRET.rstrip("=")) == _KEY_BYTES

    def test_non_base64_secret_used_as_utf8(self) -> None:
        assert normalize_secret("not base64 at all!") == b"not base64 at all!"

    def test_non_string_secret_raises(self) -> None:
        with pytest.raises(TypeError):
            normalize_secret(b"bytes-secret")  # type: ignore[arg-type]

    @given(key=st.binary(min_size=1, max_size=64))
    @settings(max_examples=50)
    def test_any_key_roundtrips_through_either_alphabet(self, key: bytes) -> None:
        assert normalize_secret(base64.urlsafe_b64encode(key).decode()) == key
        assert normalize_secret(base64.b64encode(key).decode()) == key


class TestSignRequest:
    def test_matches_reference_hmac(self) -> None:
        body = '{"order":{"salt":1}}'
        expected = base64.b64encode(
            hmac.new(_KEY_BYTES, f"POST/order1700000000{body}".encode(), hashlib.sha256).digest(),
        ).decode()
        assert sign_request(_URL_SECRET, "POST", "/order", 1700000000, body) == expected

    def test_output_is_standard_base64_with_padding(self) -> None:
        sig = sign_request(_STD_SECRET, "GET", "/auth/api-keys", 1700000000)
        assert len(sig) == 44
        assert sig.endswith("=")
        assert base64.b64decode(sig, validate=True)

    def test_string_and_int_timestamp_agree(self) -> None:
        assert sign_request(_STD_SECRET, "GET", "/x", 42) == sign_request(_STD_SECRET, "GET", "/x", "42")

    @given(method=_methods, path=_paths, timestamp=_timestamps, body=_bodies)
    @settings(max_examples=50)
    def test_deterministic(self, method: str, path: str, timestamp: int, body: bytes) -> None:
        first = sign_request(_URL_SECRET, method, path, timestamp, body)
        second = sign_request(_URL_SECRET, method, path, timestamp, body)
        assert first == second

    @given(body=st.binary(min_size=1, max_size=256), index=st.integers(min_value=0), flip=st.integers(1, 255))
    @settings(max_examples=50)
    def test_single_byte_change_changes_signature(self, body: bytes, index: int, flip: int) -> None:
        i = index % len(body)
        mutated = body[:i] + bytes([body[i] ^ flip]) + body[i + 1 :]
        assert sign_request(_STD_SECRET, "POST", "/order", 1, body) != sign_request(
            _STD_SECRET, "POST", "/order", 1, mutated,
        )

    def test_timestamp_change_changes_signature(self) -> None:
        assert sign_request(_STD_SECRET, "GET", "/x", 1) != sign_request(_STD_SECRET, "GET", "/x", 2)
