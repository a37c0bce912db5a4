"""Polymarket CLOB L2 request signer.

Every authenticated CLOB request carries an HMAC-SHA256 signature over
``METHOD + PATH + TIMESTAMP + BODY``, keyed with the base64-decoded API
secret and rendered as standard base64. The exchange has issued secrets in
both base64 and base64url, so both are accepted.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import re

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


def normalize_secret(secret: str) -> bytes:
    """Turn an API secret into HMAC key bytes.

    base64url characters are canonicalized (``-``→``+``, ``_``→``/``) and
    missing padding restored; anything that then decodes as base64 is used
    decoded, everything else as raw UTF-8.
    """
    if not isinstance(secret, str):
        msg = f"secret must be str, got {type(secret).__name__}"
        raise TypeError(msg)

    canonical = secret.strip().replace("-", "+").replace("_", "/")
    if _BASE64_RE.match(canonical) and len(canonical.rstrip("=")) % 4 != 1:
        padded = canonical.rstrip("=")
        padded += "=" * (-len(padded) % 4)
        try:
            return base64.b64decode(padded, validate=True)
        except binascii.Error:
            pass
    return secret.encode("utf-8")


def build_preimage(
    method: str,
    path: str,
    timestamp: int | str,
    body: str | bytes = "",
) -> bytes:
    """Concatenate the signed fields with no separators.

    ``body`` is used byte-for-byte; callers must pass the exact bytes they
    send on the wire.
    """
    if not isinstance(method, str) or not isinstance(path, str):
        msg = "method and path must be str"
        raise TypeError(msg)
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, str)):
        msg = f"timestamp must be int or str, got {type(timestamp).__name__}"
        raise TypeError(msg)
    if body is None:
        body = b""
    if isinstance(body, str):
        body = body.encode("utf-8")
    elif not isinstance(body, (bytes, bytearray)):
        msg = f"body must be str or bytes, got {type(body).__name__}"
        raise TypeError(msg)

    return f"{method}{path}{timestamp}".encode() + bytes(body)


def sign_request(
    secret: str,
    method: str,
    path: str,
    timestamp: int | str,
    body: str | bytes = "",
) -> str:
    """Return the base64 HMAC-SHA256 signature for one request."""
    key = normalize_secret(secret)
    preimage = build_preimage(method, path, timestamp, body)
    digest = hmac.new(key, preimage, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")
