"""
Request signing for the Tuya OpenAPI (HMAC-SHA256 canonical-string scheme).

The string to sign is::

    METHOD \\n SHA256(body) \\n <signature headers, empty> \\n path?sorted_query

and the signature is the upper-case hex HMAC-SHA256, keyed by the client
secret, of ``client_id [+ access_token] + t + nonce + string_to_sign``.
The access token is only part of the signed string for business calls,
not for the token request itself.

These are pure functions: no I/O, no clock. The timestamp and nonce are
injected by the caller so every page request can be signed afresh.

CHANGELOG:
- 2026-10-16: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import hashlib
import hmac
import uuid
from urllib.parse import parse_qsl, urlsplit

SIGN_METHOD = "HMAC-SHA256"

EMPTY_BODY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def content_sha256(body: str | bytes = b"") -> str:
    """Hex SHA-256 of a request body (the empty-body digest for no body)."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hashlib.sha256(body).hexdigest()


def canonical_path(url: str) -> str:
    """Return ``path`` or ``path?k1=v1&k2=v2`` with parameters sorted by key.

    Values are used in their decoded form, as Tuya verifies them.
    """
    parts = urlsplit(url)
    params = sorted(parse_qsl(parts.query, keep_blank_values=True), key=lambda kv: kv[0])
    if not params:
        return parts.path
    query = "&".join(f"{key}={value}" for key, value in params)
    return f"{parts.path}?{query}"


def build_string_to_sign(method: str, url: str, body: str | bytes = b"") -> str:
    """Build the canonical string for *method* and *url*."""
    return "\n".join(
        (
            method.upper(),
            content_sha256(body),
            "",
            canonical_path(url),
        )
    )


def calculate_signature(
    *,
    client_id: str,
    secret: str,
    t: str,
    nonce: str,
    string_to_sign: str,
    access_token: str | None = None,
) -> str:
    """Sign a canonical string with the client secret.

    Args:
        client_id: Tuya access id.
        secret: Tuya access secret.
        t: Epoch milliseconds as a string (also sent as the ``t`` header).
        nonce: Random value (also sent as the ``nonce`` header).
        string_to_sign: Output of :func:`build_string_to_sign`.
        access_token: Token for business calls, ``None`` for the token call.

    Returns:
        Upper-case hexadecimal HMAC-SHA256 digest.
    """
    message = f"{client_id}{access_token or ''}{t}{nonce}{string_to_sign}"
    digest = hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return digest.upper()


def new_nonce() -> str:
    """Return a fresh random nonce."""
    return uuid.uuid4().hex


def signed_headers(
    *,
    client_id: str,
    secret: str,
    method: str,
    url: str,
    t: str,
    nonce: str,
    access_token: str | None = None,
) -> dict[str, str]:
    """Return the full set of Tuya auth headers for one request."""
    sign = calculate_signature(
        client_id=client_id,
        secret=secret,
        t=t,
        nonce=nonce,
        string_to_sign=build_string_to_sign(method, url),
        access_token=access_token,
    )
    headers = {
        "client_id": client_id,
        "t": t,
        "sign": sign,
        "sign_method": SIGN_METHOD,
        "nonce": nonce,
    }
    if access_token:
        headers["access_token"] = access_token
    return headers
