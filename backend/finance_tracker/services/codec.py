"""
services/codec.py — Password, session-token and PII primitives.

Everything here is a pure function of its arguments: keys, secrets and TTLs
are passed in by the caller (auth_service / user_service read them from
current_app.config). That keeps this module importable and unit-testable
without a Flask app.

Primitives:
  - Passwords:     bcrypt, cost factor from BCRYPT_LOG_ROUNDS.
  - Session token: JWT (HS256 by default) carrying sub, username and the
                   user's token version, with a fixed expiry.
  - Email lookup:  HMAC-SHA256 of the trimmed, lower-cased address.
  - Email at rest: AES-256-GCM. Layout, hex-encoded:
                       nonce (12 bytes) ‖ tag (16 bytes) ‖ ciphertext
  - Reset tokens:  32 random bytes (hex) handed to the user; only the
                   SHA-256 hex digest is stored.
"""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


NONCE_BYTES = 12
TAG_BYTES = 16
RESET_TOKEN_BYTES = 32


class InvalidToken(Exception):
    """A session token failed signature, expiry or claim validation."""


class DecryptionError(Exception):
    """Stored ciphertext could not be authenticated or decoded."""


@dataclass(frozen=True)
class SessionClaims:
    user_id: int
    username: str
    token_version: int
    expires_at: datetime


# ── Passwords ──────────────────────────────────────────────────────────────

def hash_password(plain: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(
        plain.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def verify_password(plain: str, password_hash: str) -> bool:
    """Constant-time check of `plain` against a bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash (e.g. a legacy row) never matches.
        return False


# ── Session tokens ─────────────────────────────────────────────────────────

def sign_session(
        user_id: int,
        username: str,
        token_version: int,
        secret: str,
        ttl: timedelta = timedelta(hours=24),
        algorithm: str = "HS256",
) -> str:
    """
    Creates a signed session token.
    Payload: sub (user_id as str), username, tv (token version), iat, exp, jti.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "username": username,
        "tv": token_version,
        "iat": now,
        "exp": now + ttl,
        # Two logins in the same second still get distinct tokens.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def verify_session(token: str, secret: str, algorithm: str = "HS256") -> SessionClaims:
    """
    Verifies signature and expiry and returns the embedded claims.

    Raises InvalidToken for any failure. Whether the token version is still
    current is NOT checked here; that needs the database (auth_service).
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise InvalidToken("Session token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidToken("Session token is invalid.") from exc

    try:
        user_id = int(payload["sub"])
        token_version = payload["tv"]
        username = payload["username"]
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidToken("Session token is missing required claims.") from exc

    if not isinstance(token_version, int) or not isinstance(username, str):
        raise InvalidToken("Session token claims have the wrong type.")

    return SessionClaims(
        user_id=user_id,
        username=username,
        token_version=token_version,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


# ── Email ──────────────────────────────────────────────────────────────────

def normalise_email(plain: str) -> str:
    return plain.strip().lower()


def hash_email(plain: str, key: str) -> str:
    return hmac.new(
        key.encode("utf-8"),
        normalise_email(plain).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def encrypt_email(plain: str, key_hex: str) -> str:
    aesgcm = AESGCM(bytes.fromhex(key_hex))
    nonce = os.urandom(NONCE_BYTES)
    # AESGCM appends the tag to the ciphertext; the stored layout puts it
    # right after the nonce.
    sealed = aesgcm.encrypt(nonce, plain.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return (nonce + tag + ciphertext).hex()


def decrypt_email(encoded: str, key_hex: str) -> str:
    """
    Reverses encrypt_email. Raises DecryptionError when the input is not hex,
    is too short, or fails authentication (tampered data or wrong key).
    """
    try:
        raw = bytes.fromhex(encoded)
    except (TypeError, ValueError) as exc:
        raise DecryptionError("Ciphertext is not valid hex.") from exc

    if len(raw) < NONCE_BYTES + TAG_BYTES:
        raise DecryptionError("Ciphertext is truncated.")

    nonce = raw[:NONCE_BYTES]
    tag = raw[NONCE_BYTES:NONCE_BYTES + TAG_BYTES]
    ciphertext = raw[NONCE_BYTES + TAG_BYTES:]

    try:
        plain = AESGCM(bytes.fromhex(key_hex)).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as exc:
        raise DecryptionError("Ciphertext failed authentication.") from exc

    try:
        return plain.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("Decrypted value is not valid UTF-8.") from exc


def mask_email(plain: str) -> str:
    """'alice@example.com' → 'a***@example.com'; 'a@example.com' → '*@example.com'."""
    local, _, domain = plain.partition("@")
    masked = "*" if len(local) <= 1 else local[0] + "***"
    return f"{masked}@{domain}"


# ── Password reset tokens ──────────────────────────────────────────────────

def hash_reset_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw reset token. This is what gets stored."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def new_reset_token() -> tuple[str, str]:
    """Returns (raw_token, token_hash). Only the hash may be persisted."""
    raw_token = secrets.token_hex(RESET_TOKEN_BYTES)
    return raw_token, hash_reset_token(raw_token)
