"""
services/auth_service.py — Authentication and session business logic.

Responsibilities:
  - Registration (user + owned workspace in one transaction) and login
  - Session token issuance and validation against the user's token version
  - Revocation of every session (logout, password change, password reset)
  - Password-reset token lifecycle

Layer rules:
  - No flask.request, flask.g, cookies or HTTP status handling beyond
    AppError. Cookies are the middleware's job (auth_middleware.py).
  - current_app.config is read for secrets, TTLs and the bcrypt cost only.
  - Commits are the route's responsibility — only flush here.

Session design:
  - A session token is a signed JWT embedding the user's token_version at
    issuance. It expires a fixed 24h after login; it is never renewed.
  - A token is accepted only while its embedded version equals the user's
    current token_version. Incrementing the version therefore revokes every
    outstanding session at once, on every device.

Password reset design:
  - The raw reset token is e-mailed once; only its SHA-256 hash is stored.
  - A token is valid for PASSWORD_RESET_TTL (1h) and can be used once.
  - forgot-password gives the same answer whether or not the user exists.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from urllib.parse import urlencode

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.finance_tracker.errors import AppError, ErrorCode
from backend.finance_tracker.models.password_reset_token import PasswordResetToken
from backend.finance_tracker.models.user import EMAIL_HASH_UNIQUE_CONSTRAINT, User
from backend.finance_tracker.models.workspace import Workspace
from backend.finance_tracker.models.workspace_user import Permission, WorkspaceUser
from backend.finance_tracker.services import codec, email_service


_INVALID_CREDENTIALS_MESSAGE = "Invalid username or password."
_NOT_AUTHENTICATED_MESSAGE = "Not authenticated."


# ── Private helpers ────────────────────────────────────────────────────────

def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _hash_password(plain: str) -> str:
    return codec.hash_password(plain, rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12))


def _create_session_token(user: User) -> str:
    return codec.sign_session(
        user_id=user.id,
        username=user.username,
        token_version=user.token_version,
        secret=current_app.config["JWT_SECRET_KEY"],
        ttl=current_app.config["SESSION_TTL"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _build_user_dict(user: User) -> dict:
    """Serialises a User to the public summary. No business logic."""
    return {
        "id": user.id,
        "username": user.username,
        "displayName": user.display_name,
    }


def _duplicate_username(username: str) -> AppError:
    return AppError(
        ErrorCode.DUPLICATE_USERNAME,
        "Username already taken.",
        409,
        field="username",
    )


def _violated_constraint(exc: IntegrityError) -> str:
    """
    Name of the violated constraint. psycopg2 reports it in `diag`; other
    drivers only mention it in the error text, which is returned instead.
    """
    diag = getattr(exc.orig, "diag", None)
    return getattr(diag, "constraint_name", None) or str(exc.orig)


def _duplicate_email() -> AppError:
    return AppError(
        ErrorCode.DUPLICATE_EMAIL,
        "Email already registered.",
        409,
        field="email",
    )


def _get_user_or_401(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise AppError(ErrorCode.NOT_AUTHENTICATED, _NOT_AUTHENTICATED_MESSAGE, 401)
    return user


def _invalid_reset_token() -> AppError:
    return AppError(
        ErrorCode.INVALID_RESET_TOKEN,
        "This password reset link is invalid or has expired.",
        400,
        field="token",
    )


# ── Registration / login ───────────────────────────────────────────────────

def register_user(
        username: str,
        display_name: str,
        password: str,
        email: str,
        session: Session,
) -> dict:
    """
    Creates a user, a zero-balance workspace, and the OWNER membership
    linking them. All three rows are flushed in the caller's transaction;
    nothing is visible until the route commits, and nothing is kept if any
    step fails.

    Raises:
      AppError(DUPLICATE_USERNAME, 409)
      AppError(DUPLICATE_EMAIL, 409)

    Returns: {"user": {...}, "token": "<session token>"}
    """
    email_hash = codec.hash_email(email, current_app.config["EMAIL_HMAC_KEY"])

    existing_username = session.execute(
        select(User.id).where(User.username == username)
    ).scalar_one_or_none()
    if existing_username is not None:
        raise _duplicate_username(username)

    existing_email = session.execute(
        select(User.id).where(User.email_hash == email_hash)
    ).scalar_one_or_none()
    if existing_email is not None:
        raise _duplicate_email()

    user = User(
        username=username,
        display_name=display_name,
        password_hash=_hash_password(password),
        token_version=0,
        email_hash=email_hash,
        email_encrypted=codec.encrypt_email(
            codec.normalise_email(email),
            current_app.config["EMAIL_ENCRYPTION_KEY"],
        ),
    )
    workspace = Workspace(balance=Decimal("0"))
    session.add_all([user, workspace])

    try:
        session.flush()  # populate ids before creating the membership
        session.add(WorkspaceUser(
            user_id=user.id,
            workspace_id=workspace.id,
            permission=Permission.OWNER,
        ))
        session.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration between the checks
        # above and the insert.
        # The email constraint is recognised by its name in models/user.py.
        session.rollback()
        if EMAIL_HASH_UNIQUE_CONSTRAINT in _violated_constraint(exc):
            raise _duplicate_email() from exc
        raise _duplicate_username(username) from exc

    return {
        "user": _build_user_dict(user),
        "token": _create_session_token(user),
    }


def login_user(username: str, password: str, session: Session) -> dict:
    """
    Validates credentials and issues a new session token.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — username not found or password
      wrong. Same code and message for both to avoid username enumeration.

    Returns: {"user": {...}, "token": "<session token>"}
    """
    user = session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()

    if user is None or not codec.verify_password(password, user.password_hash):
        raise AppError(ErrorCode.INVALID_CREDENTIALS, _INVALID_CREDENTIALS_MESSAGE, 401)

    return {
        "user": _build_user_dict(user),
        "token": _create_session_token(user),
    }


# ── Sessions ───────────────────────────────────────────────────────────────

def authenticate_session(raw_token: str | None, session: Session) -> dict:
    """
    Validates a session token and returns the identity it carries.

    Fails with NOT_AUTHENTICATED (401) when the token is absent, has a bad
    signature, has expired, names a user that no longer exists, or embeds a
    token version other than the user's current one.

    Returns: {"user_id": int, "username": str}
    """
    if not raw_token:
        raise AppError(ErrorCode.NOT_AUTHENTICATED, _NOT_AUTHENTICATED_MESSAGE, 401)

    try:
        claims = codec.verify_session(
            raw_token,
            current_app.config["JWT_SECRET_KEY"],
            algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
        )
    except codec.InvalidToken:
        raise AppError(ErrorCode.NOT_AUTHENTICATED, _NOT_AUTHENTICATED_MESSAGE, 401)

    current_version = session.execute(
        select(User.token_version).where(User.id == claims.user_id)
    ).scalar_one_or_none()

    if current_version is None or current_version != claims.token_version:
        raise AppError(ErrorCode.NOT_AUTHENTICATED, _NOT_AUTHENTICATED_MESSAGE, 401)

    return {"user_id": claims.user_id, "username": claims.username}


def revoke_all_sessions(user_id: int, session: Session) -> None:
    """
    Increments the user's token version by exactly one, in SQL, so two
    concurrent revocations both count. Every token issued before this call
    stops authenticating immediately.

    Callers invoke this once per logical event (logout, password change).
    """
    session.execute(
        update(User)
        .where(User.id == user_id)
        .values(token_version=User.token_version + 1)
    )
    session.flush()
    current_app.logger.info("Revoked all sessions for user %s", user_id)


def logout_user(user_id: int, session: Session) -> None:
    revoke_all_sessions(user_id, session)


def get_current_user(user_id: int, session: Session) -> dict:
    """
    Returns the profile of the currently authenticated user.

    Raises:
      AppError(USER_NOT_FOUND, 404) — user deleted after the token was issued.
    """
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            "User not found.",
            404,
        )
    return _build_user_dict(user)


def change_password(
        user_id: int,
        current_password: str,
        new_password: str,
        session: Session,
) -> dict:
    """
    Replaces the password after re-checking the current one, revokes every
    existing session, and returns a fresh token for the caller so they stay
    signed in on this device.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — current password wrong.

    Returns: {"user": {...}, "token": "<session token>"}
    """
    user = _get_user_or_401(user_id, session)

    if not codec.verify_password(current_password, user.password_hash):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "Current password is incorrect.",
            401,
            field="currentPassword",
        )

    user.password_hash = _hash_password(new_password)
    session.flush()
    revoke_all_sessions(user_id, session)
    session.refresh(user)

    return {
        "user": _build_user_dict(user),
        "token": _create_session_token(user),
    }


# ── Password reset ─────────────────────────────────────────────────────────

def _reset_url(raw_token: str) -> str:
    base = current_app.config["APP_BASE_URL"].rstrip("/")
    return f"{base}/reset-password?{urlencode({'token': raw_token})}"


def request_password_reset(username: str, session: Session) -> None:
    """
    Issues a reset token and e-mails the link, if the user exists and has an
    email address on file. Returns None in every case; the route answers 200
    either way so the endpoint cannot be used to probe for accounts.

    Delivery failures are logged and swallowed for the same reason.
    """
    user = session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()

    if user is None or not user.email_encrypted:
        return

    raw_token, token_hash = codec.new_reset_token()
    session.add(PasswordResetToken(
        user_id=user.id,
        token_hash=token_hash,
        expires_at=datetime.now(timezone.utc) + current_app.config["PASSWORD_RESET_TTL"],
    ))
    session.flush()

    try:
        email = codec.decrypt_email(
            user.email_encrypted,
            current_app.config["EMAIL_ENCRYPTION_KEY"],
        )
        email_service.send_password_reset_email(email, _reset_url(raw_token))
    except (codec.DecryptionError, email_service.EmailDeliveryError) as exc:
        current_app.logger.error(
            "Password reset email for user %s was not delivered: %s",
            user.id,
            exc,
        )


def reset_password(raw_token: str, new_password: str, session: Session) -> None:
    """
    Spends a reset token: sets the new password, revokes every session and
    marks the token used, all in the caller's transaction.

    The token row is locked (SELECT ... FOR UPDATE) so two concurrent
    requests with the same token cannot both succeed.

    Raises:
      AppError(INVALID_RESET_TOKEN, 400) — unknown, already used, or expired.
    """
    record = session.execute(
        select(PasswordResetToken)
        .where(PasswordResetToken.token_hash == codec.hash_reset_token(raw_token))
        .with_for_update()
    ).scalar_one_or_none()

    now = datetime.now(timezone.utc)
    if record is None or record.used_at is not None or _as_utc(record.expires_at) <= now:
        raise _invalid_reset_token()

    user = session.get(User, record.user_id)
    if user is None:
        raise _invalid_reset_token()

    user.password_hash = _hash_password(new_password)
    record.used_at = now
    session.flush()
    revoke_all_sessions(user.id, session)
