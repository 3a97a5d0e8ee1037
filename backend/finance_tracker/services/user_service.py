"""
services/user_service.py — Account e-mail management.

The stored address is only ever shown masked ("a***@example.com").
Changing it requires the current password.

A stored ciphertext that fails to decrypt raises codec.DecryptionError,
which is deliberately not an AppError: the global handler turns it into a
500. There is no sensible fallback for corrupted or wrongly-keyed PII.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.finance_tracker.errors import AppError, ErrorCode
from backend.finance_tracker.models.user import User
from backend.finance_tracker.services import codec


def _get_user_or_404(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise AppError(ErrorCode.USER_NOT_FOUND, "User not found.", 404)
    return user


def get_masked_email(user_id: int, session: Session) -> dict:
    user = _get_user_or_404(user_id, session)
    if not user.email_encrypted:
        raise AppError(ErrorCode.EMAIL_NOT_SET, "No email address on file.", 404)

    email = codec.decrypt_email(user.email_encrypted, current_app.config["EMAIL_ENCRYPTION_KEY"])
    return {"maskedEmail": codec.mask_email(email)}


def update_email(
        user_id: int,
        current_password: str,
        new_email: str,
        session: Session,
) -> dict:
    """
    Raises:
      AppError(INVALID_CREDENTIALS, 401) — current password wrong
      AppError(DUPLICATE_EMAIL, 409)     — address belongs to another account
    """
    user = _get_user_or_404(user_id, session)

    if not codec.verify_password(current_password, user.password_hash):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "Current password is incorrect.",
            401,
            field="currentPassword",
        )

    email = codec.normalise_email(new_email)
    email_hash = codec.hash_email(email, current_app.config["EMAIL_HMAC_KEY"])

    owner_id = session.execute(
        select(User.id).where(User.email_hash == email_hash)
    ).scalar_one_or_none()
    if owner_id is not None and owner_id != user.id:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            "Email already registered.",
            409,
            field="newEmail",
        )

    user.email_hash = email_hash
    user.email_encrypted = codec.encrypt_email(email, current_app.config["EMAIL_ENCRYPTION_KEY"])
    try:
        session.flush()
    except IntegrityError as exc:
        session.rollback()
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            "Email already registered.",
            409,
            field="newEmail",
        ) from exc

    return {"maskedEmail": codec.mask_email(email)}
