"""
Account operations around the session core:
- registration and username availability
- username lookup by email (masked)
- password reset with one-time 6-digit codes; a confirmed reset
  invalidates every session of the user
"""
from __future__ import annotations

import logging
import secrets
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError

from models.password_reset import PasswordResetToken
from models.user import User
from services.exceptions import (
    EmailAlreadyExistsError,
    InvalidResetTokenError,
    StoreUnavailableError,
    UsernameAlreadyExistsError,
)
from services.identity import Identity
from utils.security import hash_password

logger = logging.getLogger(__name__)

RESET_SENT_MESSAGE = "If the email is registered, a reset code has been sent."
MASK_KEEP = {"_", "-", ".", "@"}


def mask_username(username: str) -> str:
    """
    Mask a username for display: keep the first and last characters and any
    separator characters, star out the rest.
    john_doe -> j***_**e, admin -> a***n, abc -> a*c, ab -> a*
    """
    if len(username) <= 2:
        return username[0] + "*" * (len(username) - 1)
    if len(username) <= 4:
        return username[0] + "*" * (len(username) - 2) + username[-1]
    middle = "".join(ch if ch in MASK_KEEP else "*" for ch in username[1:-1])
    return username[0] + middle + username[-1]


class AccountService:
    def __init__(self, storage, directory, session_manager, reset_ttl=timedelta(minutes=15)):
        self.storage = storage
        self.directory = directory
        self.session_manager = session_manager
        self.reset_ttl = reset_ttl

    def _now(self):
        return self.session_manager.codec.now()

    def username_available(self, username: str) -> bool:
        return self.directory.find_by_username(username) is None

    def register(self, username: str, email: str, password: str, nickname: str | None = None) -> Identity:
        logger.info("User registration attempt: %s", username)
        if self.directory.find_by_username(username):
            raise UsernameAlreadyExistsError()
        if self.directory.find_by_email(email):
            raise EmailAlreadyExistsError()

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            nickname=nickname,
        )
        self.storage.new(user)
        self.storage.save()
        logger.info("User registration successful: %s", username)
        return Identity.from_user(user)

    def find_username(self, email: str) -> Dict[str, Any]:
        identity = self.directory.find_by_email(email)
        if identity is None:
            logger.warning("Username lookup for unregistered email")
            return {"found": False, "message": "No account is registered with that email."}
        return {
            "found": True,
            "username": mask_username(identity.username),
            "email": email,
            "message": "Account found.",
        }

    @contextmanager
    def _guard(self):
        try:
            yield self.storage.get_session()
        except SQLAlchemyError as exc:
            self.storage.rollback()
            raise StoreUnavailableError() from exc

    def request_password_reset(self, email: str) -> str:
        identity = self.directory.find_by_email(email)
        if identity is None:
            logger.warning("Password reset requested for unregistered email")
            return RESET_SENT_MESSAGE

        now = self._now()
        with self._guard() as session:
            # one outstanding code per email; expired codes of anyone go too
            session.query(PasswordResetToken).filter(
                (PasswordResetToken.email == email) | (PasswordResetToken.expires_at <= now)
            ).delete(synchronize_session=False)
            code = self._unused_code(session)
            self.storage.new(PasswordResetToken(
                code=code,
                email=email,
                expires_at=now + self.reset_ttl,
            ))
            self.storage.save()

        # TODO: hand the code to a mail sender once one exists; until then it is only logged
        logger.info("Password reset code generated for user: %s", identity.username)
        logger.debug("Password reset code for %s: %s", identity.username, code)
        return RESET_SENT_MESSAGE

    @staticmethod
    def _unused_code(session) -> str:
        while True:
            code = f"{secrets.randbelow(1000000):06d}"
            taken = session.query(PasswordResetToken.id).filter(PasswordResetToken.code == code).first()
            if taken is None:
                return code

    def _live_reset_token(self, session, code: str):
        row = session.query(PasswordResetToken).filter(PasswordResetToken.code == code).first()
        if row is None or row.expires_at <= self._now():
            return None
        return row

    def validate_reset_token(self, code: str) -> bool:
        with self._guard() as session:
            return self._live_reset_token(session, code) is not None

    def confirm_password_reset(self, code: str, new_password: str) -> Identity:
        with self._guard() as session:
            row = self._live_reset_token(session, code)
            if row is None:
                raise InvalidResetTokenError()

            user = session.query(User).filter(User.email == row.email).first()
            # one-time code: consumed whether or not the user still exists
            self.storage.delete(row)
            if user is None:
                self.storage.save()
                raise InvalidResetTokenError()

            user.password_hash = hash_password(new_password)
            self.storage.new(user)
            self.storage.save()
            identity = Identity.from_user(user)

        self.session_manager.invalidate_all_sessions(identity)
        logger.info("Password reset successful for user: %s", identity.username)
        return identity
