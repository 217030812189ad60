"""
Identity directory: the user-record side of authentication.

The session core only ever sees Identity values, never ORM rows.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from models.user import User
from services.exceptions import InvalidCredentialsError, StoreUnavailableError
from utils.security import verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    id: str
    username: str
    email: Optional[str] = None
    nickname: Optional[str] = None
    role_names: List[str] = field(default_factory=list)

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            nickname=user.nickname,
            role_names=user.role_names,
        )


class UserDirectory:
    def __init__(self, storage):
        self.storage = storage

    def _one(self, *criteria) -> Optional[User]:
        try:
            return self.storage.get_session().query(User).filter(*criteria).first()
        except SQLAlchemyError as exc:
            self.storage.rollback()
            raise StoreUnavailableError() from exc

    def find_user(self, username: str) -> Optional[User]:
        return self._one(User.username == username)

    def find_by_id(self, user_id: str) -> Optional[Identity]:
        user = self._one(User.id == user_id)
        return Identity.from_user(user) if user else None

    def find_by_username(self, username: str) -> Optional[Identity]:
        user = self.find_user(username)
        return Identity.from_user(user) if user else None

    def find_by_email(self, email: str) -> Optional[Identity]:
        user = self._one(User.email == email)
        return Identity.from_user(user) if user else None

    def verify_credentials(self, username: str, password: str) -> Identity:
        """
        Return the identity for a correct username/password pair.
        Unknown user and wrong password raise the same InvalidCredentialsError.
        """
        user = self.find_user(username) if username else None
        # verify even without a user so both failure paths cost the same
        ok = verify_password(password or "", user.password_hash if user else None)
        if not user or not ok:
            raise InvalidCredentialsError()
        return Identity.from_user(user)
