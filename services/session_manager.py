"""
Session lifecycle: login, refresh (rotation), logout, all-session
invalidation and the expired-token sweep.

Single session per user: the store holds at most one refresh record per
owner, overwritten on every login and refresh. Access tokens are stateless
and stay usable until their own expiry even after logout.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from services.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    SessionError,
    TokenExpiredError,
    TokenNotFoundError,
)
from services.identity import Identity
from services.token_store import RefreshTokenRecord
from utils.security import TokenCodec

logger = logging.getLogger(__name__)


def _tail(token: str) -> str:
    return f"...{token[-10:]}" if token else "<empty>"


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str
    identity: Identity


@dataclass(frozen=True)
class SessionStatus:
    active: bool
    expires_at: Optional[datetime]
    expires_in: int


class SessionManager:
    def __init__(self, codec: TokenCodec, token_store, directory):
        self.codec = codec
        self.token_store = token_store
        self.directory = directory

    def login(self, username: str, password: str) -> SessionTokens:
        try:
            identity = self.directory.verify_credentials(username, password)
        except InvalidCredentialsError:
            logger.warning("Login failed for user: %s", username)
            raise

        try:
            tokens = self._issue(identity)
            self._store_refresh_token(identity, tokens.refresh_token)
        except SessionError:
            raise
        except Exception as exc:
            logger.error("Login error for user: %s", username, exc_info=exc)
            raise SessionError() from exc

        logger.info("User login successful: %s", identity.username)
        return tokens

    def refresh(self, old_refresh_token: str) -> SessionTokens:
        if not self.codec.is_valid_refresh(old_refresh_token):
            logger.warning("Refresh token validation failed: %s", _tail(old_refresh_token))
            raise InvalidTokenError()

        record = self.token_store.find_by_token(old_refresh_token)
        if record is None:
            logger.warning("Refresh token not found in store: %s", _tail(old_refresh_token))
            raise TokenNotFoundError()

        if record.is_expired(self.codec.now()):
            self.token_store.delete_by_token(record.value)
            logger.info("Deleted expired refresh token of user id %s", record.owner_id)
            raise TokenExpiredError()

        identity = self.directory.find_by_id(record.owner_id)
        if identity is None:
            self.token_store.delete_by_owner(record.owner_id)
            raise TokenNotFoundError()

        tokens = self._issue(identity)
        self.token_store.save(
            record.rotated(tokens.refresh_token, self.codec.expiry_of(tokens.refresh_token))
        )
        logger.info("Refreshed tokens for user: %s", identity.username)
        return tokens

    def logout(self, identity: Identity) -> int:
        deleted = self.token_store.delete_by_owner(identity.id)
        logger.info("User logout: %s (%d refresh token(s) deleted)", identity.username, deleted)
        return deleted

    def invalidate_all_sessions(self, identity: Identity) -> int:
        deleted = self.token_store.delete_by_owner(identity.id)
        logger.info("Invalidated %d session(s) for user: %s", deleted, identity.username)
        return deleted

    def cleanup_expired_tokens(self, now: Optional[datetime] = None) -> int:
        deleted = self.token_store.delete_expired(now or self.codec.now())
        if deleted:
            logger.info("Cleaned up %d expired refresh tokens", deleted)
        return deleted

    def session_status(self, identity: Identity) -> SessionStatus:
        record = self.token_store.find_by_owner(identity.id)
        now = self.codec.now()
        if record is None or record.is_expired(now):
            return SessionStatus(active=False, expires_at=None, expires_in=0)
        return SessionStatus(
            active=True,
            expires_at=record.expires_at,
            expires_in=max(0, int((record.expires_at - now).total_seconds())),
        )

    def _issue(self, identity: Identity) -> SessionTokens:
        return SessionTokens(
            access_token=self.codec.issue_access_token(identity.username, identity.role_names),
            refresh_token=self.codec.issue_refresh_token(identity.username),
            identity=identity,
        )

    def _store_refresh_token(self, identity: Identity, token: str) -> None:
        expires_at = self.codec.expiry_of(token)
        existing = self.token_store.find_by_owner(identity.id)
        if existing:
            record = existing.rotated(token, expires_at)
        else:
            record = RefreshTokenRecord(owner_id=identity.id, value=token, expires_at=expires_at)
        self.token_store.save(record)
