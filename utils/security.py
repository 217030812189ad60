"""
security helpers:
- Argon2 password hashing via argon2-cffi
- TokenCodec: JWT creation/verification via PyJWT (HS256 by default)
- JTI generation for token identifiers

TokenCodec is the only code that touches the signing secret. It is built from
an explicit TokenSettings value at startup; nothing here reads Flask config.
"""
from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

from services.exceptions import MalformedTokenError

logger = logging.getLogger(__name__)

ph = PasswordHasher()

# Verified against for unknown users so a miss costs as much as a mismatch
_DUMMY_HASH = ph.hash("not-a-real-password")


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash or _DUMMY_HASH, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenKind(enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenSettings:
    """Signing configuration, loaded once at startup."""
    secret: str
    access_ttl: timedelta = timedelta(minutes=30)
    refresh_ttl: timedelta = timedelta(days=7)
    algorithm: str = "HS256"
    issuer: str = "productivity-api"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TokenSettings":
        return cls(
            secret=config["JWT_SECRET"],
            access_ttl=timedelta(milliseconds=int(config["ACCESS_TOKEN_TTL_MS"])),
            refresh_ttl=timedelta(milliseconds=int(config["REFRESH_TOKEN_TTL_MS"])),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "productivity-api"),
        )


@dataclass(frozen=True)
class Claims:
    subject: str
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime
    roles: Tuple[str, ...] = ()
    token_id: Optional[str] = None


class TokenCodec:
    """
    Issues and parses signed bearer tokens.

    Claims on the wire: sub, type ("access"/"refresh"), iat, exp, jti, iss and,
    on access tokens only, roles. Unknown claims are ignored on parse.
    """

    def __init__(self, settings: TokenSettings, clock: Callable[[], datetime] = utc_now):
        self.settings = settings
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # ---------- issuance ----------

    def issue_access_token(self, subject: str, roles: Sequence[str]) -> str:
        return self._encode(subject, TokenKind.ACCESS, self.settings.access_ttl, list(roles))

    def issue_refresh_token(self, subject: str) -> str:
        return self._encode(subject, TokenKind.REFRESH, self.settings.refresh_ttl, None)

    def _encode(self, subject: str, kind: TokenKind, ttl: timedelta, roles: Optional[list]) -> str:
        issued_at = self.now()
        payload: Dict[str, Any] = {
            "iss": self.settings.issuer,
            "sub": str(subject),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + ttl).timestamp()),
            "type": kind.value,
            "jti": generate_jti(),
        }
        if roles is not None:
            payload["roles"] = roles
        return jwt.encode(payload, self.settings.secret, algorithm=self.settings.algorithm)

    # ---------- parsing ----------

    def parse(self, token: str) -> Claims:
        """
        Verify signature, issuer and structure and return the typed claims.
        Expiry is NOT checked here; the is_valid_* predicates check it against
        this codec's clock.
        """
        if not token or not isinstance(token, str):
            raise MalformedTokenError("Empty token")
        try:
            decoded = jwt.decode(
                token,
                self.settings.secret,
                algorithms=[self.settings.algorithm],
                issuer=self.settings.issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": ["sub", "iat", "exp", "type"],
                },
            )
        except jwt.PyJWTError as exc:
            raise MalformedTokenError(f"Invalid token: {exc}") from exc
        return self._claims_from(decoded)

    @staticmethod
    def _claims_from(decoded: Mapping[str, Any]) -> Claims:
        try:
            kind = TokenKind(decoded["type"])
        except ValueError as exc:
            raise MalformedTokenError("Unknown token type") from exc

        subject = decoded["sub"]
        iat, exp = decoded["iat"], decoded["exp"]
        if not isinstance(subject, str) or not subject:
            raise MalformedTokenError("Invalid subject claim")
        if isinstance(iat, bool) or isinstance(exp, bool) \
                or not isinstance(iat, (int, float)) or not isinstance(exp, (int, float)):
            raise MalformedTokenError("Invalid timestamp claims")

        roles = decoded.get("roles", [])
        if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
            raise MalformedTokenError("Invalid roles claim")

        try:
            issued_at = datetime.fromtimestamp(iat, tz=timezone.utc)
            expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        except (OverflowError, ValueError, OSError) as exc:
            raise MalformedTokenError("Timestamp claims out of range") from exc

        return Claims(
            subject=subject,
            kind=kind,
            issued_at=issued_at,
            expires_at=expires_at,
            roles=tuple(roles) if kind is TokenKind.ACCESS else (),
            token_id=decoded.get("jti"),
        )

    # ---------- validation (never raises) ----------

    def is_valid_access(self, token: str) -> bool:
        return self._is_valid(token, TokenKind.ACCESS)

    def is_valid_refresh(self, token: str) -> bool:
        return self._is_valid(token, TokenKind.REFRESH)

    def _is_valid(self, token: str, expected: TokenKind) -> bool:
        try:
            claims = self.parse(token)
        except MalformedTokenError as exc:
            logger.debug("Rejected %s token: %s", expected.value, exc)
            return False
        if claims.expires_at <= self.now():
            logger.debug("Rejected %s token: expired at %s", expected.value, claims.expires_at)
            return False
        if claims.kind is not expected:
            logger.debug("Rejected token: expected type=%s, got type=%s", expected.value, claims.kind.value)
            return False
        return True

    # ---------- accessors (raise MalformedTokenError) ----------

    def subject_of(self, token: str) -> str:
        return self.parse(token).subject

    def roles_of(self, token: str) -> list:
        return list(self.parse(token).roles)

    def kind_of(self, token: str) -> TokenKind:
        return self.parse(token).kind

    def expiry_of(self, token: str) -> datetime:
        return self.parse(token).expires_at

    def seconds_until_expiry(self, token: str) -> int:
        remaining = (self.expiry_of(token) - self.now()).total_seconds()
        return max(0, int(remaining))
