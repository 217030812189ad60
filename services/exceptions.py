"""
Typed failures raised by the session core and the account service.

Every class carries the error code, a user-safe message and the HTTP status
that api.errors maps it to.
"""
from __future__ import annotations


class AuthError(Exception):
    error = "UNAUTHORIZED"
    message = "Authentication required"
    status = 401

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class InvalidCredentialsError(AuthError):
    error = "INVALID_CREDENTIALS"
    message = "Invalid username or password"


class MalformedTokenError(AuthError):
    error = "INVALID_TOKEN"
    message = "Invalid token"


class InvalidTokenError(AuthError):
    error = "INVALID_REFRESH_TOKEN"
    message = "Invalid refresh token"


class TokenNotFoundError(AuthError):
    error = "REFRESH_TOKEN_NOT_FOUND"
    message = "Refresh token not found"


class TokenExpiredError(AuthError):
    error = "REFRESH_TOKEN_EXPIRED"
    message = "Refresh token has expired"


class SessionError(AuthError):
    error = "SESSION_ERROR"
    message = "Session could not be established"
    status = 500


class StoreUnavailableError(SessionError):
    error = "SESSION_STORE_UNAVAILABLE"
    message = "Session store unavailable"


class UsernameAlreadyExistsError(AuthError):
    error = "USERNAME_ALREADY_EXISTS"
    message = "Username is already taken"
    status = 409


class EmailAlreadyExistsError(AuthError):
    error = "EMAIL_ALREADY_EXISTS"
    message = "Email is already registered"
    status = 409


class InvalidResetTokenError(AuthError):
    error = "INVALID_RESET_TOKEN"
    message = "Reset token is invalid or has expired"
    status = 400
