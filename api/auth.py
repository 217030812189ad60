"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/logout-all
- GET  /auth/me
- GET  /auth/validate
- GET  /auth/session
- GET  /auth/check-username
- POST /auth/find-username
- POST /auth/password-reset
- GET  /auth/password-reset/<code>
- POST /auth/password-reset/confirm
- POST /auth/users/<username>/logout-all (admin only)

The implementation:
- Credentials are argon2 hashes (utils.security)
- Short-lived access tokens and longer-lived refresh tokens (JWTs, HS256)
- One refresh token per user, stored in refresh_tokens and rotated on refresh
- Failures are raised as services.exceptions and rendered by api.errors
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort, current_app

from models.schemas.auth import (
    EmailSchema,
    PasswordResetConfirmSchema,
    RefreshRequestSchema,
    SessionStatusOutSchema,
    TokenPairOutSchema,
)
from models.schemas.user import UserCreateSchema, UserOutSchema, UserLoginSchema
from utils.decorators import (
    clear_auth_context,
    get_session_manager,
    jwt_required,
    roles_required,
)

bp = Blueprint("auth", __name__)

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()
user_login_schema = UserLoginSchema()
refresh_schema = RefreshRequestSchema()
email_schema = EmailSchema()
reset_confirm_schema = PasswordResetConfirmSchema()
token_pair_schema = TokenPairOutSchema()
session_status_schema = SessionStatusOutSchema()


def get_account_service():
    return current_app.extensions["account_service"]


def token_pair_response(tokens):
    codec = get_session_manager().codec
    return token_pair_schema.dump(
        {
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token,
            "expires_in": codec.seconds_until_expiry(tokens.access_token),
            "refresh_expires_in": codec.seconds_until_expiry(tokens.refresh_token),
            "identity": tokens.identity,
        }
    )


@bp.post("/register")
def register():
    """
    Register a new user.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            username: { type: string }
            email: { type: string }
            password: { type: string }
            nickname: { type: string }
    responses:
      201:
        description: Created
      409:
        description: Username or email already registered
      422:
        description: Validation error
    """
    data = user_create_schema.load(request.get_json(silent=True) or {})
    identity = get_account_service().register(
        username=data["username"],
        email=data["email"],
        password=data["password"],
        nickname=data.get("nickname"),
    )
    return jsonify({"data": user_out_schema.dump(identity)}), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid username or password
    """
    data = user_login_schema.load(request.get_json(silent=True) or {})
    tokens = get_session_manager().login(data["username"], data["password"])
    return jsonify({"data": token_pair_response(tokens)}), 200


@bp.post("/refresh")
def refresh():
    """
    Use a refresh token to obtain new access and refresh tokens (rotation)
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns the rotated pair)
      401:
        description: Refresh token invalid, superseded or expired; log in again
    """
    data = refresh_schema.load(request.get_json(silent=True) or {})
    tokens = get_session_manager().refresh(data["refresh_token"])
    return jsonify({"data": token_pair_response(tokens)}), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: deletes the user's refresh token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      204:
        description: Logged out
      401:
        description: Unauthorized
    """
    get_session_manager().logout(g.current_user)
    clear_auth_context()
    return ("", 204)


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    Log out of every device
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      204:
        description: All sessions invalidated
      401:
        description: Unauthorized
    """
    get_session_manager().invalidate_all_sessions(g.current_user)
    clear_auth_context()
    return ("", 204)


@bp.get("/me")
@jwt_required()
def me():
    """
    Current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": user_out_schema.dump(g.current_user)}), 200


@bp.get("/validate")
@jwt_required()
def validate():
    """
    Check the presented access token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Token is valid
      401:
        description: Token is invalid or expired
    """
    codec = get_session_manager().codec
    return jsonify(
        {
            "data": {
                "valid": True,
                "username": g.current_user.username,
                "roles": g.current_user_roles,
                "expires_in": codec.seconds_until_expiry(g.current_token),
            }
        }
    ), 200


@bp.get("/session")
@jwt_required()
def session_status():
    """
    Refresh session state of the current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
    """
    status = get_session_manager().session_status(g.current_user)
    return jsonify({"data": session_status_schema.dump(status)}), 200


@bp.get("/check-username")
def check_username():
    """
    Username availability
    ---
    tags:
      - Auth
    parameters:
      - in: query
        name: username
        type: string
        required: true
    responses:
      200:
        description: OK
      400:
        description: Missing username
    """
    username = (request.args.get("username") or "").strip()
    if not username:
        abort(400, description="username is required")
    available = get_account_service().username_available(username)
    return jsonify({"data": {"username": username, "available": available}}), 200


@bp.post("/find-username")
def find_username():
    """
    Look up a (masked) username by email
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200:
        description: OK
    """
    data = email_schema.load(request.get_json(silent=True) or {})
    return jsonify({"data": get_account_service().find_username(data["email"])}), 200


@bp.post("/password-reset")
def request_password_reset():
    """
    Request a password reset code
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200:
        description: Same answer whether or not the email is registered
    """
    data = email_schema.load(request.get_json(silent=True) or {})
    message = get_account_service().request_password_reset(data["email"])
    return jsonify({"data": {"message": message}}), 200


@bp.get("/password-reset/<code>")
def validate_reset_code(code: str):
    """
    Check a password reset code
    ---
    tags:
      - Auth
    parameters:
      - in: path
        name: code
        type: string
        required: true
    responses:
      200:
        description: OK
    """
    return jsonify({"data": {"valid": get_account_service().validate_reset_token(code)}}), 200


@bp.post("/password-reset/confirm")
def confirm_password_reset():
    """
    Set a new password with a reset code; logs the user out everywhere
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: Password changed
      400:
        description: Invalid or expired code
    """
    data = reset_confirm_schema.load(request.get_json(silent=True) or {})
    get_account_service().confirm_password_reset(data["token"], data["new_password"])
    return jsonify({"data": {"message": "Password changed."}}), 200


@bp.post("/users/<username>/logout-all")
@roles_required(["ROLE_ADMIN"])
def admin_logout_all(username: str):
    """
    Invalidate every session of a user (admin only)
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      - in: path
        name: username
        type: string
        required: true
    responses:
      204:
        description: Sessions invalidated
      403:
        description: Insufficient role
      404:
        description: No such user
    """
    manager = get_session_manager()
    identity = manager.directory.find_by_username(username)
    if not identity:
        abort(404)
    manager.invalidate_all_sessions(identity)
    return ("", 204)
