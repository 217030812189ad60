from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app


def get_session_manager():
    return current_app.extensions["session_manager"]


def bearer_token() -> str:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        abort(401, description="Missing or invalid Authorization header")
    return auth.split(" ", 1)[1].strip()


def clear_auth_context():
    """Drop the identity attached to the current request by jwt_required."""
    for key in ("current_user", "current_user_roles", "current_token"):
        g.pop(key, None)


def jwt_required():
    """
    Request gate: reject unless the bearer token is a valid, unexpired access
    token; otherwise attach the identity named by its subject to flask.g.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = bearer_token()
            manager = get_session_manager()
            codec = manager.codec
            if not codec.is_valid_access(token):
                abort(401, description="Invalid or expired access token")

            claims = codec.parse(token)
            identity = manager.directory.find_by_username(claims.subject)
            if not identity:
                abort(401, description="User not found")
            g.current_user = identity
            g.current_user_roles = list(claims.roles)
            g.current_token = token
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user has ANY of the required roles.
    Deny (403) only if there is NO overlap between user_roles and required_roles.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            user_roles = set(getattr(g, "current_user_roles", []))
            if not (user_roles & req):
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
