import re

from marshmallow import Schema, fields, pre_load, validates, ValidationError

USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,50}$")


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _check_password(value):
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters long.")


class UserCreateSchema(Schema):
    username = fields.String(required=True)
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    nickname = fields.String(allow_none=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = _norm_email(data["email"])
            if isinstance(data.get("username"), str):
                data["username"] = data["username"].strip()
        return data

    @validates("username")
    def validate_username(self, value, **kwargs):
        if not USERNAME_RE.match(value):
            raise ValidationError(
                "Username must be 3-50 characters: letters, digits, '_', '.', '-'."
            )

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class UserLoginSchema(Schema):
    username = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    username = fields.String(allow_none=False)
    email = fields.String(allow_none=True)
    nickname = fields.String(allow_none=True)
    roles = fields.List(fields.String(), attribute="role_names")
