from marshmallow import Schema, fields, pre_load, validates

from models.schemas.user import UserOutSchema, _norm_email, _check_password


class RefreshRequestSchema(Schema):
    refresh_token = fields.String(required=True)


class EmailSchema(Schema):
    email = fields.Email(required=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class PasswordResetConfirmSchema(Schema):
    token = fields.String(required=True)
    new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        _check_password(value)


class TokenPairOutSchema(Schema):
    """Login/refresh response body."""
    access_token = fields.String()
    refresh_token = fields.String()
    token_type = fields.Constant("bearer")
    expires_in = fields.Integer()
    refresh_expires_in = fields.Integer()
    user = fields.Nested(UserOutSchema, attribute="identity")


class SessionStatusOutSchema(Schema):
    active = fields.Boolean()
    expires_at = fields.DateTime(allow_none=True)
    expires_in = fields.Integer()
