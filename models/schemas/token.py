from marshmallow import Schema, fields, validates, ValidationError

from models.schemas.common import Duration


class TokenSchema(Schema):
    token = fields.String(required=True)


class RefreshSchema(Schema):
    refresh_token = fields.String(required=True)


class LogoutSchema(Schema):
    refresh_token = fields.String(load_default=None)


class RevokeAllSchema(Schema):
    # defaults to the caller; other users need the admin role
    user_id = fields.String(load_default=None)


class GenerateTokenSchema(Schema):
    payload = fields.Dict(required=True)
    expires_in = Duration(load_default=None)

    @validates("payload")
    def validate_payload(self, value, **kwargs):
        # absent sub falls back to the caller; a present one must be usable
        if "sub" in value:
            sub = value["sub"]
            if not isinstance(sub, str) or not sub.strip():
                raise ValidationError("sub must be a non-empty string")
        if "roles" in value:
            roles = value["roles"]
            if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
                raise ValidationError("roles must be a list of strings")
