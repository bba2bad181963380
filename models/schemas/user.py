from marshmallow import Schema, fields, pre_load


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class _EmailNormalizingSchema(Schema):
    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class SignupSchema(_EmailNormalizingSchema):
    # password strength is enforced by AuthService so every caller gets it
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    name = fields.String(allow_none=True, load_default=None)


class SigninSchema(_EmailNormalizingSchema):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class ForgotPasswordSchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)


class ResetPasswordSchema(Schema):
    token = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class ChangePasswordSchema(Schema):
    current_password = fields.String(required=True, load_only=True)
    new_password = fields.String(required=True, load_only=True)


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    name = fields.String(allow_none=True)
    email = fields.String(allow_none=False)
    roles = fields.List(fields.String(allow_none=True))
    email_verified = fields.Boolean()
    created_at = fields.DateTime(allow_none=True)


class SessionOutSchema(Schema):
    session_id = fields.String()
    created_at = fields.DateTime(allow_none=True)
    expires_at = fields.DateTime()
