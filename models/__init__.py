"""
Persistence layer: SQLAlchemy models, engine/session handling (DBStorage)
and the credential store built on top of them.
"""
from models.user import User
from models.refresh_token import RefreshToken
