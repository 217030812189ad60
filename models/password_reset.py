from sqlalchemy import Column, String
from models.base_model import BaseModel, Base, UTCDateTime


class PasswordResetToken(BaseModel, Base):
    """One-time password reset code, consumed on confirmation."""
    __tablename__ = "password_reset_tokens"

    code = Column(String(6), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    expires_at = Column(UTCDateTime(), nullable=False)

    def __repr__(self):
        return f"<PasswordResetToken email={self.email}>"
