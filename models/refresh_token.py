"""
RefreshToken model: the single live refresh token of a user.
Fields:
- user_id (String(36)) - FK to users.id, unique: at most one row per user
- token - the full refresh token string, unique
- expires_at - mirrors the exp claim of token
Rows are overwritten in place on login/refresh, never appended.
"""
from sqlalchemy import Column, String, ForeignKey, Index
from sqlalchemy.orm import relationship
from models.base_model import BaseModel, Base, UTCDateTime


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True
    )
    token = Column(String(512), nullable=False, unique=True)
    expires_at = Column(UTCDateTime(), nullable=False)

    user = relationship("User", back_populates="refresh_token")

    __table_args__ = (
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<RefreshToken user_id={self.user_id} expires_at={self.expires_at}>"
