from models.base_model import Base, BaseModel
from sqlalchemy import Column, String, JSON
from sqlalchemy.orm import relationship

DEFAULT_ROLES = ["ROLE_USER"]


class User(BaseModel, Base):
    __tablename__ = "users"
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(100), nullable=False)
    nickname = Column(String(100), nullable=True)
    roles = Column(JSON, nullable=True, default=lambda: list(DEFAULT_ROLES))

    refresh_token = relationship(
        "RefreshToken",
        back_populates="user",
        uselist=False,
        passive_deletes=True
    )

    @property
    def role_names(self):
        return list(self.roles or DEFAULT_ROLES)

    def __repr__(self):
        return f"<User username={self.username}>"
