"""SQLAlchemy model for the user table."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.infrastructure.database import Base


class UserModel(Base):
    """Database representation of a platform member."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    role_id = Column(Integer, ForeignKey("role.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(120), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    role = relationship("RoleModel", lazy="joined")


__all__ = ["UserModel"]
