"""
User model with secure password storage and a marketplace role.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint

from app.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    CLIENT = "CLIENT"
    VENDOR = "VENDOR"
    ADMIN = "ADMIN"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.CLIENT.value)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('CLIENT', 'VENDOR', 'ADMIN')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
