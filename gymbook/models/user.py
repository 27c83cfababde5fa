"""
User model
"""

from sqlalchemy import Column, String, Boolean, Enum
import enum

from gymbook.models.base import BaseModel


class UserRole(str, enum.Enum):
    MEMBER = "member"
    TRAINER = "trainer"
    ADMIN = "admin"


class User(BaseModel):
    """
    Gym member, trainer or administrator

    Credentials are owned by the upstream identity provider; the booking
    engine only references users by id and role.
    """
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        default=UserRole.MEMBER,
        nullable=False
    )
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
