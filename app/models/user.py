import enum
from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Enum, String, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.customer import Customer


class Role(str, enum.Enum):
    """User roles in the system."""
    ADMIN = "admin"
    STAFF = "staff"
    INSTRUCTOR = "instructor"
    CUSTOMER = "customer"


STAFF_ROLES = (Role.ADMIN, Role.STAFF, Role.INSTRUCTOR)


class User(Base, TimestampMixin):
    """Login account for customers and studio staff."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    hashed_password: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        default=Role.CUSTOMER,
        nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    customer: Mapped[Optional["Customer"]] = relationship(
        "Customer", back_populates="user", uselist=False
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @classmethod
    async def get_by_id(cls, db_session: AsyncSession, id: str) -> Optional["User"]:
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_by_email(
        cls, db_session: AsyncSession, email: str
    ) -> Optional["User"]:
        result = await db_session.execute(
            select(cls).where(cls.email == email.lower())
        )
        return result.scalars().first()

    @classmethod
    async def create_user(cls, db_session: AsyncSession, **kwargs) -> "User":
        """Create a user; the caller commits."""
        if "email" in kwargs:
            kwargs["email"] = kwargs["email"].lower()
        user = cls(**kwargs)
        db_session.add(user)
        await db_session.flush()
        return user
