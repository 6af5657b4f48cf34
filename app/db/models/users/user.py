# app/db/models/users/user.py
from typing import Optional, List
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, timezone
import uuid


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    phone: str = Field(max_length=32, unique=True, index=True)
    is_verified: bool = Field(default=False)
    phone_confirmed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    # Relationships
    identities: List["UserIdentity"] = Relationship(back_populates="user")


class UserIdentity(SQLModel, table=True):
    """Linked sign-in identity of a user (e.g. the phone provider record)."""
    __tablename__ = "user_identities"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    provider: str = Field(max_length=16, default="phone")
    phone: Optional[str] = Field(max_length=32, default=None, index=True)
    created_at: datetime = Field(default_factory=_utcnow)

    # Relationships
    user: Optional[User] = Relationship(back_populates="identities")
