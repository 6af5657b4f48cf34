# app/db/models/auth/otp.py
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from datetime import datetime, timezone
from typing import Optional, Dict, Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OtpRequestRecord(SQLModel, table=True):
    __tablename__ = "otp_requests"
    request_id: str = Field(primary_key=True, max_length=64)
    phone: str = Field(max_length=32, index=True)
    provider: str = Field(max_length=16)
    status: str = Field(default="pending", max_length=16)
    code: Optional[str] = Field(default=None, max_length=6)
    qr_payload: Optional[str] = None
    qr_data_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow, index=True)
    # "metadata" is reserved on SQLModel classes, so the attribute is renamed
    meta: Dict[str, Any] = Field(default_factory=dict, sa_column=Column("metadata", JSON, nullable=False))
