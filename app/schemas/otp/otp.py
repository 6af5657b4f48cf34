# app/schemas/otp/otp.py
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator
from typing import Optional, Dict, Any, List
from datetime import datetime

class OtpRequestBody(BaseModel):
    phone: Optional[str] = Field(None, description="Phone number in any common format")
    report: Optional[Dict[str, Any]] = Field(None, description="Opaque snapshot embedded into the QR payload")

    @field_validator('phone', mode='before')
    @classmethod
    def coerce_phone(cls, v):
        if isinstance(v, int):
            return str(v)
        return v

class QrCode(BaseModel):
    payload: Optional[str] = None
    image: Optional[str] = None

class OtpRequestResponse(BaseModel):
    sessionId: str
    requestId: str
    expiresInSeconds: int
    mock: bool = False
    mockCode: Optional[str] = None
    qr: Optional[QrCode] = None

class OtpVerifyBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sessionId: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("sessionId", "requestId"),
        description="Session id returned by /otp/request",
    )
    code: Optional[str] = Field(None, description="Code received by SMS")

    @field_validator('sessionId', 'code', mode='before')
    @classmethod
    def coerce_str(cls, v):
        if isinstance(v, int):
            return str(v)
        return v

class OtpVerifyResponse(BaseModel):
    success: bool = True
    phone: str
    mock: bool = False
    identityUserId: Optional[str] = None
    identityUserCreated: bool = False

class OtpRequestItem(BaseModel):
    requestId: str
    phone: str
    provider: str
    status: str
    createdAt: Optional[datetime] = None
    expiresAt: Optional[datetime] = None
    verifiedAt: Optional[datetime] = None
    metadata: Dict[str, Any] = {}
    qr: QrCode

class OtpRequestList(BaseModel):
    items: List[OtpRequestItem]
