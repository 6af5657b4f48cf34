from fastapi import APIRouter, Depends, Query, Request
from typing import Optional

from ..application.ports.session_repo import OtpProviderName
from ..application.services.otp_service import OTPService, DEFAULT_LIST_LIMIT
from ..schemas.otp.otp import (
    OtpRequestBody, OtpRequestResponse, OtpVerifyBody, OtpVerifyResponse,
    OtpRequestItem, OtpRequestList, QrCode,
)


router = APIRouter(prefix="/otp", tags=["OTP"])


def get_otp_service(request: Request) -> OTPService:
    return request.app.state.otp_service


@router.post("/request", response_model=OtpRequestResponse, response_model_exclude_none=True)
async def request_otp(body: OtpRequestBody, service: OTPService = Depends(get_otp_service)):
    """
    Send a verification code to the phone and open a verification session
    """
    result = await service.request_otp(body.phone, body.report)
    session = result.session
    return OtpRequestResponse(
        sessionId=session.session_id,
        requestId=session.session_id,
        expiresInSeconds=result.expires_in_seconds,
        mock=result.mock,
        mockCode=result.mock_code,
        qr=QrCode(payload=session.qr_payload, image=session.qr_image) if session.qr_payload else None,
    )


@router.post("/verify", response_model=OtpVerifyResponse)
async def verify_otp(body: OtpVerifyBody, service: OTPService = Depends(get_otp_service)):
    """
    Check a code against its session and provision the phone's identity
    """
    result = await service.verify_otp(body.sessionId, body.code)
    identity = result.identity
    return OtpVerifyResponse(
        success=True,
        phone=result.phone,
        mock=result.session.provider is OtpProviderName.MOCK,
        identityUserId=identity.user_id if identity else None,
        identityUserCreated=identity.created if identity else False,
    )


@router.get("/requests", response_model=OtpRequestList)
async def list_otp_requests(
    limit: Optional[str] = Query(None, description="1..200, default 50"),
    service: OTPService = Depends(get_otp_service),
):
    rows = await service.list_recent(limit if limit is not None else DEFAULT_LIST_LIMIT)
    items = [
        OtpRequestItem(
            requestId=row["request_id"],
            phone=row["phone"],
            provider=row["provider"],
            status=row["status"],
            createdAt=row["created_at"],
            expiresAt=row["expires_at"],
            verifiedAt=row["verified_at"],
            metadata=row["metadata"] or {},
            qr=QrCode(payload=row["qr_payload"], image=row["qr_data_url"]),
        )
        for row in rows
    ]
    return OtpRequestList(items=items)
