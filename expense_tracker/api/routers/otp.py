"""Email one-time passcode endpoints."""

from fastapi import APIRouter, Depends

from expense_tracker.api.deps import get_otp_gate
from expense_tracker.api.schemas import SendOtpRequest, SuccessResponse, VerifyOtpRequest
from expense_tracker.ledger import ValidationError
from expense_tracker.models import ValidationIssue
from expense_tracker.services.otp import OtpGate, OtpNotFound

router = APIRouter(prefix="/api/otp", tags=["otp"])


@router.post("/send-otp", response_model=SuccessResponse)
async def send_otp(
    request: SendOtpRequest,
    gate: OtpGate = Depends(get_otp_gate),
) -> SuccessResponse:
    email = (request.email or "").strip()
    if not email:
        raise ValidationError([
            ValidationIssue(field="email", issue_type="missing", message="Email is required"),
        ])

    # The code itself is only ever sent by email
    await gate.issue(email)
    return SuccessResponse()


@router.post("/verify-otp", response_model=SuccessResponse)
async def verify_otp(
    request: VerifyOtpRequest,
    gate: OtpGate = Depends(get_otp_gate),
) -> SuccessResponse:
    email = (request.email or "").strip()
    code = "" if request.otp is None else str(request.otp).strip()
    if not email or not code:
        raise OtpNotFound("Email and OTP are required")

    await gate.verify(email, code)
    return SuccessResponse()
