"""Pydantic schemas for API contracts."""

from typing import Optional, Union

from pydantic import BaseModel


# Fields are optional so a missing value reaches the handler and is
# answered with this API's own 400 message.

class SendOtpRequest(BaseModel):
    email: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    email: Optional[str] = None
    otp: Optional[Union[str, int]] = None


class ExportRequest(BaseModel):
    person: Optional[str] = None
    month: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True


class TransactionCreatedResponse(SuccessResponse):
    id: str


class ExportResponse(SuccessResponse):
    sheets: list[str]


class HealthResponse(BaseModel):
    status: str
