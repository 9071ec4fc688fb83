"""OTP login routes: send / verify codes, register, existence check and profile lookup."""
import logging
from typing import Optional

from fastapi import APIRouter, Header, Query, Request
from pydantic import BaseModel

from services.container import ServiceContainer
from services.errors import (
    DirectoryError,
    NotFound,
    Unauthenticated,
    UpstreamFailure,
    UserNotFound,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# Every field is optional so a missing one is reported as our own 400, not a 422.
class SendOtpRequest(BaseModel):
    email: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None
    otp: Optional[str] = None  # older clients


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    token: Optional[str] = None


class ExistsRequest(BaseModel):
    email: Optional[str] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _services(request: Request) -> ServiceContainer:
    return request.app.state.services


@router.post("/send-otp")
async def send_otp(body: SendOtpRequest, request: Request):
    email = _clean(body.email)
    await _services(request).otp.issue(email)
    return {"ok": True, "message": "OTP sent"}


@router.post("/verify-otp")
async def verify_otp(body: VerifyOtpRequest, request: Request):
    services = _services(request)
    email = _clean(body.email)
    code = _clean(body.code) or _clean(body.otp)
    services.otp.verify(email, code)
    token = services.tokens.mint(email)
    logger.info(f"OTP verified for {email}")
    return {"ok": True, "message": "Verified", "token": token}


@router.post("/register")
async def register(body: RegisterRequest, request: Request):
    services = _services(request)
    name, email, token = _clean(body.name), _clean(body.email), _clean(body.token)
    if not name or not email or not token:
        raise ValidationFailed("Name, email and token required")

    if services.tokens.resolve(token) != email:
        raise NotFound("Invalid or expired token", code="invalid_token")

    try:
        user = await services.users.add_user(name, email)
    except DirectoryError:
        raise UpstreamFailure("Failed to save user", code="persistence_failure")

    services.tokens.revoke(token)
    return {"ok": True, "message": "Registered", "user": user}


@router.post("/exists")
async def exists(body: ExistsRequest, request: Request):
    email = _clean(body.email)
    if not email:
        raise ValidationFailed("Email required")
    try:
        found = await _services(request).users.exists(email)
    except DirectoryError:
        raise UpstreamFailure("Failed to load users", code="persistence_failure")
    return {"ok": True, "exists": found}


@router.get("/me")
async def me(
    request: Request,
    x_auth_token: Optional[str] = Header(None),
    token: Optional[str] = Query(None),
):
    services = _services(request)
    presented = _clean(x_auth_token) or _clean(token)
    if not presented:
        raise Unauthenticated("Token required")
    email = services.tokens.resolve(presented)
    if not email:
        raise Unauthenticated("Invalid or expired token", code="invalid_token")

    try:
        user = await services.users.find_by_email(email)
    except DirectoryError:
        raise UpstreamFailure("Failed to load users", code="persistence_failure")
    if not user:
        raise UserNotFound("User not found")
    return {"ok": True, "user": user}
