import logging
from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import otp as otp_service
from ..auth import issue_session_token, load_session_user, require_admin_access
from ..config import OTP_DEBUG
from ..db import get_session
from ..errors import ApiError
from ..models import LoginLog
from ..otp import PhoneNotRegistered
from ..schemas import SendOtpBody, VerifyOtpBody, ProfileUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_PHONE = "Phone number must be a valid 10-digit Indian mobile number starting with 6-9"

def _serialize_user(user_type: str, user) -> dict:
    return {
        "id": user.admin_id if user_type == "admin" else user.student_id,
        "phoneNumber": user.phone_number,
        "name": user.name,
        "email": user.email,
        "createdAt": user.created_at,
        "role": user_type,
    }

def _formatted_phone(raw) -> str:
    phone = otp_service.format_phone_number(raw)
    if not otp_service.validate_phone_number(phone):
        raise ApiError(400, "Invalid phone number format", INVALID_PHONE)
    return phone

def _session_user(session: Session, session_token: str):
    user_type, user = load_session_user(session, session_token)
    if not user:
        raise ApiError(401, "Invalid session token", "Valid session token is required")
    return user_type, user

@router.post("/send-otp")
def send_otp(payload: SendOtpBody, session: Session = Depends(get_session)):
    if not payload.phone_number:
        raise ApiError(400, "Phone number is required", "Phone number must be provided")
    phone = _formatted_phone(payload.phone_number)
    try:
        result = otp_service.send_otp(session, phone, payload.role)
    except PhoneNotRegistered as exc:
        raise ApiError(400, "Phone number not registered", str(exc))
    sms_result = result["smsResult"]
    sms_ok = bool(sms_result.get("success"))
    message = "OTP sent successfully for authentication"
    body = {
        "success": True,
        "message": message if sms_ok else f"{message} (SMS delivery may have failed)",
        "phoneNumber": result["phoneNumber"],
        "userType": result["userType"],
        "smsStatus": sms_ok,
        "smsDetails": sms_result,
    }
    if OTP_DEBUG:
        body["debug"] = {"generatedOtp": result["otp"]}
    return body

@router.post("/verify-otp")
def verify_otp(payload: VerifyOtpBody, session: Session = Depends(get_session)):
    if not payload.phone_number or not payload.otp:
        raise ApiError(400, "Phone number and OTP are required", "Both phone number and OTP must be provided")
    phone = _formatted_phone(payload.phone_number)
    if not otp_service.is_valid_otp_format(payload.otp):
        raise ApiError(400, "Invalid OTP format", "OTP must be a 6-digit number")
    if not otp_service.verify_otp(session, phone, payload.otp):
        raise ApiError(401, "Invalid or expired OTP", "Invalid or expired OTP")

    user_type, user = otp_service.find_user_by_phone(session, phone)
    if not user:
        raise ApiError(
            404, "User not found",
            "Phone number not registered. Please contact administrator to register your phone number.",
        )
    user_id = user.admin_id if user_type == "admin" else user.student_id
    session.add(LoginLog(user_type=user_type, user_id=user_id))
    session.commit()
    logger.info("%s %s logged in", user_type, user_id)
    return {
        "success": True,
        "message": "Admin login successful" if user_type == "admin" else "Student login successful",
        "isNewUser": False,
        "userType": user_type,
        "user": _serialize_user(user_type, user),
        "sessionToken": issue_session_token(user_type, user_id),
        "otpVerified": True,
    }

@router.get("/profile/{session_token}")
def get_profile(session_token: str, session: Session = Depends(get_session)):
    user_type, user = _session_user(session, session_token)
    return {
        "success": True,
        "message": "Profile retrieved successfully",
        "userType": user_type,
        "user": _serialize_user(user_type, user),
    }

@router.put("/profile/{session_token}")
def update_profile(session_token: str, payload: ProfileUpdate, session: Session = Depends(get_session)):
    user_type, user = _session_user(session, session_token)
    name = (payload.name or "").strip()
    if len(name) < 2:
        raise ApiError(400, "Invalid name", "Name must be at least 2 characters long")
    user.name = name
    session.add(user)
    session.commit()
    session.refresh(user)
    return {
        "success": True,
        "message": "Profile updated successfully",
        "userType": user_type,
        "user": _serialize_user(user_type, user),
    }

@router.post("/cleanup-otps")
def cleanup_otps(session: Session = Depends(get_session), ctx=Depends(require_admin_access)):
    removed = otp_service.cleanup_expired_otps(session)
    return {"success": True, "message": "Expired OTPs cleaned up successfully", "removed": removed}
