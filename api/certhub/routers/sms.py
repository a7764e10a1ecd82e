import re
from fastapi import APIRouter

from ..errors import ApiError
from ..schemas import SmsSend
from ..sms import send_otp_sms

router = APIRouter()

@router.post("/send")
def send(payload: SmsSend):
    if not payload.phone_number:
        raise ApiError(400, "Phone number is required")
    match = re.search(r"\b\d{6}\b", payload.message or "")
    if not match:
        raise ApiError(400, "Message must contain a 6-digit OTP")
    result = send_otp_sms(payload.phone_number, match.group(0))
    if not result.get("success"):
        raise ApiError(500, result.get("error") or "Failed to send SMS", smsDetails=result)
    return result
