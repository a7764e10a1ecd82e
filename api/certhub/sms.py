import logging
import httpx

from .config import (
    SMS_GATEWAY_URL,
    SMS_SECRET,
    SMS_SENDER,
    SMS_TEMPLATE_ID,
    SMS_ROUTE,
    SMS_MSG_TYPE,
    SMS_TIMEOUT,
)

logger = logging.getLogger(__name__)

OTP_MESSAGE = "Welcome to NighaTech Global Your OTP for authentication is {otp} don't share with anybody Thank you"

def format_otp_message(otp: str) -> str:
    return OTP_MESSAGE.format(otp=otp)

def send_sms(receiver: str, message: str) -> dict:
    """Deliver one SMS through the HTTP gateway.

    Gateway and transport failures are reported in the returned dict rather
    than raised; the caller decides whether a failed delivery matters.
    Without ``SMS_SECRET`` configured the message is only logged.
    """
    if not SMS_SECRET:
        logger.warning("SMS (stub) to=%s message=%r", receiver, message)
        return {"success": True, "stub": True, "message": f"SMS logged for {receiver}"}
    params = {
        "secret": SMS_SECRET,
        "sender": SMS_SENDER,
        "tempid": SMS_TEMPLATE_ID,
        "receiver": receiver,
        "route": SMS_ROUTE,
        "msgtype": SMS_MSG_TYPE,
        "sms": message,
    }
    try:
        resp = httpx.get(
            SMS_GATEWAY_URL,
            params=params,
            headers={"User-Agent": "certhub-sms/1.0"},
            timeout=SMS_TIMEOUT,
        )
    except httpx.HTTPError as exc:
        logger.error("SMS gateway request failed for %s: %s", receiver, exc)
        return {"success": False, "error": f"Failed to send SMS: {exc}", "exception": type(exc).__name__}
    logger.info("SMS gateway responded %s for %s", resp.status_code, receiver)
    if resp.status_code == 200:
        return {
            "success": True,
            "message": f"SMS sent successfully to {receiver}",
            "apiResponse": resp.text,
            "status": resp.status_code,
        }
    return {
        "success": False,
        "error": f"SMS API returned status {resp.status_code}: {resp.text}",
        "apiResponse": resp.text,
        "status": resp.status_code,
    }

def send_otp_sms(phone_number: str, otp: str) -> dict:
    return send_sms(phone_number, format_otp_message(otp))
