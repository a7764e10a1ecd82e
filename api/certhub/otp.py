import logging, re, secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlmodel import Session, select, delete

from .config import OTP_EXPIRY_MINUTES
from .models import Admin, Student, OtpSession
from .sms import send_otp_sms

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
OTP_PATTERN = re.compile(r"^\d{6}$")
STUDENT_ROLES = ("user", "student")


class OtpError(Exception):
    pass


class PhoneNotRegistered(OtpError):
    pass


def format_phone_number(phone_number: str) -> str:
    clean = re.sub(r"[\s\-+]", "", phone_number or "")
    if clean.startswith("91") and len(clean) == 12:
        return clean[2:]
    return clean


def validate_phone_number(phone_number: str) -> bool:
    return bool(PHONE_PATTERN.match(phone_number or ""))


def is_valid_otp_format(otp: str) -> bool:
    return bool(OTP_PATTERN.match(otp or ""))


def generate_otp() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


def find_admin(session: Session, phone_number: str) -> Optional[Admin]:
    return session.exec(select(Admin).where(Admin.phone_number == phone_number)).first()


def find_student(session: Session, phone_number: str) -> Optional[Student]:
    return session.exec(
        select(Student).where(Student.phone_number == phone_number, Student.deleted == False)  # noqa: E712
    ).first()


def find_user_by_phone(session: Session, phone_number: str, role: Optional[str] = None):
    """Return ``(user_type, user)`` for a registered phone, or ``(None, None)``.

    ``role`` narrows the lookup to one table; without it admins win over
    students.
    """
    if role in STUDENT_ROLES:
        student = find_student(session, phone_number)
        return ("student", student) if student else (None, None)
    admin = find_admin(session, phone_number)
    if admin:
        return "admin", admin
    if role == "admin":
        return None, None
    student = find_student(session, phone_number)
    return ("student", student) if student else (None, None)


def store_otp(session: Session, phone_number: str, otp: str) -> OtpSession:
    pending = session.exec(
        select(OtpSession).where(OtpSession.phone_number == phone_number, OtpSession.is_verified == False)  # noqa: E712
    ).all()
    for row in pending:
        row.is_verified = True
        session.add(row)
    record = OtpSession(
        phone_number=phone_number,
        otp_code=otp,
        expires_at=datetime.utcnow() + timedelta(minutes=OTP_EXPIRY_MINUTES),
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    logger.info("OTP stored for %s", phone_number)
    return record


def verify_otp(session: Session, phone_number: str, otp: str) -> Optional[OtpSession]:
    record = session.exec(
        select(OtpSession)
        .where(
            OtpSession.phone_number == phone_number,
            OtpSession.otp_code == otp,
            OtpSession.is_verified == False,  # noqa: E712
            OtpSession.expires_at > datetime.utcnow(),
        )
        .order_by(OtpSession.created_at.desc(), OtpSession.session_id.desc())
    ).first()
    if not record:
        logger.info("invalid or expired OTP for %s", phone_number)
        return None
    record.is_verified = True
    session.add(record)
    session.commit()
    session.refresh(record)
    logger.info("OTP verified for %s", phone_number)
    return record


def send_otp(session: Session, phone_number: str, role: Optional[str] = None) -> dict:
    formatted = format_phone_number(phone_number)
    if not validate_phone_number(formatted):
        raise OtpError("Phone number must be a valid 10-digit Indian mobile number starting with 6-9")
    user_type, user = find_user_by_phone(session, formatted, role)
    if not user:
        where = "admin records" if role == "admin" else "student records" if role in STUDENT_ROLES else "database"
        raise PhoneNotRegistered(
            f"Phone number not registered in {where}. Please contact administrator to register your phone number."
        )
    otp = generate_otp()
    store_otp(session, formatted, otp)
    sms_result = send_otp_sms(formatted, otp)
    if not sms_result.get("success"):
        logger.error("SMS delivery failed for %s: %s", formatted, sms_result.get("error"))
    return {
        "phoneNumber": formatted,
        "userType": user_type,
        "smsResult": sms_result,
        "otp": otp,
    }


def cleanup_expired_otps(session: Session) -> int:
    result = session.exec(delete(OtpSession).where(OtpSession.expires_at < datetime.utcnow()))
    session.commit()
    logger.info("removed %s expired OTP sessions", result.rowcount)
    return result.rowcount
