import logging
from datetime import datetime
from fastapi import APIRouter, Depends, Response
from sqlmodel import Session, select

from .. import certificates as certificate_service
from ..auth import require_admin_access, require_student_or_admin
from ..config import CERTIFICATE_TEMPLATE_PATH, CERTIFICATE_FONT_PATH, CERTIFICATE_BOLD_FONT_PATH
from ..db import get_session
from ..errors import ApiError
from ..models import Student, Course, Company
from ..otp import find_student, format_phone_number
from ..renderer import CertificateRenderer
from ..schemas import CertificateRequestCreate
from ..storage import put_bytes, get_bytes, delete_object
from ..utils import add_months, content_disposition, new_certificate_id

logger = logging.getLogger(__name__)

router = APIRouter()

def get_renderer() -> CertificateRenderer:
    return CertificateRenderer(
        CERTIFICATE_TEMPLATE_PATH,
        font_path=CERTIFICATE_FONT_PATH,
        bold_font_path=CERTIFICATE_BOLD_FONT_PATH,
    )

def _unused_certificate_id(session: Session) -> str:
    while True:
        candidate = new_certificate_id()
        if session.exec(select(Student).where(Student.certificate_id == candidate)).first() is None:
            return candidate

def _request_status(student: Student) -> str:
    if student.certificate_key:
        return "completed"
    if student.internship_start_date and student.preferred_name:
        return "pending"
    return "not_requested"

@router.post("/request")
def submit_request(payload: CertificateRequestCreate, session: Session = Depends(get_session)):
    required = ("phone_number", "internship_start_date", "internship_duration",
                "course_name", "company_name", "preferred_name")
    if any(not getattr(payload, f) for f in required) or not payload.preferred_name.strip():
        raise ApiError(400, "Missing required fields", "All fields are required for certificate request")

    course = session.exec(select(Course).where(Course.course_name == payload.course_name)).first()
    if not course:
        raise ApiError(400, "Invalid course selection", "Selected course not found")
    company = session.exec(select(Company).where(Company.company_name == payload.company_name)).first()
    if not company:
        raise ApiError(400, "Invalid company selection", "Selected company not found")

    student = find_student(session, format_phone_number(payload.phone_number))
    if not student:
        raise ApiError(404, "Student not found", "No student found with the provided phone number")
    if student.internship_start_date or student.preferred_name:
        raise ApiError(
            400, "Certificate request already submitted",
            "You have already submitted a certificate request. Each student can only request a certificate once.",
        )

    end_date = add_months(payload.internship_start_date, payload.internship_duration)
    student.internship_start_date = payload.internship_start_date
    student.internship_end_date = end_date
    student.internship_duration = payload.internship_duration
    student.course_id = course.course_id
    student.company_id = company.company_id
    student.preferred_name = payload.preferred_name.strip()
    student.certificate_id = student.certificate_id or _unused_certificate_id(session)
    student.requested_at = datetime.utcnow()
    session.add(student)
    session.commit()
    session.refresh(student)
    logger.info("certificate request submitted for student %s", student.student_id)

    return {
        "success": True,
        "message": "Certificate request submitted successfully",
        "data": {
            "studentId": student.student_id,
            "name": student.name,
            "preferredName": student.preferred_name,
            "course": course.course_name,
            "company": company.company_name,
            "internshipStartDate": student.internship_start_date,
            "internshipEndDate": student.internship_end_date,
            "requestDate": student.requested_at,
        },
    }

@router.get("/request-status/{phone_number}")
def request_status(phone_number: str, session: Session = Depends(get_session)):
    student = find_student(session, format_phone_number(phone_number))
    if not student:
        raise ApiError(404, "Student not found")
    course = session.get(Course, student.course_id) if student.course_id else None
    company = session.get(Company, student.company_id) if student.company_id else None
    return {
        "success": True,
        "data": {
            "studentId": student.student_id,
            "name": student.name,
            "preferredName": student.preferred_name,
            "course": course.course_name if course else None,
            "company": company.company_name if company else None,
            "internshipStartDate": student.internship_start_date,
            "internshipEndDate": student.internship_end_date,
            "requestDate": student.requested_at,
            "hasSubmittedRequest": bool(student.internship_start_date and student.preferred_name),
            "isEligible": student.eligible,
            "hasCertificate": bool(student.certificate_key),
            "certificateGeneratedAt": student.certificate_generated_at,
            "status": _request_status(student),
        },
    }

@router.post("/generate/{student_id}")
def generate(
    student_id: int,
    session: Session = Depends(get_session),
    renderer: CertificateRenderer = Depends(get_renderer),
    ctx=Depends(require_admin_access),
):
    logger.info("certificate generation requested for student %s", student_id)
    result = certificate_service.generate_and_store(
        session, student_id, renderer, put_bytes, delete_object=delete_object,
    )
    return {"success": True, "message": "Certificate generated successfully", "data": result}

@router.get("/download/{student_id}")
def download(
    student_id: int,
    session: Session = Depends(get_session),
    ctx=Depends(require_student_or_admin),
):
    found = certificate_service.fetch_certificate(session, student_id, get_bytes)
    return Response(
        content=found["certificate"],
        media_type="application/pdf",
        headers={"Content-Disposition": content_disposition(found["filename"])},
    )

@router.get("/status/{student_id}")
def status(
    student_id: int,
    session: Session = Depends(get_session),
    ctx=Depends(require_student_or_admin),
):
    student = certificate_service.get_active_student(session, student_id)
    has_certificate = bool(student.certificate_key)
    return {
        "success": True,
        "data": {
            "studentName": student.preferred_name,
            "certificateId": student.certificate_id,
            "hasCertificate": has_certificate,
            "generatedAt": student.certificate_generated_at,
            "status": "generated" if has_certificate else "not_generated",
        },
    }
