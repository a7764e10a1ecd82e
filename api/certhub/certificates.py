# Glue between the data store, the renderer and object storage.

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlmodel import Session

from .models import Student, Course, Company
from .renderer import CertificateRenderer, InvalidInput, REQUIRED_FIELDS
from .schemas import CertificateRequest
from .utils import certificate_filename

logger = logging.getLogger(__name__)


class NotFound(Exception):
    pass


class StoreFailed(Exception):
    pass


def certificate_key(student_id: int, certificate_id: str) -> str:
    return f"certificates/{student_id}/{certificate_id}.pdf"


def get_active_student(session: Session, student_id: int) -> Student:
    student = session.get(Student, student_id)
    if not student or student.deleted:
        raise NotFound("Student not found")
    return student


def build_request(session: Session, student: Student) -> CertificateRequest:
    course = session.get(Course, student.course_id) if student.course_id else None
    company = session.get(Company, student.company_id) if student.company_id else None
    request = CertificateRequest(
        recipient_name=student.preferred_name,
        course_name=course.course_name if course else None,
        company_name=company.company_name if company else None,
        start_date=student.internship_start_date,
        end_date=student.internship_end_date,
        certificate_id=student.certificate_id,
    )
    missing = [f for f in REQUIRED_FIELDS if not getattr(request, f)]
    if missing:
        raise InvalidInput(f"Missing required fields: {', '.join(missing)}", missing)
    return request


def generate_and_store(
    session: Session,
    student_id: int,
    renderer: CertificateRenderer,
    put_bytes: Callable[..., None],
    delete_object: Optional[Callable[[str], None]] = None,
) -> dict:
    """Render the student's certificate and persist it under its certificate id.

    A previous rendering for the same student is overwritten; the certificate
    id itself never changes here.
    """
    student = get_active_student(session, student_id)
    request = build_request(session, student)
    document = renderer.render_document(request)

    key = certificate_key(student.student_id, document.certificate_id)
    try:
        put_bytes(key, document.content, content_type="application/pdf")
    except Exception as exc:
        logger.error("storing certificate %s failed: %s", key, exc)
        raise StoreFailed(f"Failed to save certificate: {exc}") from exc

    previous_key = student.certificate_key
    student.certificate_key = key
    student.certificate_generated_at = datetime.utcnow()
    session.add(student)
    session.commit()
    if delete_object and previous_key and previous_key != key:
        try:
            delete_object(previous_key)
        except Exception as exc:
            # the new rendering is already committed; the old object is only garbage
            logger.warning("could not delete stale certificate %s: %s", previous_key, exc)
    logger.info("certificate %s stored for student %s", document.certificate_id, student_id)
    return {
        "student": document.recipient_name,
        "studentId": student.student_id,
        "certificateId": document.certificate_id,
        "size": document.size,
    }


def fetch_certificate(session: Session, student_id: int, get_bytes: Callable[[str], bytes]) -> dict:
    student = get_active_student(session, student_id)
    if not student.certificate_key:
        raise NotFound("Certificate not found")
    content = get_bytes(student.certificate_key)
    return {
        "certificate": content,
        "studentName": student.preferred_name,
        "certificateId": student.certificate_id,
        "filename": certificate_filename(student.preferred_name, student.certificate_id),
    }
