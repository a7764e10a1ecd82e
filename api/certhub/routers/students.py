from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from ..auth import require_admin_access
from ..certificates import get_active_student
from ..db import get_session
from ..errors import ApiError
from ..models import Student
from ..schemas import EligibilityUpdate

router = APIRouter()

def _serialize_student(s: Student) -> dict:
    data = s.model_dump(exclude={"certificate_key"})
    data["has_certificate"] = bool(s.certificate_key)
    return data

@router.get("")
def list_students(session: Session = Depends(get_session), ctx=Depends(require_admin_access)):
    students = session.exec(
        select(Student).where(Student.deleted == False).order_by(Student.student_id)  # noqa: E712
    ).all()
    return {"status": "success", "count": len(students), "students": [_serialize_student(s) for s in students]}

@router.put("/{student_id}/eligibility")
def update_eligibility(
    student_id: int,
    payload: EligibilityUpdate,
    session: Session = Depends(get_session),
    ctx=Depends(require_admin_access),
):
    if not isinstance(payload.eligible, bool):
        raise ApiError(400, "Eligible status must be a boolean value")
    student = get_active_student(session, student_id)
    student.eligible = payload.eligible
    session.add(student)
    session.commit()
    session.refresh(student)
    return {
        "success": True,
        "message": "Student eligibility updated successfully",
        "data": {"studentId": student.student_id, "eligible": student.eligible},
    }
