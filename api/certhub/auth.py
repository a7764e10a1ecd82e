from typing import Optional
from fastapi import Depends, Header, HTTPException, Query, status
from pydantic import BaseModel
from sqlmodel import Session

from .config import ADMIN_ACCESS_TOKEN
from .db import get_session
from .models import Admin, Student
from .utils import make_token, try_read_token


class AccessContext(BaseModel):
    role: str
    user_id: Optional[int] = None


def issue_session_token(user_type: str, user_id: int) -> str:
    return make_token({"role": user_type, "user_id": user_id})


def load_session_user(session: Session, token: str):
    """Resolve a session token to ``(user_type, user)``; ``(None, None)`` if invalid."""
    payload = try_read_token(token or "")
    if not isinstance(payload, dict):
        return None, None
    user_id = payload.get("user_id")
    if payload.get("role") == "admin":
        admin = session.get(Admin, user_id)
        return ("admin", admin) if admin else (None, None)
    if payload.get("role") == "student":
        student = session.get(Student, user_id)
        if student and not student.deleted:
            return "student", student
    return None, None


def resolve_access_context(
    x_access_token: Optional[str] = Header(default=None, alias="X-Access-Token"),
    token: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
) -> AccessContext:
    candidate = x_access_token or token
    if not candidate:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing access token")
    if ADMIN_ACCESS_TOKEN and candidate == ADMIN_ACCESS_TOKEN:
        return AccessContext(role="admin")
    user_type, user = load_session_user(session, candidate)
    if user_type == "admin":
        return AccessContext(role="admin", user_id=user.admin_id)
    if user_type == "student":
        return AccessContext(role="student", user_id=user.student_id)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid access token")


def require_admin_access(context: AccessContext = Depends(resolve_access_context)) -> AccessContext:
    if context.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return context


def require_student_or_admin(
    student_id: int,
    context: AccessContext = Depends(resolve_access_context),
) -> AccessContext:
    if context.role == "admin":
        return context
    if context.role == "student" and context.user_id == student_id:
        return context
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied for this student")
