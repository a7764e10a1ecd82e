from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field as ORMField

class Admin(SQLModel, table=True):
    admin_id: Optional[int] = ORMField(default=None, primary_key=True)
    name: str
    phone_number: str = ORMField(index=True)
    email: Optional[str] = None
    created_at: datetime = ORMField(default_factory=datetime.utcnow)

class Course(SQLModel, table=True):
    course_id: Optional[int] = ORMField(default=None, primary_key=True)
    course_name: str = ORMField(index=True)

class Company(SQLModel, table=True):
    company_id: Optional[int] = ORMField(default=None, primary_key=True)
    company_name: str = ORMField(index=True)

class Student(SQLModel, table=True):
    student_id: Optional[int] = ORMField(default=None, primary_key=True)
    name: str
    phone_number: str = ORMField(index=True)
    email: Optional[str] = None
    deleted: bool = False
    eligible: bool = False
    preferred_name: Optional[str] = None
    internship_start_date: Optional[date] = None
    internship_end_date: Optional[date] = None
    internship_duration: Optional[int] = None  # months
    course_id: Optional[int] = None
    company_id: Optional[int] = None
    certificate_id: Optional[str] = ORMField(default=None, index=True, unique=True)
    certificate_key: Optional[str] = None  # object storage key of the rendered PDF
    certificate_generated_at: Optional[datetime] = None
    requested_at: Optional[datetime] = None
    created_at: datetime = ORMField(default_factory=datetime.utcnow)

class OtpSession(SQLModel, table=True):
    session_id: Optional[int] = ORMField(default=None, primary_key=True)
    phone_number: str = ORMField(index=True)
    otp_code: str
    expires_at: datetime
    is_verified: bool = False
    created_at: datetime = ORMField(default_factory=datetime.utcnow)

class LoginLog(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    user_type: str  # admin|student
    user_id: int
    login_time: datetime = ORMField(default_factory=datetime.utcnow)
