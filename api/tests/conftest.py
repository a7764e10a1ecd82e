import os
from datetime import date
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from minio.error import S3Error
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas
from sqlmodel import SQLModel, Session, create_engine

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ["ADMIN_ACCESS_TOKEN"] = "admin-test-token"
os.environ["OTP_DEBUG"] = "true"

from certhub.main import app  # noqa: E402
from certhub import db as db_module  # noqa: E402
from certhub import otp as otp_module  # noqa: E402
from certhub import storage as storage_module  # noqa: E402
from certhub.auth import issue_session_token  # noqa: E402
from certhub.db import get_session  # noqa: E402
from certhub.models import Admin, Company, Course, Student  # noqa: E402
from certhub.renderer import CertificateRenderer  # noqa: E402
from certhub.routers import certificates as certificates_router  # noqa: E402
from certhub.routers import sms as sms_router  # noqa: E402

ADMIN_HEADERS = {"X-Access-Token": "admin-test-token"}
ADMIN_PHONE = "9876543210"
STUDENT_PHONE = "8184930950"
OTHER_STUDENT_PHONE = "7012345678"


@pytest.fixture(scope="session")
def template_path(tmp_path_factory):
    path = tmp_path_factory.mktemp("template") / "template.pdf"
    width, height = landscape(A4)
    c = canvas.Canvas(str(path), pagesize=(width, height))
    c.setLineWidth(4)
    c.rect(24, 24, width - 48, height - 48)
    c.setFont("Times-Bold", 32)
    c.drawCentredString(width / 2, height - 120, "CERTIFICATE OF COMPLETION")
    c.showPage()
    c.save()
    return str(path)


@pytest.fixture
def renderer(template_path):
    return CertificateRenderer(template_path)


@pytest.fixture(scope="session")
def test_engine(tmp_path_factory):
    db_path = tmp_path_factory.mktemp("data") / "test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    return engine


@pytest.fixture
def setup_db(test_engine):
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def seed(test_engine, setup_db) -> Dict[str, int]:
    with Session(test_engine) as session:
        admin = Admin(name="Asha Admin", phone_number=ADMIN_PHONE, email="admin@example.com")
        student = Student(name="Test Student", phone_number=STUDENT_PHONE, eligible=True)
        other = Student(name="Other Student", phone_number=OTHER_STUDENT_PHONE)
        course = Course(course_name="Full Stack")
        company = Company(company_name="AddWise Tech Innovations")
        for row in (admin, student, other, course, company):
            session.add(row)
        session.commit()
        return {
            "admin_id": admin.admin_id,
            "student_id": student.student_id,
            "other_student_id": other.student_id,
            "course_id": course.course_id,
            "company_id": company.company_id,
        }


@pytest.fixture
def requested_student(test_engine, seed) -> int:
    """Seeded student whose certificate request is already on file."""
    with Session(test_engine) as session:
        student = session.get(Student, seed["student_id"])
        student.preferred_name = "Test User"
        student.internship_start_date = date(2025, 1, 15)
        student.internship_end_date = date(2025, 4, 15)
        student.internship_duration = 3
        student.course_id = seed["course_id"]
        student.company_id = seed["company_id"]
        student.certificate_id = "AB12CD34"
        session.add(student)
        session.commit()
    return seed["student_id"]


def student_headers(student_id: int) -> dict:
    return {"X-Access-Token": issue_session_token("student", student_id)}


@pytest.fixture
def mock_storage(monkeypatch) -> Dict[str, bytes]:
    store: Dict[str, bytes] = {}

    def fake_put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream"):
        store[key] = bytes(data)

    def fake_get_bytes(key: str) -> bytes:
        if key not in store:
            raise S3Error("NoSuchKey", "missing", f"/{key}", "test-request", "test-host", None)
        return store[key]

    def fake_delete_object(key: str):
        store.pop(key, None)

    for target in (storage_module, certificates_router):
        monkeypatch.setattr(target, "put_bytes", fake_put_bytes)
        monkeypatch.setattr(target, "get_bytes", fake_get_bytes)
        monkeypatch.setattr(target, "delete_object", fake_delete_object)
    return store


@pytest.fixture
def sent_sms(monkeypatch):
    messages = []

    def fake_send_otp_sms(phone_number, otp):
        messages.append({"to": phone_number, "otp": otp})
        return {"success": True, "message": f"SMS sent successfully to {phone_number}", "status": 200}

    monkeypatch.setattr(otp_module, "send_otp_sms", fake_send_otp_sms)
    monkeypatch.setattr(sms_router, "send_otp_sms", fake_send_otp_sms)
    return messages


@pytest.fixture
def client(test_engine, setup_db, mock_storage, sent_sms, renderer):
    db_module.engine = test_engine

    def override_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[certificates_router.get_renderer] = lambda: renderer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
