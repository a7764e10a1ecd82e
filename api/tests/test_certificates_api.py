from io import BytesIO

import pytest
from minio.error import S3Error
from pypdf import PdfReader
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from certhub.models import Student
from certhub.renderer import CertificateRenderer
from certhub.routers import certificates as certificates_router

from conftest import ADMIN_HEADERS, OTHER_STUDENT_PHONE, STUDENT_PHONE, student_headers

REQUEST_PAYLOAD = {
    "phone_number": STUDENT_PHONE,
    "internship_start_date": "2025-01-15",
    "internship_duration": 3,
    "course_name": "Full Stack",
    "company_name": "AddWise Tech Innovations",
    "preferred_name": "  Test User Certificate Request ",
}


def test_submit_certificate_request(client, seed, test_engine):
    resp = client.post("/v1/certificates/request", json=REQUEST_PAYLOAD)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["preferredName"] == "Test User Certificate Request"
    assert data["internshipEndDate"] == "2025-04-15"
    assert data["course"] == "Full Stack"

    with Session(test_engine) as session:
        student = session.get(Student, seed["student_id"])
        assert len(student.certificate_id) == 8
        assert student.certificate_id.isalnum() and student.certificate_id.upper() == student.certificate_id
        assert student.internship_duration == 3

    status = client.get(f"/v1/certificates/request-status/{STUDENT_PHONE}").json()["data"]
    assert status["status"] == "pending"
    assert status["hasSubmittedRequest"] is True
    assert status["company"] == "AddWise Tech Innovations"


def test_end_date_clamps_to_month_end(client, seed):
    payload = dict(REQUEST_PAYLOAD, internship_start_date="2025-01-31", internship_duration=1)
    resp = client.post("/v1/certificates/request", json=payload)
    assert resp.json()["data"]["internshipEndDate"] == "2025-02-28"


def test_second_request_rejected(client, seed):
    assert client.post("/v1/certificates/request", json=REQUEST_PAYLOAD).status_code == 200
    resp = client.post("/v1/certificates/request", json=REQUEST_PAYLOAD)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Certificate request already submitted"


def test_request_validation(client, seed):
    missing = dict(REQUEST_PAYLOAD, preferred_name="")
    assert client.post("/v1/certificates/request", json=missing).json()["error"] == "Missing required fields"

    bad_course = dict(REQUEST_PAYLOAD, course_name="Underwater Basket Weaving")
    resp = client.post("/v1/certificates/request", json=bad_course)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid course selection"

    unknown = dict(REQUEST_PAYLOAD, phone_number="9000000001")
    assert client.post("/v1/certificates/request", json=unknown).status_code == 404


def test_request_status_not_requested(client, seed):
    resp = client.get(f"/v1/certificates/request-status/{OTHER_STUDENT_PHONE}")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "not_requested"
    assert client.get("/v1/certificates/request-status/9000000001").status_code == 404


def test_generate_and_download(client, requested_student, mock_storage):
    resp = client.post(f"/v1/certificates/generate/{requested_student}", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["certificateId"] == "AB12CD34"
    assert data["student"] == "Test User"

    key = f"certificates/{requested_student}/AB12CD34.pdf"
    assert set(mock_storage) == {key}
    stored = mock_storage[key]
    assert data["size"] == len(stored)
    reader = PdfReader(BytesIO(stored))
    assert len(reader.pages) == 1
    assert reader.metadata.subject == "AB12CD34"

    download = client.get(f"/v1/certificates/download/{requested_student}", headers=student_headers(requested_student))
    assert download.status_code == 200
    assert download.headers["content-type"] == "application/pdf"
    assert 'filename="Test User_Certificate_AB12CD34.pdf"' in download.headers["content-disposition"]
    assert download.content == stored

    status = client.get(f"/v1/certificates/status/{requested_student}", headers=ADMIN_HEADERS).json()["data"]
    assert status["status"] == "generated"
    assert status["certificateId"] == "AB12CD34"


def test_regenerate_keeps_certificate_id(client, requested_student, mock_storage, test_engine):
    for _ in range(2):
        resp = client.post(f"/v1/certificates/generate/{requested_student}", headers=ADMIN_HEADERS)
        assert resp.status_code == 200
    assert list(mock_storage) == [f"certificates/{requested_student}/AB12CD34.pdf"]
    with Session(test_engine) as session:
        assert session.get(Student, requested_student).certificate_id == "AB12CD34"


def test_generate_requires_admin(client, requested_student):
    resp = client.post(f"/v1/certificates/generate/{requested_student}")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Missing access token", "message": "Missing access token"}
    resp = client.post(f"/v1/certificates/generate/{requested_student}", headers=student_headers(requested_student))
    assert resp.status_code == 403


def test_generate_without_request_is_invalid(client, seed, mock_storage):
    resp = client.post(f"/v1/certificates/generate/{seed['other_student_id']}", headers=ADMIN_HEADERS)
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert "recipient_name" in body["missingFields"]
    assert mock_storage == {}


def test_generate_unknown_student(client, seed):
    resp = client.post("/v1/certificates/generate/9999", headers=ADMIN_HEADERS)
    assert resp.status_code == 404


def test_generate_with_missing_template(client, requested_student, mock_storage, tmp_path):
    from certhub.main import app

    app.dependency_overrides[certificates_router.get_renderer] = lambda: CertificateRenderer(str(tmp_path / "gone.pdf"))
    resp = client.post(f"/v1/certificates/generate/{requested_student}", headers=ADMIN_HEADERS)
    assert resp.status_code == 500
    assert resp.json()["error"] == "Certificate template unavailable"
    assert mock_storage == {}


def test_download_access_rules(client, requested_student, seed):
    other = student_headers(seed["other_student_id"])
    assert client.get(f"/v1/certificates/download/{requested_student}", headers=other).status_code == 403
    resp = client.get(f"/v1/certificates/download/{requested_student}", headers=ADMIN_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["error"] == "Certificate not found"


def test_download_with_lost_object(client, requested_student, mock_storage):
    client.post(f"/v1/certificates/generate/{requested_student}", headers=ADMIN_HEADERS)
    mock_storage.clear()
    resp = client.get(f"/v1/certificates/download/{requested_student}", headers=ADMIN_HEADERS)
    assert resp.status_code == 404


def test_request_body_type_errors_use_error_shape(client, seed):
    resp = client.post("/v1/certificates/request", json=dict(REQUEST_PAYLOAD, internship_duration="abc"))
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Invalid request"
    assert "internship_duration" in body["message"]
    assert body["details"][0]["loc"] == ["body", "internship_duration"]

    resp = client.post("/v1/certificates/request", json=dict(REQUEST_PAYLOAD, internship_duration=0))
    assert resp.status_code == 422
    assert resp.json()["error"] == "Invalid request"


def test_long_internship_duration_accepted(client, seed):
    resp = client.post("/v1/certificates/request", json=dict(REQUEST_PAYLOAD, internship_duration=36))
    assert resp.status_code == 200
    assert resp.json()["data"]["internshipEndDate"] == "2028-01-15"


def test_certificate_ids_are_unique(test_engine, seed):
    with Session(test_engine) as session:
        for key in ("student_id", "other_student_id"):
            student = session.get(Student, seed[key])
            student.certificate_id = "DUPL1CAT"
            session.add(student)
        with pytest.raises(IntegrityError):
            session.commit()


def test_generate_name_without_builtin_glyphs(client, requested_student, mock_storage, test_engine):
    with Session(test_engine) as session:
        student = session.get(Student, requested_student)
        student.preferred_name = "प्रिया शर्मा"
        session.add(student)
        session.commit()

    resp = client.post(f"/v1/certificates/generate/{requested_student}", headers=ADMIN_HEADERS)
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Failed to generate certificate"
    assert "CERTIFICATE_FONT_PATH" in body["message"]
    assert mock_storage == {}


def test_download_filename_with_non_ascii_name(client, requested_student, mock_storage, test_engine):
    key = f"certificates/{requested_student}/AB12CD34.pdf"
    with Session(test_engine) as session:
        student = session.get(Student, requested_student)
        student.preferred_name = 'Łukasz "Luke" Nowak'
        student.certificate_key = key
        session.add(student)
        session.commit()
    mock_storage[key] = b"%PDF-1.4 stored"

    resp = client.get(f"/v1/certificates/download/{requested_student}", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    disposition = resp.headers["content-disposition"]
    assert disposition.startswith("attachment; ")
    assert 'filename="_ukasz _Luke_ Nowak_Certificate_AB12CD34.pdf"' in disposition
    assert "filename*=UTF-8''%C5%81ukasz%20%22Luke%22%20Nowak_Certificate_AB12CD34.pdf" in disposition
    assert resp.content == b"%PDF-1.4 stored"


def test_download_storage_error_is_bad_gateway(client, requested_student, monkeypatch):
    client.post(f"/v1/certificates/generate/{requested_student}", headers=ADMIN_HEADERS)

    def denied(key):
        raise S3Error("AccessDenied", "denied", f"/{key}", "test-request", "test-host", None)

    monkeypatch.setattr(certificates_router, "get_bytes", denied)
    resp = client.get(f"/v1/certificates/download/{requested_student}", headers=ADMIN_HEADERS)
    assert resp.status_code == 502
    assert resp.json()["error"] == "Object storage error"


def test_stale_object_cleanup_failure_does_not_fail_generate(client, requested_student, mock_storage, monkeypatch, test_engine):
    with Session(test_engine) as session:
        student = session.get(Student, requested_student)
        student.certificate_key = f"certificates/{requested_student}/OLD00000.pdf"
        session.add(student)
        session.commit()

    def unreachable(key):
        raise S3Error("InternalError", "storage down", f"/{key}", "test-request", "test-host", None)

    monkeypatch.setattr(certificates_router, "delete_object", unreachable)
    resp = client.post(f"/v1/certificates/generate/{requested_student}", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    with Session(test_engine) as session:
        assert session.get(Student, requested_student).certificate_key == f"certificates/{requested_student}/AB12CD34.pdf"
