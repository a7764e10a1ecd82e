import logging

from sqlmodel import Session, select

from certhub.certificates import generate_and_store
from certhub.db import engine
from certhub.models import Student
from certhub.renderer import RenderError
from certhub.routers.certificates import get_renderer
from certhub.storage import put_bytes, delete_object

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("regenerate_certificates")

renderer = get_renderer()

with Session(engine) as session:
    students = session.exec(
        select(Student).where(
            Student.deleted == False,  # noqa: E712
            Student.eligible == True,  # noqa: E712
            Student.certificate_id.is_not(None),
        )
    ).all()
    for student in students:
        try:
            result = generate_and_store(session, student.student_id, renderer, put_bytes, delete_object=delete_object)
        except RenderError as exc:
            logger.warning("skipping student %s: %s", student.student_id, exc)
            continue
        logger.info("regenerated %s for %s (%d bytes)", result["certificateId"], result["student"], result["size"])
