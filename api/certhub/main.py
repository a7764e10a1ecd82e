import logging
from datetime import datetime

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .config import LOG_LEVEL, CORS_ORIGINS
from .db import init_db, get_session, ping
from .errors import register_exception_handlers, error_body
from .routers import auth, certificates, students, sms

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Certificate Hub API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("Certificate Hub API ready")

app.include_router(auth.router, prefix="/v1/auth", tags=["auth"])
app.include_router(certificates.router, prefix="/v1/certificates", tags=["certificates"])
app.include_router(students.router, prefix="/v1/students", tags=["students"])
app.include_router(sms.router, prefix="/v1/sms", tags=["sms"])

@app.get("/health")
def health(session: Session = Depends(get_session)):
    now = datetime.utcnow().isoformat() + "Z"
    try:
        ping(session)
    except SQLAlchemyError as exc:
        logger.error("health check: database unreachable: %s", exc)
        return JSONResponse(
            status_code=503,
            content={**error_body("Database unreachable", str(exc)), "status": "unhealthy", "timestamp": now},
        )
    return {
        "status": "healthy",
        "timestamp": now,
        "database": {"status": "connected"},
        "services": {"sms": "available", "otp": "available"},
    }
