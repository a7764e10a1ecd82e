from datetime import date
from pydantic import BaseModel, ConfigDict, Field, StrictBool
from typing import Optional

from .utils import certificate_filename

class CertificateRequest(BaseModel):
    """Everything the renderer needs to stamp one certificate.

    Fields are optional at the type level so that absent or blank values
    surface as ``InvalidInput`` from the renderer instead of a pydantic error.
    """
    recipient_name: Optional[str] = None
    course_name: Optional[str] = None
    company_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    certificate_id: Optional[str] = None

class RenderedCertificate(BaseModel):
    content: bytes
    recipient_name: str
    certificate_id: str

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def filename(self) -> str:
        return certificate_filename(self.recipient_name, self.certificate_id)

# ---------- request bodies ----------

class SendOtpBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    name: Optional[str] = None
    role: Optional[str] = None

class VerifyOtpBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    otp: Optional[str] = None

class ProfileUpdate(BaseModel):
    name: Optional[str] = None

class SmsSend(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    message: str = ""

class CertificateRequestCreate(BaseModel):
    phone_number: Optional[str] = None
    internship_start_date: Optional[date] = None
    internship_duration: Optional[int] = Field(default=None, ge=1)
    course_name: Optional[str] = None
    company_name: Optional[str] = None
    preferred_name: Optional[str] = None

class EligibilityUpdate(BaseModel):
    eligible: Optional[StrictBool] = None
