import os

_HERE = os.path.dirname(os.path.abspath(__file__))

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./certhub.db")
MINIO_ENDPOINT = os.getenv("MINIO_ENDPOINT", "minio:9000")
MINIO_ACCESS_KEY = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
MINIO_SECRET_KEY = os.getenv("MINIO_SECRET_KEY", "minioadmin")
MINIO_BUCKET = os.getenv("MINIO_BUCKET", "certificates")
MINIO_SECURE = os.getenv("MINIO_SECURE", "false").lower() in ("1", "true", "yes")
SECRET_KEY = os.getenv("SECRET_KEY", "devsecret")
ADMIN_ACCESS_TOKEN = os.getenv("ADMIN_ACCESS_TOKEN")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

CERTIFICATE_TEMPLATE_PATH = os.getenv(
    "CERTIFICATE_TEMPLATE_PATH", os.path.join(_HERE, "assets", "template.pdf")
)
CERTIFICATE_FONT_PATH = os.getenv("CERTIFICATE_FONT_PATH")
CERTIFICATE_BOLD_FONT_PATH = os.getenv("CERTIFICATE_BOLD_FONT_PATH")

OTP_EXPIRY_MINUTES = int(os.getenv("OTP_EXPIRY_MINUTES", "10"))
OTP_DEBUG = os.getenv("OTP_DEBUG", "false").lower() in ("1", "true", "yes")

SMS_GATEWAY_URL = os.getenv("SMS_GATEWAY_URL", "http://43.252.88.250/index.php/smsapi/httpapi/")
SMS_SECRET = os.getenv("SMS_SECRET")
SMS_SENDER = os.getenv("SMS_SENDER", "NIGHAI")
SMS_TEMPLATE_ID = os.getenv("SMS_TEMPLATE_ID", "1207174264191607433")
SMS_ROUTE = os.getenv("SMS_ROUTE", "TA")
SMS_MSG_TYPE = os.getenv("SMS_MSG_TYPE", "1")
SMS_TIMEOUT = float(os.getenv("SMS_TIMEOUT", "10"))
