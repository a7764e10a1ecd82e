import calendar, secrets, unicodedata
from datetime import date
from urllib.parse import quote
from itsdangerous import URLSafeSerializer, BadSignature
from .config import SECRET_KEY

CERTIFICATE_ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
CERTIFICATE_ID_LENGTH = 8

def make_token(payload: dict) -> str:
    s = URLSafeSerializer(SECRET_KEY, salt="session")
    return s.dumps(payload)

def read_token(token: str) -> dict:
    s = URLSafeSerializer(SECRET_KEY, salt="session")
    return s.loads(token)

def try_read_token(token: str):
    try:
        return read_token(token)
    except BadSignature:
        return None

def new_certificate_id() -> str:
    return "".join(secrets.choice(CERTIFICATE_ID_ALPHABET) for _ in range(CERTIFICATE_ID_LENGTH))

def add_months(start: date, months: int) -> date:
    # clamps to the last day of the target month (31 Jan + 1 -> 28/29 Feb)
    index = start.month - 1 + months
    year, month = start.year + index // 12, index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)

def certificate_filename(recipient_name: str, certificate_id: str) -> str:
    return f"{recipient_name}_Certificate_{certificate_id}.pdf"

def ascii_filename(filename: str) -> str:
    decomposed = unicodedata.normalize("NFKD", filename)
    kept = (ch for ch in decomposed if not unicodedata.combining(ch))
    return "".join(ch if " " <= ch <= "~" and ch not in '"\\' else "_" for ch in kept)

def content_disposition(filename: str) -> str:
    # plain filename for old clients, RFC 5987 filename* for the real name
    return f"attachment; filename=\"{ascii_filename(filename)}\"; filename*=UTF-8''{quote(filename, safe='')}"
