from io import BytesIO

import qrcode
from PIL import Image

QR_PIXELS = 150
QR_BORDER = 1

def qr_image(data: str, pixels: int = QR_PIXELS, border: int = QR_BORDER) -> Image.Image:
    """Square black-on-white QR code for ``data``, ``pixels`` wide."""
    if not data:
        raise ValueError("QR payload must be a non-empty string")
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    qr.box_size = max(1, pixels // (qr.modules_count + 2 * border))
    img = qr.make_image(fill_color="black", back_color="white").get_image().convert("RGB")
    if img.size != (pixels, pixels):
        img = img.resize((pixels, pixels), Image.NEAREST)
    return img

def qr_png(data: str, pixels: int = QR_PIXELS, border: int = QR_BORDER) -> bytes:
    buf = BytesIO()
    qr_image(data, pixels, border).save(buf, format="PNG")
    return buf.getvalue()
