import qrcode
from io import BytesIO
import base64


def generate_qr_code(data: str) -> bytes:
    """
    Generate a QR code image for a ticket purchase.
    The payload is the purchase's QR string, scanned at the door.
    Returns the image as PNG bytes.
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)

    return buffer.getvalue()


def generate_qr_code_base64(data: str) -> str:
    """Base64 PNG, for embedding in HTML emails."""
    return base64.b64encode(generate_qr_code(data)).decode("utf-8")
