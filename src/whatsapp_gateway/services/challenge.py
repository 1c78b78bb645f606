"""Rendering of WhatsApp login challenges as QR images."""

import base64
import io

import qrcode


def challenge_data_url(payload: str) -> str:
    """Encode a challenge payload as a PNG QR code data URL."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    image = qr.make_image(fill_color="#000000", back_color="#FFFFFF").convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
