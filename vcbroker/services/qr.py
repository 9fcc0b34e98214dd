"""
Local QR generation for batch verification sessions.

Single-shot QRs come from the sandboxes; the batch session QR points back
at this service, so we draw it ourselves.
"""
import base64
import io
import logging

import qrcode

logger = logging.getLogger(__name__)


def generate_qr_png(data: str) -> bytes:
    """Render ``data`` as a PNG QR code."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    qr_img = qr.make_image(fill_color="black", back_color="white")

    img_buffer = io.BytesIO()
    qr_img.save(img_buffer, format="PNG")
    return img_buffer.getvalue()


def generate_qr_data_url(data: str) -> str:
    """PNG QR code as a ``data:image/png;base64,...`` URL for direct <img> use."""
    encoded = base64.b64encode(generate_qr_png(data)).decode("ascii")
    logger.debug(f"Generated QR data URL for {data[:60]}")
    return f"data:image/png;base64,{encoded}"
