"""
Renders encrypted QR payloads to PNG files under QR_CODE_DIR.
"""
import logging
import os

import qrcode

from jgpnr.core.config import settings

logger = logging.getLogger(__name__)


def save_qr_png(ticket_code: str, data: str) -> str:
    """
    Write a PNG QR code for ``data`` and return its public URL path,
    e.g. ``/uploads/qrcodes/JGPNR-2026-ABCD2345.png``.
    """
    os.makedirs(settings.QR_CODE_DIR, exist_ok=True)
    file_name = f"{ticket_code}.png"
    file_path = os.path.join(settings.QR_CODE_DIR, file_name)

    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)
    qr.make_image(fill_color="black", back_color="white").save(file_path)

    logger.debug(f"Wrote QR image {file_path}")
    return f"{settings.QR_CODE_URL_PREFIX.rstrip('/')}/{file_name}"
