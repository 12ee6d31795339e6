import base64
import io
import os
import time

import qrcode

from gymdesk.utils.errors import ValidationError

QR_PREFIX = 'MEMBER'


def build_member_qr_payload(user_id, timestamp_ms=None):
    """MEMBER-<userId>-<unixMillis>"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{QR_PREFIX}-{int(user_id)}-{int(timestamp_ms)}"


def parse_qr_payload(payload):
    """Return the user id encoded in a member QR payload.

    Raises ValidationError for anything not shaped like MEMBER-<int>-<int>.
    The payload is not signed and carries no expiry.
    """
    if not isinstance(payload, str) or not payload.strip():
        raise ValidationError('Invalid QR code')
    parts = payload.strip().split('-')
    if len(parts) != 3 or parts[0] != QR_PREFIX:
        raise ValidationError('Invalid QR code')
    if not parts[1].isdigit() or not parts[2].isdigit():
        raise ValidationError('Invalid QR code')
    return int(parts[1])


def generate_qr_png(data, box_size=8, border=2):
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue()


def png_data_url(png_bytes):
    return 'data:image/png;base64,' + base64.b64encode(png_bytes).decode('ascii')


def save_member_qr(member_id, data, qr_dir):
    """Write the QR PNG for a member and return (path, png bytes)."""
    os.makedirs(qr_dir, exist_ok=True)
    png = generate_qr_png(data)
    path = os.path.join(qr_dir, f"member_{member_id}.png")
    with open(path, 'wb') as fh:
        fh.write(png)
    return path, png
