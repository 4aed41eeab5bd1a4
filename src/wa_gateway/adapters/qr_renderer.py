"""Render QR challenges as PNG data URLs."""

import base64
import io

import qrcode


def render_qr_data_url(raw_qr: str) -> str:
    """Encode a raw QR challenge string into a ``data:image/png`` URL."""
    image = qrcode.make(raw_qr)
    buffer = io.BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{encoded}"


def decode_data_url(data_url: str) -> bytes:
    """Return the raw image bytes of a base64 data URL."""
    _, _, encoded = data_url.partition(";base64,")
    return base64.b64decode(encoded or data_url)
