"""QR token generation and visual encoding."""

from __future__ import annotations

import base64
from io import BytesIO
from typing import Protocol
from uuid import uuid4

import qrcode

QR_TOKEN_PREFIX: str = "ORDER-"


def generate_qr_token() -> str:
    """Return a fresh opaque pickup token."""
    return f"{QR_TOKEN_PREFIX}{uuid4()}"


class QRCodec(Protocol):
    def render(self, token: str) -> str: ...


class PngDataUrlCodec:
    """Render a token as a ``data:image/png;base64`` QR image."""

    def __init__(self, box_size: int = 10, border: int = 2) -> None:
        self.box_size = box_size
        self.border = border

    def render(self, token: str) -> str:
        qr = qrcode.QRCode(version=None, box_size=self.box_size, border=self.border)
        qr.add_data(token)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buffer = BytesIO()
        img.save(buffer)
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"


qr_codec: QRCodec = PngDataUrlCodec()


def get_qr_codec() -> QRCodec:
    return qr_codec
