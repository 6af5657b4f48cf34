import base64
import io

import qrcode
from qrcode.image.pil import PilImage

from ...application.ports.qr_renderer import QRRenderer


class QrCodeRenderer(QRRenderer):
    """Render QR payloads to PNG data URLs with Pillow."""

    def __init__(self, box_size: int = 4, border: int = 2):
        self.box_size = box_size
        self.border = border

    def render(self, payload: str) -> str:
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=self.box_size,
            border=self.border,
            image_factory=PilImage,
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"
