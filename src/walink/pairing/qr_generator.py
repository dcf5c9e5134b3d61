"""QR code rendering for pairing challenges.

Turns the opaque token issued by the backend into a scannable image,
either as a PNG data URI for the HTML page or as text for a terminal.
"""

import base64
import io

import qrcode
from qrcode.main import QRCode


class QrGenerator:
    """Render one challenge token as a QR code.

    The token is encoded verbatim; the phone's WhatsApp app parses it.
    """

    def __init__(self, token: str, box_size: int = 10, border: int = 4):
        """Initialize QR generator.

        Args:
            token: Challenge token from the backend.
            box_size: Pixels per module in raster output.
            border: Quiet zone width in modules.
        """
        self.token = token
        self.box_size = box_size
        self.border = border

    def _create_qr(self) -> QRCode:
        """Create QR code object.

        Returns:
            QRCode instance with the token.
        """
        qr = qrcode.QRCode(
            version=None,  # Auto-size
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(self.token)
        qr.make(fit=True)
        return qr

    def to_png_bytes(self) -> bytes:
        """Render as PNG image bytes."""
        img = self._create_qr().make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()

    def to_data_uri(self) -> str:
        """Render as a ``data:image/png;base64,...`` URI for an <img> tag."""
        img_b64 = base64.b64encode(self.to_png_bytes()).decode("ascii")
        return f"data:image/png;base64,{img_b64}"

    def to_terminal(self) -> str:
        """Generate ASCII art for terminal display.

        Returns:
            String with QR code using Unicode block characters.
        """
        output = io.StringIO()
        self._create_qr().print_ascii(out=output, invert=True)
        return output.getvalue()


def render_challenge(token: str) -> str:
    """Render a challenge token as an image data URI."""
    return QrGenerator(token).to_data_uri()
