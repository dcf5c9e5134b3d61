"""HTML fragments for the pairing page.

The page is streamed: the head and first QR image go out when the first
challenge arrives, later fragments are appended to the same document.
"""

import html
import json

from walink.config import PageConfig

QR_IMAGE_ID = "walink-qr"
STATUS_ID = "walink-status"

_STYLE = """
        body { font-family: system-ui, sans-serif; text-align: center; padding: 20px; }
        img { border: 5px solid #25D366; border-radius: 10px; margin: 20px 0; }
        .instruction { background: #f0f0f0; padding: 10px; border-radius: 5px; display: inline-block; }
        .notice { margin-top: 20px; font-weight: bold; }
"""


def challenge_page(image_uri: str, page: PageConfig) -> str:
    """Opening of the streamed page, showing the first QR image.

    The document is left open so later fragments can be appended.
    """
    refresh = ""
    if page.refresh_seconds > 0:
        refresh = f'<meta http-equiv="refresh" content="{int(page.refresh_seconds)}">'

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    {refresh}
    <title>{html.escape(page.title)}</title>
    <style>{_STYLE}    </style>
</head>
<body>
    <h1>{html.escape(page.title)}</h1>
    <img id="{QR_IMAGE_ID}" src="{image_uri}" width="{page.qr_size}" height="{page.qr_size}" alt="QR Code"/>
    <br>
    <div class="instruction">
        <p>1. Open WhatsApp &gt; Linked Devices</p>
        <p>2. Tap "Link a device" and scan this code</p>
    </div>
    <p><b>If successful, the session file will be sent to your WhatsApp.</b></p>
    <div id="{STATUS_ID}"></div>
"""


def challenge_swap(image_uri: str) -> str:
    """Script fragment replacing the QR image with a newer one."""
    return (
        f'<script>document.getElementById("{QR_IMAGE_ID}").src = '
        f"{json.dumps(image_uri)};</script>\n"
    )


def success_fragment() -> str:
    """Appended once the credentials file was sent."""
    message = "SUCCESS! The creds.json file has been sent to your WhatsApp Saved Messages."
    return (
        f'<p class="notice">{html.escape(message)}</p>\n'
        f"<script>alert({json.dumps(message)});</script>\n"
    )


def success_page() -> str:
    """Complete page for a link that finished before any QR was shown."""
    return _document("Linked", success_fragment())


def timeout_fragment() -> str:
    """Appended when the deadline passes after the page started."""
    return (
        '<p class="notice">The scan took too long. '
        "Please refresh the page to try again.</p>\n"
    )


def timeout_page() -> str:
    """Complete 504 page."""
    return _document(
        "Timeout",
        "<p>The scan took too long. Please refresh the page to try again.</p>",
    )


def error_fragment(message: str) -> str:
    """Appended when pairing fails after the page started."""
    return f'<p class="notice">Error</p><pre>{html.escape(message)}</pre>\n'


def error_page(message: str) -> str:
    """Complete 500 page with the error message."""
    return _document("Error", f"<pre>{html.escape(message)}</pre>")


def page_end() -> str:
    """Closes the streamed document."""
    return "</body>\n</html>\n"


def _document(heading: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n<html>\n<head><meta charset=\"utf-8\">"
        f"<title>{heading}</title></head>\n"
        f"<body>\n<h1>{heading}</h1>\n{body}\n</body>\n</html>\n"
    )
