"""walink - link a WhatsApp Web session and hand back its credentials file."""

__version__ = "0.1.0"
