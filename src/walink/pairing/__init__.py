"""Pairing module for walink.

Provides the device-link flow:
- Pairing session state machine
- Per-session storage
- Pairing backend contract and WebSocket bridge backend
- QR rendering and response channels
- Pairing controller
"""

from .backend import (
    ChallengeIssued,
    ConnectionClosed,
    ConnectionOpened,
    CredentialsUpdated,
    IdentityProfile,
    PairingBackend,
    PairingConnection,
)
from .bridge import BridgeBackend, BridgeConnection
from .controller import PairingController, PairingResult
from .qr_generator import QrGenerator
from .responder import HtmlResponder, Responder, TerminalResponder
from .session import Challenge, CredentialArtifact, PairingSession, PairingState
from .storage import SessionStorage

__all__ = [
    "BridgeBackend",
    "BridgeConnection",
    "Challenge",
    "ChallengeIssued",
    "ConnectionClosed",
    "ConnectionOpened",
    "CredentialArtifact",
    "CredentialsUpdated",
    "HtmlResponder",
    "IdentityProfile",
    "PairingBackend",
    "PairingConnection",
    "PairingController",
    "PairingResult",
    "PairingSession",
    "PairingState",
    "QrGenerator",
    "Responder",
    "SessionStorage",
    "TerminalResponder",
]
