"""Pairing session state machine.

Represents one device-link attempt: the QR challenges shown for it,
the credentials file it produces, and the state transitions between
setup and delivery.
"""

import json
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional


CREDENTIALS_FILE_NAME = "creds.json"
CREDENTIALS_MIME_TYPE = "application/json"


class PairingState(Enum):
    """Pairing session states."""

    INITIALIZING = auto()
    AWAITING_LINK = auto()
    DELIVERING = auto()
    DONE = auto()
    TIMED_OUT = auto()
    FAILED = auto()


TERMINAL_STATES = frozenset(
    {PairingState.DONE, PairingState.TIMED_OUT, PairingState.FAILED}
)


@dataclass
class Challenge:
    """A single QR token issued by the backend.

    Attributes:
        token: Opaque pairing token to encode in the QR code.
        issued_at: Unix timestamp of issuance.
        validity: Seconds the backend keeps the token valid.
    """

    token: str
    issued_at: float = field(default_factory=time.time)
    validity: float = 20.0

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check if the token is past its validity window."""
        now = time.time() if now is None else now
        return now - self.issued_at > self.validity


@dataclass
class CredentialArtifact:
    """The credentials file written by the backend after linking.

    Attributes:
        payload: Raw file contents, sent unchanged.
        file_name: Attachment file name.
        mime_type: Attachment MIME type.
    """

    payload: bytes
    file_name: str = CREDENTIALS_FILE_NAME
    mime_type: str = CREDENTIALS_MIME_TYPE

    @property
    def account_id(self) -> Optional[str]:
        """Linked account id (``me.id``) from the payload, if present."""
        try:
            data = json.loads(self.payload)
        except (ValueError, UnicodeDecodeError):
            return None
        if not isinstance(data, dict):
            return None
        me = data.get("me")
        if not isinstance(me, dict):
            return None
        account_id = me.get("id")
        return str(account_id) if account_id else None


@dataclass
class PairingSession:
    """Represents one linking attempt.

    Attributes:
        session_id: Unique session identifier (32 hex chars).
        storage_dir: Per-session storage directory path.
        created_at: Unix timestamp when session was created.
        state: Current pairing state.
        challenge: Most recently issued challenge.
        challenges_issued: Number of distinct challenges seen.
        user_id: Linked account id, set once the link opens.
        error: Message of the error that ended the session.
    """

    session_id: str
    storage_dir: str = ""
    created_at: float = field(default_factory=time.time)
    state: PairingState = PairingState.INITIALIZING

    challenge: Optional[Challenge] = None
    challenges_issued: int = 0
    user_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def create(cls) -> "PairingSession":
        """Create a new pairing session with a fresh id."""
        return cls(session_id=secrets.token_hex(16))

    @property
    def is_terminal(self) -> bool:
        """True once the session reached DONE, TIMED_OUT or FAILED."""
        return self.state in TERMINAL_STATES

    def issue_challenge(self, token: str, validity: float = 20.0) -> Optional[Challenge]:
        """Record a challenge issued by the backend.

        A repeat of the current token is not a new issuance.

        Args:
            token: Opaque token from the backend.
            validity: Validity window in seconds.

        Returns:
            The new Challenge, or None if the token is already current.
        """
        if self.challenge is not None and self.challenge.token == token:
            return None

        self.challenge = Challenge(token=token, validity=validity)
        self.challenges_issued += 1
        return self.challenge

    def transition_to(self, new_state: PairingState) -> None:
        """Transition to a new state with validation.

        Args:
            new_state: Target state.

        Raises:
            ValueError: If transition is not valid from current state.
        """
        valid_transitions = {
            PairingState.INITIALIZING: {
                PairingState.AWAITING_LINK,
                PairingState.TIMED_OUT,
                PairingState.FAILED,
            },
            PairingState.AWAITING_LINK: {
                PairingState.DELIVERING,
                PairingState.TIMED_OUT,
                PairingState.FAILED,
            },
            PairingState.DELIVERING: {
                PairingState.DONE,
                PairingState.TIMED_OUT,
                PairingState.FAILED,
            },
            PairingState.DONE: set(),
            PairingState.TIMED_OUT: set(),
            PairingState.FAILED: set(),
        }

        if new_state not in valid_transitions.get(self.state, set()):
            raise ValueError(f"Invalid transition: {self.state} -> {new_state}")

        self.state = new_state
