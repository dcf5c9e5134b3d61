"""Pairing backend contract.

The backend runs the actual WhatsApp Web client: it performs the
multi-device handshake, writes key material into the session storage
and reports lifecycle events. walink only sequences calls into it.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional, Protocol, Sequence, Union

from walink.pairing.session import CredentialArtifact


# Status code the WhatsApp Web client reports for an explicit logout
LOGGED_OUT_STATUS_CODE = 401
LOGGED_OUT_REASONS = frozenset({"logout", "logged_out", "loggedout"})

# platform key -> (platform name, default OS version)
PLATFORM_PRESETS = {
    "macos": ("Mac OS", "14.4.1"),
    "ubuntu": ("Ubuntu", "22.04.4"),
    "windows": ("Windows", "10.0.22631"),
}


@dataclass(frozen=True)
class IdentityProfile:
    """Device/browser descriptor shown in the phone's Linked Devices list."""

    platform: str
    browser: str
    version: str

    @classmethod
    def preset(
        cls, platform: str, browser: str = "Desktop", version: Optional[str] = None
    ) -> "IdentityProfile":
        """Build a profile from a platform key (macos, ubuntu, windows).

        Unknown keys are used verbatim as the platform name.
        """
        name, default_version = PLATFORM_PRESETS.get(
            platform.lower(), (platform, "")
        )
        return cls(platform=name, browser=browser, version=version or default_version)

    def as_list(self) -> list[str]:
        """Three-element form used on the wire."""
        return [self.platform, self.browser, self.version]


@dataclass(frozen=True)
class CredentialsUpdated:
    """Backend persisted new key material to session storage."""


@dataclass(frozen=True)
class ChallengeIssued:
    """Backend issued a new QR token."""

    token: str


@dataclass(frozen=True)
class ConnectionOpened:
    """The link is established."""

    user_id: Optional[str] = None


@dataclass(frozen=True)
class ConnectionClosed:
    """Backend connection closed.

    Only an explicit logout is final; any other close is inconclusive.
    """

    reason: str = ""
    status_code: Optional[int] = None

    @property
    def logged_out(self) -> bool:
        """True if the close was caused by an explicit logout."""
        if self.status_code == LOGGED_OUT_STATUS_CODE:
            return True
        return self.reason.replace(" ", "").lower() in LOGGED_OUT_REASONS


BackendEvent = Union[CredentialsUpdated, ChallengeIssued, ConnectionOpened, ConnectionClosed]


class PairingConnection(Protocol):
    """Protocol for an open backend connection."""

    def events(self) -> AsyncIterator[BackendEvent]:
        """Iterate lifecycle events until the connection ends."""
        ...

    async def send_file(
        self, recipient: str, artifact: CredentialArtifact, caption: str
    ) -> None:
        """Send the artifact as a document to recipient."""
        ...

    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        ...


class PairingBackend(Protocol):
    """Protocol for the pairing backend."""

    async def connect(
        self,
        storage_dir: Path,
        identity: IdentityProfile,
        version: Optional[Sequence[int]] = None,
    ) -> PairingConnection:
        """Open a connection bound to storage_dir."""
        ...
