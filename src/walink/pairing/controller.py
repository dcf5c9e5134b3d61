"""Pairing controller drives one device-link attempt.

Sequence for one invocation:

    INITIALIZING   fresh session storage, backend connection opened
    AWAITING_LINK  challenges rendered as they arrive
    DELIVERING     creds.json read back and sent to the linked account
    DONE

The setup and waiting phases race against a single deadline. Any error
ends the session as FAILED; the deadline ends it as TIMED_OUT. Exactly
one terminal outcome reaches the responder.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from walink.config import Config
from walink.errors import BackendError, DeliveryError, LoggedOutError, WalinkError
from walink.logging import short_id
from walink.pairing.backend import (
    ChallengeIssued,
    ConnectionClosed,
    ConnectionOpened,
    CredentialsUpdated,
    IdentityProfile,
    PairingBackend,
    PairingConnection,
)
from walink.pairing.responder import Responder
from walink.pairing.session import PairingSession, PairingState
from walink.pairing.storage import SessionStorage

logger = logging.getLogger(__name__)


@dataclass
class PairingResult:
    """Outcome of one invocation."""

    session_id: str
    state: PairingState
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == PairingState.DONE


class PairingController:
    """Owns the lifecycle of one linking attempt.

    A controller is used for a single run(); create one per invocation.
    """

    def __init__(self, backend: PairingBackend, config: Optional[Config] = None):
        """Initialize controller.

        Args:
            backend: Pairing backend to open the connection with.
            config: Configuration (defaults if None).
        """
        self.backend = backend
        self.config = config or Config()
        self.session = PairingSession.create()
        self.storage = SessionStorage(
            self.config.storage_root,
            self.session.session_id,
            prefix=self.config.storage_prefix,
        )
        self.session.storage_dir = str(self.storage.path)
        self.connection: Optional[PairingConnection] = None
        self._ran = False

    @property
    def identity(self) -> IdentityProfile:
        identity = self.config.identity
        return IdentityProfile.preset(identity.platform, identity.browser, identity.version)

    async def run(self, responder: Responder) -> PairingResult:
        """Run the invocation to a terminal state.

        Args:
            responder: Output channel for challenges and the outcome.

        Returns:
            PairingResult with the terminal state.

        Raises:
            RuntimeError: If called twice.
        """
        if self._ran:
            raise RuntimeError("PairingController.run() may only be called once")
        self._ran = True

        session = self.session
        pairing = self.config.pairing
        logger.info(f"Pairing session started: {short_id(session.session_id)}")

        try:
            try:
                await asyncio.wait_for(
                    self._setup_and_wait(responder),
                    timeout=pairing.deadline_seconds,
                )
            except asyncio.TimeoutError:
                await self._on_timeout(responder)
            else:
                await self._deliver(responder)
        except Exception as e:
            await self._on_failure(responder, e)
        finally:
            await self._release()

        logger.info(
            f"Pairing session {short_id(session.session_id)} ended: {session.state.name}"
        )
        return PairingResult(
            session_id=session.session_id,
            state=session.state,
            error=session.error,
        )

    async def _setup_and_wait(self, responder: Responder) -> None:
        """INITIALIZING and AWAITING_LINK; returns once the link is open."""
        session = self.session
        pairing = self.config.pairing
        backend_config = self.config.backend

        # Never reuse old key material: a stale directory means a stale QR
        self.storage.prepare()
        self.connection = await self.backend.connect(
            self.storage.path,
            self.identity,
            backend_config.protocol_version,
        )
        session.transition_to(PairingState.AWAITING_LINK)

        async for event in self.connection.events():
            if isinstance(event, ChallengeIssued):
                challenge = session.issue_challenge(
                    event.token, validity=pairing.challenge_validity_seconds
                )
                if challenge is not None:
                    logger.info(
                        f"QR generated for {short_id(session.session_id)} "
                        f"(#{session.challenges_issued})"
                    )
                    await responder.show_challenge(challenge.token)

            elif isinstance(event, CredentialsUpdated):
                logger.debug(f"Credentials updated for {short_id(session.session_id)}")

            elif isinstance(event, ConnectionOpened):
                session.user_id = event.user_id
                session.transition_to(PairingState.DELIVERING)
                logger.info(f"Connected to WhatsApp: {short_id(session.session_id)}")
                return

            elif isinstance(event, ConnectionClosed):
                if event.logged_out:
                    raise LoggedOutError(
                        f"WhatsApp logged out the session ({event.reason or event.status_code})"
                    )
                logger.warning(
                    f"Backend connection closed before link "
                    f"({event.reason or event.status_code or 'no reason'}), still waiting"
                )

        raise BackendError("Pairing backend ended before the device was linked")

    async def _deliver(self, responder: Responder) -> None:
        """DELIVERING -> DONE."""
        session = self.session
        pairing = self.config.pairing

        # Let the backend flush creds.json to disk
        await asyncio.sleep(pairing.settle_seconds)

        artifact = self.storage.read_credentials()
        if artifact is None:
            raise DeliveryError("Linked, but creds.json was not written to session storage")

        recipient = artifact.account_id or session.user_id
        if not recipient:
            raise DeliveryError("Linked, but the account id is unknown")

        try:
            await asyncio.wait_for(
                self.connection.send_file(recipient, artifact, pairing.caption),
                timeout=pairing.send_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise DeliveryError("Timed out sending creds.json") from e
        except BackendError as e:
            raise DeliveryError(f"Sending creds.json failed: {e}") from e

        logger.info(f"creds.json sent for {short_id(session.session_id)}")
        session.transition_to(PairingState.DONE)
        await responder.succeed()

        await asyncio.sleep(pairing.linger_seconds)

    async def _on_timeout(self, responder: Responder) -> None:
        session = self.session
        session.transition_to(PairingState.TIMED_OUT)
        challenge = session.challenge
        if challenge is not None and challenge.is_expired():
            session.error = "Timed out: the last QR code expired before it was scanned"
        else:
            session.error = "Timed out waiting for the QR code to be scanned"
        logger.warning(
            f"Pairing session timed out: {short_id(session.session_id)} ({session.error})"
        )

        await self._close_connection()
        await responder.time_out()

    async def _on_failure(self, responder: Responder, error: Exception) -> None:
        session = self.session
        message = str(error) or error.__class__.__name__

        if session.is_terminal:
            logger.error(f"Error after pairing session ended: {message}")
            return

        session.transition_to(PairingState.FAILED)
        session.error = message
        if isinstance(error, WalinkError):
            logger.error(f"Pairing session {short_id(session.session_id)} failed: {message}")
        else:
            logger.exception(f"Unexpected error in pairing session {short_id(session.session_id)}")

        await self._close_connection()
        await responder.fail(message)

    async def _close_connection(self) -> None:
        connection, self.connection = self.connection, None
        if connection is None:
            return
        try:
            await connection.close()
        except Exception as e:
            logger.warning(f"Error closing backend connection: {e}")

    async def _release(self) -> None:
        """Close the connection and remove session storage."""
        await self._close_connection()
        try:
            self.storage.remove()
        except WalinkError as e:
            logger.warning(f"Could not remove session storage: {e}")
