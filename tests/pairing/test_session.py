"""Tests for pairing session state machine."""

import json
import time

import pytest

from walink.pairing.session import (
    Challenge,
    CredentialArtifact,
    PairingSession,
    PairingState,
)


class TestPairingState:
    """Tests for PairingState enum."""

    def test_all_states_defined(self):
        """All expected states are defined."""
        assert PairingState.INITIALIZING
        assert PairingState.AWAITING_LINK
        assert PairingState.DELIVERING
        assert PairingState.DONE
        assert PairingState.TIMED_OUT
        assert PairingState.FAILED


class TestPairingSessionCreate:
    """Tests for PairingSession creation."""

    def test_create_generates_session_id(self):
        """Create generates a 32-char hex session ID."""
        session = PairingSession.create()
        assert len(session.session_id) == 32
        int(session.session_id, 16)

    def test_create_starts_initializing(self):
        """Created session starts in INITIALIZING state."""
        session = PairingSession.create()
        assert session.state == PairingState.INITIALIZING
        assert session.challenge is None
        assert not session.is_terminal

    def test_create_sets_created_at(self):
        """Create sets created_at timestamp."""
        before = time.time()
        session = PairingSession.create()
        after = time.time()
        assert before <= session.created_at <= after

    def test_create_unique_session_ids(self):
        """Each create call generates unique session ID."""
        ids = [PairingSession.create().session_id for _ in range(10)]
        assert len(set(ids)) == 10


class TestPairingSessionTransition:
    """Tests for state transitions."""

    def test_happy_path(self):
        """INITIALIZING -> AWAITING_LINK -> DELIVERING -> DONE."""
        session = PairingSession.create()
        session.transition_to(PairingState.AWAITING_LINK)
        session.transition_to(PairingState.DELIVERING)
        session.transition_to(PairingState.DONE)
        assert session.state == PairingState.DONE
        assert session.is_terminal

    @pytest.mark.parametrize("terminal", [PairingState.TIMED_OUT, PairingState.FAILED])
    def test_any_non_terminal_state_can_end(self, terminal):
        """TIMED_OUT and FAILED are reachable from every non-terminal state."""
        paths = [
            [],
            [PairingState.AWAITING_LINK],
            [PairingState.AWAITING_LINK, PairingState.DELIVERING],
        ]
        for path in paths:
            session = PairingSession.create()
            for state in path:
                session.transition_to(state)
            session.transition_to(terminal)
            assert session.state == terminal

    @pytest.mark.parametrize(
        "terminal", [PairingState.DONE, PairingState.TIMED_OUT, PairingState.FAILED]
    )
    def test_terminal_states_are_final(self, terminal):
        """No transitions leave a terminal state."""
        session = PairingSession(session_id="abc", state=terminal)
        for target in PairingState:
            with pytest.raises(ValueError, match="Invalid transition"):
                session.transition_to(target)

    def test_cannot_skip_awaiting(self):
        """Cannot deliver before a link was awaited."""
        session = PairingSession.create()
        with pytest.raises(ValueError, match="Invalid transition"):
            session.transition_to(PairingState.DELIVERING)

    def test_cannot_finish_without_delivering(self):
        """DONE is only reachable from DELIVERING."""
        session = PairingSession.create()
        session.transition_to(PairingState.AWAITING_LINK)
        with pytest.raises(ValueError, match="Invalid transition"):
            session.transition_to(PairingState.DONE)


class TestChallenges:
    """Tests for challenge issuance."""

    def test_first_issue(self):
        """First token becomes the current challenge."""
        session = PairingSession.create()
        challenge = session.issue_challenge("tok-1")
        assert challenge is not None
        assert session.challenge is challenge
        assert session.challenges_issued == 1

    def test_new_token_supersedes(self):
        """A new token replaces the current challenge."""
        session = PairingSession.create()
        session.issue_challenge("tok-1")
        challenge = session.issue_challenge("tok-2")
        assert challenge.token == "tok-2"
        assert session.challenge.token == "tok-2"
        assert session.challenges_issued == 2

    def test_same_token_is_not_reissued(self):
        """Repeating the current token returns None."""
        session = PairingSession.create()
        session.issue_challenge("tok-1")
        assert session.issue_challenge("tok-1") is None
        assert session.challenges_issued == 1

    def test_challenge_expiry(self):
        """Challenge expires after its validity window."""
        challenge = Challenge(token="t", issued_at=100.0, validity=20.0)
        assert not challenge.is_expired(now=119.0)
        assert challenge.is_expired(now=121.0)


class TestCredentialArtifact:
    """Tests for CredentialArtifact."""

    def test_defaults(self):
        """Artifact is a JSON file named creds.json."""
        artifact = CredentialArtifact(payload=b"{}")
        assert artifact.file_name == "creds.json"
        assert artifact.mime_type == "application/json"

    def test_account_id(self):
        """account_id reads me.id."""
        payload = json.dumps({"me": {"id": "123", "name": "x"}}).encode()
        assert CredentialArtifact(payload=payload).account_id == "123"

    @pytest.mark.parametrize(
        "payload",
        [b"not json", b"[]", b'{"me": null}', b'{"me": {}}', b"{}", b"\xff\xfe"],
    )
    def test_account_id_missing(self, payload):
        """account_id is None when me.id is absent or unreadable."""
        assert CredentialArtifact(payload=payload).account_id is None
