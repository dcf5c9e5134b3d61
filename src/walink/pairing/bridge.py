"""Pairing backend reached over a WebSocket bridge.

The bridge is a small sidecar process that runs the WhatsApp Web client
library against a storage directory shared with walink. Frames are JSON
text messages:

    -> {"op": "connect", "storage": ..., "browser": [...], "version": ...}
    <- {"event": "creds.update"}
    <- {"event": "qr", "qr": "<token>"}
    <- {"event": "connection", "state": "open", "user": {"id": "<jid>"}}
    <- {"event": "connection", "state": "close", "reason": ..., "status_code": ...}
    -> {"op": "send_document", "id": 1, "to": "<jid>", "document": "<base64>", ...}
    <- {"event": "ack", "id": 1, "ok": true}
    <- {"event": "error", "message": "..."}

Usage:
    backend = BridgeBackend("ws://127.0.0.1:8787/pair")
    connection = await backend.connect(storage_dir, identity)
    async for event in connection.events():
        ...
    await connection.close()
"""

import asyncio
import base64
import json
import logging
from pathlib import Path
from typing import AsyncIterator, Dict, Optional, Sequence

import aiohttp

from walink.errors import BackendError
from walink.pairing.backend import (
    BackendEvent,
    ChallengeIssued,
    ConnectionClosed,
    ConnectionOpened,
    CredentialsUpdated,
    IdentityProfile,
)
from walink.pairing.session import CredentialArtifact

logger = logging.getLogger(__name__)

# Marks the end of the event stream in the queue
_END = object()


def _status_code(value) -> Optional[int]:
    """Integer status code from a frame, or None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


class BridgeConnection:
    """One open bridge WebSocket.

    A background reader routes lifecycle events into a queue consumed by
    events() and send acknowledgements to the futures awaited by send_file().
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize connection.

        Args:
            ws: Connected WebSocket.
            http_session: Session to close together with the socket, if owned.
        """
        self._ws = ws
        self._http_session = http_session
        self._queue: asyncio.Queue = asyncio.Queue()
        self._pending: Dict[int, asyncio.Future] = {}
        self._next_request_id = 1
        self._receive_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once close() ran or the socket ended."""
        return self._closed

    def start(self) -> None:
        """Start the background reader."""
        if self._receive_task is None:
            self._receive_task = asyncio.create_task(self._receive_loop())

    async def events(self) -> AsyncIterator[BackendEvent]:
        """Yield lifecycle events until the socket ends.

        Raises:
            BackendError: If the bridge reported a fatal error.
        """
        while True:
            item = await self._queue.get()
            if item is _END:
                # Leave the marker for any later consumer
                self._queue.put_nowait(_END)
                return
            if isinstance(item, BackendError):
                raise item
            yield item

    async def send_file(
        self, recipient: str, artifact: CredentialArtifact, caption: str
    ) -> None:
        """Send the artifact as a document and wait for the bridge ack.

        Raises:
            BackendError: If the socket is closed or the bridge rejects the send.
        """
        if self._closed or self._ws.closed:
            raise BackendError("Bridge connection is closed")

        request_id = self._next_request_id
        self._next_request_id += 1

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._ws.send_json(
                {
                    "op": "send_document",
                    "id": request_id,
                    "to": recipient,
                    "document": base64.b64encode(artifact.payload).decode("ascii"),
                    "mimetype": artifact.mime_type,
                    "file_name": artifact.file_name,
                    "caption": caption,
                }
            )
            await future
        except (aiohttp.ClientError, ConnectionResetError) as e:
            raise BackendError(f"Bridge send failed: {e}") from e
        finally:
            self._pending.pop(request_id, None)

    async def close(self) -> None:
        """Close the socket and stop the reader. Idempotent."""
        if self._closed:
            return
        self._closed = True

        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            self._receive_task = None

        if not self._ws.closed:
            await self._ws.close()

        if self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

        self._finish_stream()
        logger.debug("Bridge connection closed")

    async def _receive_loop(self) -> None:
        """Read frames until the socket closes."""
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"Bridge WebSocket error: {self._ws.exception()}")
                    break
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED):
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Bridge receive loop error: {e}")
        finally:
            self._finish_stream()

    def _finish_stream(self) -> None:
        """Fail pending sends and end the event stream."""
        for future in self._pending.values():
            if not future.done():
                future.set_exception(BackendError("Bridge connection closed"))
        self._pending.clear()
        self._queue.put_nowait(_END)

    def _dispatch(self, raw: str) -> None:
        """Route one text frame."""
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring non-JSON bridge frame")
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object bridge frame")
            return

        kind = data.get("event")

        if kind == "creds.update":
            self._queue.put_nowait(CredentialsUpdated())
        elif kind == "qr":
            token = data.get("qr")
            if token:
                self._queue.put_nowait(ChallengeIssued(token=str(token)))
        elif kind == "connection":
            self._dispatch_connection(data)
        elif kind == "ack":
            request_id = data.get("id")
            future = self._pending.get(request_id) if type(request_id) is int else None
            if future is None or future.done():
                logger.debug(f"Unmatched bridge ack: {request_id!r}")
            elif data.get("ok"):
                future.set_result(None)
            else:
                future.set_exception(
                    BackendError(data.get("error") or "Bridge rejected send")
                )
        elif kind == "error":
            self._queue.put_nowait(BackendError(data.get("message") or "Bridge error"))
        else:
            logger.debug(f"Ignoring bridge event: {kind}")

    def _dispatch_connection(self, data: dict) -> None:
        state = data.get("state")
        if state == "open":
            user = data.get("user") or {}
            user_id = user.get("id") if isinstance(user, dict) else None
            self._queue.put_nowait(ConnectionOpened(user_id=user_id))
        elif state == "close":
            self._queue.put_nowait(
                ConnectionClosed(
                    reason=str(data.get("reason") or ""),
                    status_code=_status_code(data.get("status_code")),
                )
            )
        else:
            logger.debug(f"Bridge connection state: {state}")


class BridgeBackend:
    """PairingBackend backed by a WebSocket bridge process."""

    def __init__(
        self,
        url: str,
        connect_timeout_ms: int = 10000,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize backend.

        Args:
            url: Bridge WebSocket URL.
            connect_timeout_ms: WhatsApp connect timeout passed to the bridge.
            http_session: Optional aiohttp session (for testing).
        """
        self.url = url
        self.connect_timeout_ms = connect_timeout_ms
        self._session = http_session

    async def connect(
        self,
        storage_dir: Path,
        identity: IdentityProfile,
        version: Optional[Sequence[int]] = None,
    ) -> BridgeConnection:
        """Open a bridge socket and ask it to start a WhatsApp connection.

        Raises:
            BackendError: If the bridge cannot be reached.
        """
        owned_session = None
        session = self._session
        if session is None:
            owned_session = session = aiohttp.ClientSession()

        try:
            ws = await session.ws_connect(self.url)
            await ws.send_json(
                {
                    "op": "connect",
                    "storage": str(storage_dir),
                    "browser": identity.as_list(),
                    "version": list(version) if version else None,
                    "connect_timeout_ms": self.connect_timeout_ms,
                }
            )
        except (aiohttp.ClientError, OSError) as e:
            if owned_session is not None:
                await owned_session.close()
            raise BackendError(f"Cannot reach pairing bridge at {self.url}: {e}") from e
        except asyncio.CancelledError:
            if owned_session is not None:
                await owned_session.close()
            raise

        connection = BridgeConnection(ws, http_session=owned_session)
        connection.start()
        logger.info(f"Bridge connected as {identity.platform}/{identity.browser}")
        return connection
