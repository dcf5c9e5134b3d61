"""Output channels for a pairing invocation.

A responder renders challenges and exactly one terminal outcome
(success, timeout or error). Every terminal method after the first is a
no-op, so racing events can never produce a second response.
"""

import logging
from typing import Callable, Optional, Protocol

import click
from aiohttp import web

from walink.config import PageConfig
from walink.pairing import page
from walink.pairing.qr_generator import QrGenerator, render_challenge

logger = logging.getLogger(__name__)


class Responder(Protocol):
    """Protocol for pairing output channels."""

    @property
    def finished(self) -> bool:
        """True once a terminal outcome was produced."""
        ...

    async def show_challenge(self, token: str) -> bool:
        """Render a challenge token. Returns False if already finished."""
        ...

    async def succeed(self) -> bool:
        """Report delivery. Returns False if already finished."""
        ...

    async def time_out(self) -> bool:
        """Report the deadline. Returns False if already finished."""
        ...

    async def fail(self, message: str) -> bool:
        """Report an error. Returns False if already finished."""
        ...


class HtmlResponder:
    """Streams the pairing page into an aiohttp response.

    The response starts with the first challenge (200) and stays open;
    a terminal outcome before any challenge gets its own status code
    (504 timeout, 500 error).
    """

    def __init__(
        self,
        request: web.Request,
        page_config: Optional[PageConfig] = None,
        renderer: Callable[[str], str] = render_challenge,
    ):
        """Initialize responder.

        Args:
            request: Request being answered.
            page_config: Page settings.
            renderer: Maps a challenge token to an image URI.
        """
        self.request = request
        self.page_config = page_config or PageConfig()
        self.renderer = renderer
        self.response: Optional[web.StreamResponse] = None
        self._finished = False
        self._broken = False

    @property
    def started(self) -> bool:
        """True once headers were sent."""
        return self.response is not None

    @property
    def finished(self) -> bool:
        return self._finished

    async def show_challenge(self, token: str) -> bool:
        if self._finished:
            return False

        image_uri = self.renderer(token)
        if self.response is None:
            await self._start(200)
            await self._write(page.challenge_page(image_uri, self.page_config))
        else:
            await self._write(page.challenge_swap(image_uri))
        return True

    async def succeed(self) -> bool:
        return await self._terminal(200, page.success_page(), page.success_fragment())

    async def time_out(self) -> bool:
        return await self._terminal(504, page.timeout_page(), page.timeout_fragment())

    async def fail(self, message: str) -> bool:
        return await self._terminal(
            500, page.error_page(message), page.error_fragment(message)
        )

    async def _terminal(self, status: int, full_page: str, fragment: str) -> bool:
        """Produce the one terminal outcome."""
        if self._finished:
            return False
        # Set before the first await so concurrent callers see it
        self._finished = True

        if self.response is None:
            await self._start(status)
            await self._write(full_page)
        else:
            await self._write(fragment + page.page_end())

        if self.response is not None and not self._broken:
            try:
                await self.response.write_eof()
            except ConnectionResetError as e:
                logger.debug(f"Client went away before end of page: {e}")
        return True

    async def _start(self, status: int) -> None:
        response = web.StreamResponse(status=status)
        response.content_type = "text/html"
        response.charset = "utf-8"
        response.headers["Cache-Control"] = "no-store"
        self.response = response
        try:
            await response.prepare(self.request)
        except ConnectionResetError as e:
            logger.info(f"Client went away before headers: {e}")
            self._broken = True

    async def _write(self, chunk: str) -> None:
        if self._broken or self.response is None:
            return
        try:
            await self.response.write(chunk.encode("utf-8"))
        except ConnectionResetError as e:
            logger.info(f"Client went away, dropping output: {e}")
            self._broken = True


class TerminalResponder:
    """Prints challenges as terminal QR codes and the outcome as text."""

    def __init__(self, echo: Callable[..., None] = click.echo):
        """Initialize responder.

        Args:
            echo: Output function (click.echo).
        """
        self.echo = echo
        self.status: Optional[int] = None
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    async def show_challenge(self, token: str) -> bool:
        if self._finished:
            return False
        self.echo(QrGenerator(token).to_terminal())
        self.echo("Open WhatsApp > Linked Devices and scan the code above.")
        return True

    async def succeed(self) -> bool:
        return self._terminal(200, "Linked. creds.json was sent to your WhatsApp.")

    async def time_out(self) -> bool:
        return self._terminal(504, "Timed out waiting for the scan.", err=True)

    async def fail(self, message: str) -> bool:
        return self._terminal(500, f"Error: {message}", err=True)

    def _terminal(self, status: int, message: str, err: bool = False) -> bool:
        if self._finished:
            return False
        self._finished = True
        self.status = status
        self.echo(message, err=err)
        return True
