"""HTTP server for device linking.

Every request to the pairing endpoint runs one isolated pairing
invocation and streams its page back. Rate limits by client IP.
"""

import logging
import time
from typing import Callable, Dict, Optional

from aiohttp import web

from walink.config import Config
from walink.logging import short_id
from walink.pairing.backend import PairingBackend
from walink.pairing.controller import PairingController
from walink.pairing.responder import HtmlResponder

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple sliding window rate limiter."""

    def __init__(self, max_requests: int, window_seconds: int):
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests allowed in window.
            window_seconds: Window size in seconds.
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: Dict[str, list] = {}

    def is_allowed(self, key: str) -> bool:
        """Check if request is allowed.

        Args:
            key: Rate limit key (client IP).

        Returns:
            True if request is allowed, False if rate limited.
        """
        now = time.time()
        cutoff = now - self.window_seconds

        # Drop expired requests; forget clients with none left
        for other in list(self.requests):
            recent = [t for t in self.requests[other] if t > cutoff]
            if recent:
                self.requests[other] = recent
            else:
                del self.requests[other]

        recent = self.requests.get(key, [])
        if len(recent) >= self.max_requests:
            return False

        recent.append(now)
        self.requests[key] = recent
        return True


class PairingServer:
    """HTTP front end for pairing invocations.

    Routes:
        * /       start a pairing invocation
        * /scan   same, kept for existing links
        GET /health
    """

    def __init__(
        self,
        backend: PairingBackend,
        config: Optional[Config] = None,
        controller_factory: Optional[Callable[..., PairingController]] = None,
    ):
        """Initialize pairing server.

        Args:
            backend: Pairing backend shared by all invocations.
            config: Configuration (defaults if None).
            controller_factory: Builds a controller per request (for testing).
        """
        self.backend = backend
        self.config = config or Config()
        self.controller_factory = controller_factory or PairingController
        self.limiter = RateLimiter(
            max_requests=self.config.rate_limit.max_requests,
            window_seconds=self.config.rate_limit.window_seconds,
        )
        self.app = web.Application()
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up HTTP routes."""
        self.app.router.add_get("/health", self._handle_health)
        self.app.router.add_route("*", "/", self._handle_pair)
        self.app.router.add_route("*", "/scan", self._handle_pair)

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle health check request."""
        return web.Response(text="OK")

    async def _handle_pair(self, request: web.Request) -> web.StreamResponse:
        """Run one pairing invocation for this request.

        Args:
            request: HTTP request. Body and query are ignored.

        Returns:
            The streamed pairing page, or an error page.
        """
        client_ip = request.remote or "unknown"

        if not self.limiter.is_allowed(client_ip):
            logger.warning(f"Rate limited pairing request from {client_ip}")
            return web.Response(
                status=429,
                text="<h1>Too many attempts</h1><p>Wait a minute and try again.</p>",
                content_type="text/html",
            )

        controller = self.controller_factory(self.backend, self.config)
        responder = HtmlResponder(request, self.config.page)
        result = await controller.run(responder)

        if responder.response is None:
            # Every terminal path writes a response; this only guards against a
            # controller that returned without one
            logger.error(f"No response produced for session {short_id(result.session_id)}")
            return web.Response(
                status=500,
                text="<h1>Error</h1><pre>No response produced</pre>",
                content_type="text/html",
            )
        return responder.response

    async def start(self, host: str, port: int) -> web.AppRunner:
        """Start the pairing server.

        Args:
            host: Host to bind to.
            port: Port to bind to.

        Returns:
            App runner (for cleanup).
        """
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, host, port)
        await site.start()
        logger.info(f"Pairing server started on {host}:{port}")
        return runner
