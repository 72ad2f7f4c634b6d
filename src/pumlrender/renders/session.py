"""Session-scoped render state.

Everything that must outlive a single render call lives here: the
spawned server, the per-address POST/GET knowledge and the pooled
HTTP client. Create one per editor session (or per test) and close it
when the session ends.
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType

import httpx

from pumlrender import __version__
from pumlrender.config import Settings
from pumlrender.constants import HTTP_TIMEOUT_SECONDS
from pumlrender.diagrams.model import Diagram
from pumlrender.renders.errors import classify_error
from pumlrender.renders.local_server import LocalServerManager
from pumlrender.renders.negotiation import ProtocolNegotiator
from pumlrender.renders.processes import AsyncioProcessRunner, ProcessRunner

logger = logging.getLogger(__name__)


class RenderSession:
    """Explicit context for the session's shared render state.

    All mutation happens on one event loop, which is what lets the
    server handle and the negotiation table go without locks.
    """

    def __init__(
        self,
        *,
        runner: ProcessRunner | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.runner: ProcessRunner = runner or AsyncioProcessRunner()
        self.negotiator = ProtocolNegotiator()
        self.server = LocalServerManager(self.runner)
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._background: set[asyncio.Task[None]] = set()

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={"User-Agent": f"pumlrender/{__version__}"},
            )
        return self._client

    def warm_server(self, diagram: Diagram, settings: Settings) -> None:
        """Start the spawned server without waiting for it."""
        task = asyncio.ensure_future(
            self.server.ensure_started(diagram, settings)
        )
        self._background.add(task)
        task.add_done_callback(self._on_warm_done)

    def _on_warm_done(self, task: asyncio.Task[None]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                "event=server_warm_failed error_class=%s error=%s",
                classify_error(exc).value,
                exc,
            )

    async def aclose(self) -> None:
        for task in list(self._background):
            task.cancel()
        await self.server.shutdown()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> RenderSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
