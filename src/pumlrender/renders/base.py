"""Renderer interface and the shared HTTP fan-out."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pumlrender.config import Settings
from pumlrender.constants import MAP_FORMAT, SERVER_FORMATS, HttpMethod
from pumlrender.diagrams.model import Diagram
from pumlrender.renders.errors import ConfigurationError
from pumlrender.renders.http_client import http_render
from pumlrender.renders.task import RenderTask
from pumlrender.urls import add_file_index

if TYPE_CHECKING:
    from pumlrender.renders.session import RenderSession

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    """Interface every render strategy must satisfy."""

    def formats(self) -> tuple[str, ...]: ...
    def limit_concurrency(self) -> bool: ...

    async def render(
        self,
        diagram: Diagram,
        fmt: str,
        save_path: Path | None,
        settings: Settings,
    ) -> RenderTask: ...

    async def get_map_data(
        self,
        diagram: Diagram,
        save_path: Path | None,
        settings: Settings,
    ) -> RenderTask: ...


def page_path(
    save_path: Path | None, index: int, count: int
) -> Path | None:
    if save_path is None:
        return None
    return add_file_index(save_path, index, count)


class ServerRender:
    """Render every page through a PlantUML HTTP server.

    Pages run concurrently. Each one negotiates POST vs GET against the
    session's ProtocolNegotiator. Subclasses hook ``prepare`` to wait
    for a server before any request goes out.
    """

    def __init__(self, session: RenderSession) -> None:
        self._session = session

    def formats(self) -> tuple[str, ...]:
        return SERVER_FORMATS

    def limit_concurrency(self) -> bool:
        return False

    async def prepare(self, diagram: Diagram, settings: Settings) -> None:
        return None

    async def render(
        self,
        diagram: Diagram,
        fmt: str,
        save_path: Path | None,
        settings: Settings,
    ) -> RenderTask:
        if not settings.server:
            logger.warning(
                "event=render_no_server location=%s render=%s",
                diagram.location,
                settings.render,
            )
            return RenderTask.rejected(
                ConfigurationError(
                    "No PlantUML server configured. "
                    "Set 'server' to use the server render."
                )
            )
        pages = [
            self._render_page(
                diagram,
                fmt,
                index,
                page_path(save_path, index, diagram.page_count),
                settings,
            )
            for index in range(diagram.page_count)
        ]
        return RenderTask.gather(pages)

    async def get_map_data(
        self,
        diagram: Diagram,
        save_path: Path | None,
        settings: Settings,
    ) -> RenderTask:
        return await self.render(diagram, MAP_FORMAT, save_path, settings)

    async def _render_page(
        self,
        diagram: Diagram,
        fmt: str,
        index: int,
        save_path: Path | None,
        settings: Settings,
    ) -> bytes:
        await self.prepare(diagram, settings)
        client = self._session.http
        server = settings.server

        async def post() -> bytes:
            return await http_render(
                client, HttpMethod.POST, server, diagram, fmt, index, save_path
            )

        async def get() -> bytes:
            return await http_render(
                client, HttpMethod.GET, server, diagram, fmt, index, save_path
            )

        return await self._session.negotiator.negotiate(server, post, get)
