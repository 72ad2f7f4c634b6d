"""Pick a render strategy per source location and dispatch to it."""

from __future__ import annotations

import logging
from pathlib import Path

from pumlrender.config import Settings
from pumlrender.constants import RenderType
from pumlrender.diagrams.model import Diagram
from pumlrender.renders.base import Renderer
from pumlrender.renders.errors import ConfigurationError
from pumlrender.renders.local import LocalRender
from pumlrender.renders.local_server import LocalServerRender
from pumlrender.renders.plantuml_server import PlantUMLServerRender
from pumlrender.renders.session import RenderSession
from pumlrender.renders.task import RenderTask

logger = logging.getLogger(__name__)


class RenderDispatcher:
    """Entry point for rendering: ``render(diagram, fmt, save_path)``.

    Settings are resolved per diagram location, so one dispatcher
    serves a whole workspace with mixed strategies.
    """

    def __init__(self, settings: Settings, session: RenderSession) -> None:
        self.settings = settings
        self.session = session
        self._renders: dict[RenderType, Renderer] = {
            RenderType.LOCAL: LocalRender(session.runner),
            RenderType.PLANTUML_SERVER: PlantUMLServerRender(session),
            RenderType.LOCAL_SERVER: LocalServerRender(session),
        }

    def applied_render(self, location: str) -> Renderer:
        cfg = self.settings.for_location(location)
        return self._renders.get(cfg.render, self._renders[RenderType.LOCAL])

    async def render(
        self,
        diagram: Diagram,
        fmt: str,
        save_path: Path | None = None,
    ) -> RenderTask:
        """Start rendering every page of *diagram*.

        With *save_path*, each page is also written to disk, index-
        suffixed when there is more than one page.
        """
        cfg = self.settings.for_location(diagram.location)
        renderer = self.applied_render(diagram.location)
        logger.debug(
            "event=render_dispatch render=%s diagram=%s pages=%d format=%s",
            cfg.render,
            diagram.name,
            diagram.page_count,
            fmt,
        )
        if fmt not in renderer.formats():
            logger.warning(
                "event=format_unsupported render=%s format=%s",
                cfg.render,
                fmt,
            )
            return RenderTask.rejected(
                ConfigurationError(
                    f"Format '{fmt}' is not supported by the {cfg.render}"
                    f" render. Supported: {', '.join(renderer.formats())}"
                )
            )
        return await renderer.render(diagram, fmt, save_path, cfg)

    async def ensure_started(self, diagram: Diagram) -> None:
        """Pre-warm the spawned server for *diagram*'s location."""
        cfg = self.settings.for_location(diagram.location)
        await self.session.server.ensure_started(diagram, cfg)

    async def export_to_buffer(
        self, diagram: Diagram, fmt: str
    ) -> RenderTask:
        return await self.render(diagram, fmt)

    async def export_to_file(
        self, diagram: Diagram, fmt: str, save_path: Path
    ) -> RenderTask:
        return await self.render(diagram, fmt, save_path)

    async def get_map_data(
        self, diagram: Diagram, save_path: Path | None = None
    ) -> RenderTask:
        cfg = self.settings.for_location(diagram.location)
        renderer = self.applied_render(diagram.location)
        return await renderer.get_map_data(diagram, save_path, cfg)
