"""Spawned picoweb server: lifecycle manager and renderer.

At most one server process exists per session. It is started lazily by
the first render that needs it and then shared by every later call;
whatever configuration started it wins until it exits. Readiness is
inferred from the first byte the process writes on stdout or stderr.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any
from urllib.parse import urlsplit

from pumlrender.config import Settings
from pumlrender.diagrams.model import Diagram
from pumlrender.renders.base import ServerRender
from pumlrender.renders.errors import ProcessError
from pumlrender.renders.processes import ProcessHandle, ProcessRunner

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096


def server_port(server: str) -> str:
    """Port of the configured server URL, '' when it has none."""
    try:
        port = urlsplit(server).port
    except ValueError:
        return ""
    return str(port) if port else ""


def server_args(settings: Settings) -> list[str]:
    port = server_port(settings.server)
    return [
        settings.java,
        *settings.java_args,
        "-jar",
        str(settings.jar),
        f"-picoweb:{port}" if port else "-picoweb",
    ]


class LocalServerManager:
    """Owns the session's single picoweb process."""

    def __init__(self, runner: ProcessRunner) -> None:
        self._runner = runner
        self._process: ProcessHandle | None = None
        self._ready: asyncio.Future[None] | None = None
        self._watchers: set[asyncio.Task[None]] = set()

    @property
    def process(self) -> ProcessHandle | None:
        return self._process

    async def ensure_started(
        self, diagram: Diagram, settings: Settings
    ) -> None:
        """Resolve once the server accepts connections.

        Concurrent callers share one startup; a running server is reused
        without looking at *diagram* or *settings*. The startup runs as a
        manager-owned task, so a canceled caller never strands it.
        """
        ready = self._ready
        if ready is None:
            ready = asyncio.get_running_loop().create_future()
            self._ready = ready
            self._watch(self._start(ready, diagram, settings))
        await asyncio.shield(ready)

    async def _start(
        self,
        ready: asyncio.Future[None],
        diagram: Diagram,
        settings: Settings,
    ) -> None:
        args = server_args(settings)
        try:
            proc = await self._runner.spawn(args)
        except OSError as exc:
            logger.error(
                "event=server_spawn_failed location=%s error=%s",
                diagram.location,
                exc,
            )
            self._ready = None
            ready.set_exception(
                ProcessError(f"Cannot start PlantUML server: {exc}")
            )
            return
        self._process = proc
        logger.info(
            "event=server_spawned pid=%d port=%s",
            proc.pid,
            server_port(settings.server) or "default",
        )
        for stream in (proc.stdout, proc.stderr):
            if stream is not None:
                self._watch(self._drain(stream, ready))
        self._watch(self._on_exit(proc, ready))

    def _watch(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.ensure_future(coro)
        self._watchers.add(task)
        task.add_done_callback(self._watchers.discard)

    async def _drain(
        self, stream: asyncio.StreamReader, ready: asyncio.Future[None]
    ) -> None:
        while chunk := await stream.read(_READ_CHUNK):
            if not ready.done():
                ready.set_result(None)
                logger.info("event=server_ready")
            logger.debug(
                "event=server_output text=%s",
                chunk.decode("utf-8", errors="replace").rstrip(),
            )

    async def _on_exit(
        self, proc: ProcessHandle, ready: asyncio.Future[None]
    ) -> None:
        code = await proc.wait()
        logger.warning(
            "event=server_exited pid=%d code=%s", proc.pid, code
        )
        if self._process is proc:
            self._process = None
            self._ready = None
        if not ready.done():
            ready.set_exception(
                ProcessError(
                    f"PlantUML server exited with code {code} "
                    "before it was ready",
                    returncode=code,
                )
            )

    async def shutdown(self) -> None:
        """Terminate the server, if any. Used at session end only."""
        proc = self._process
        if self._ready is not None and not self._ready.done():
            self._ready.cancel()
        if proc is not None:
            await self._runner.terminate(proc)
        watchers = list(self._watchers)
        for task in watchers:
            task.cancel()
        await asyncio.gather(*watchers, return_exceptions=True)


class LocalServerRender(ServerRender):
    """ServerRender that waits for the session's picoweb server first."""

    async def prepare(self, diagram: Diagram, settings: Settings) -> None:
        await self._session.server.ensure_started(diagram, settings)
