"""Render by piping each page through its own local engine process."""

from __future__ import annotations

import logging
from pathlib import Path, PurePath

from pumlrender.config import Settings
from pumlrender.constants import (
    ERROR_TRUNCATION_CHARS,
    HEADLESS_FLAG,
    LOCAL_FORMATS,
    MAP_FORMAT,
)
from pumlrender.diagrams.model import Diagram
from pumlrender.renders.base import page_path
from pumlrender.renders.errors import ConfigurationError, ProcessError
from pumlrender.renders.processes import ProcessHandle, ProcessRunner
from pumlrender.renders.task import RenderTask

logger = logging.getLogger(__name__)


def engine_args(
    settings: Settings, diagram: Diagram, fmt: str, index: int
) -> list[str]:
    """Command line for rendering one page from stdin to stdout."""
    args = [
        settings.java,
        *settings.java_args,
        HEADLESS_FLAG,
        "-jar",
        str(settings.jar),
        "-pipeimageindex",
        str(index),
        "-charset",
        "utf-8",
    ]
    if diagram.location and "://" not in diagram.location:
        args += ["-filedir", str(PurePath(diagram.location).parent)]
    for include in settings.include_paths:
        args.append(f"-I{include}")
    args.append("-pipemap" if fmt == MAP_FORMAT else f"-t{fmt}")
    args.append("-pipe")
    return args


async def _run_page(
    proc: ProcessHandle,
    diagram: Diagram,
    index: int,
    save_path: Path | None,
) -> bytes:
    stdout, stderr = await proc.communicate(diagram.content.encode("utf-8"))
    if proc.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip()
        logger.warning(
            "event=engine_failed pid=%d page=%d code=%s error=%s",
            proc.pid,
            index,
            proc.returncode,
            message[:ERROR_TRUNCATION_CHARS],
        )
        raise ProcessError(
            message or f"PlantUML exited with code {proc.returncode}",
            stdout,
            returncode=proc.returncode,
        )
    if save_path is not None:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        save_path.write_bytes(stdout)
    return stdout


class LocalRender:
    """One ``java -jar plantuml.jar -pipe`` process per page.

    Every process is spawned before the task is returned, so a caller
    that cancels the task can terminate all of them.
    """

    def __init__(self, runner: ProcessRunner) -> None:
        self._runner = runner

    def formats(self) -> tuple[str, ...]:
        return LOCAL_FORMATS

    def limit_concurrency(self) -> bool:
        return True

    async def render(
        self,
        diagram: Diagram,
        fmt: str,
        save_path: Path | None,
        settings: Settings,
    ) -> RenderTask:
        if not settings.jar.is_file():
            return RenderTask.rejected(
                ConfigurationError(
                    f"PlantUML jar not found: {settings.jar}"
                )
            )
        processes: list[ProcessHandle] = []
        try:
            for index in range(diagram.page_count):
                processes.append(
                    await self._runner.spawn(
                        engine_args(settings, diagram, fmt, index)
                    )
                )
        except OSError as exc:
            logger.error(
                "event=engine_spawn_failed java=%s error=%s",
                settings.java,
                exc,
            )
            for proc in processes:
                await self._runner.terminate(proc)
            return RenderTask.rejected(
                ProcessError(f"Cannot start {settings.java}: {exc}")
            )
        pages = [
            _run_page(
                proc,
                diagram,
                index,
                page_path(save_path, index, diagram.page_count),
            )
            for index, proc in enumerate(processes)
        ]
        return RenderTask.gather(pages, processes)

    async def get_map_data(
        self,
        diagram: Diagram,
        save_path: Path | None,
        settings: Settings,
    ) -> RenderTask:
        return await self.render(diagram, MAP_FORMAT, save_path, settings)
