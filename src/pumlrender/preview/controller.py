"""Preview controller. Owns at most one render task per view.

A new update cancels the current task and waits until every process it
spawned has exited before dispatching the next one. Results of a
canceled task are dropped without touching the view.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Callable
from typing import TypeAlias

from pumlrender.constants import DEBOUNCE_SECONDS, PreviewStatus
from pumlrender.diagrams.model import Diagram
from pumlrender.preview.state import (
    DiagramSource,
    PresentationSink,
    PreviewState,
)
from pumlrender.renders.dispatcher import RenderDispatcher
from pumlrender.renders.errors import classify_error, parse_error
from pumlrender.renders.task import RenderTask

logger = logging.getLogger(__name__)

NO_DIAGRAM_MESSAGE = "No valid diagram found here!"
PREVIEW_FORMAT = "svg"

Reporter: TypeAlias = Callable[[BaseException], None]


def _log_reporter(exc: BaseException) -> None:
    logger.error("event=preview_error error=%s", exc, exc_info=exc)


class PreviewController:
    def __init__(
        self,
        source: DiagramSource,
        sink: PresentationSink,
        dispatcher: RenderDispatcher,
        *,
        reporter: Reporter | None = None,
        debounce_seconds: float = DEBOUNCE_SECONDS,
    ) -> None:
        self._source = source
        self._sink = sink
        self._dispatcher = dispatcher
        self._reporter = reporter or _log_reporter
        self._debounce_seconds = debounce_seconds
        self._debounce: asyncio.TimerHandle | None = None
        self._dispatch_lock = asyncio.Lock()
        self._updates: set[asyncio.Task[None]] = set()
        self._closed = False

        self.status = PreviewStatus.DEFAULT
        self.task: RenderTask | None = None
        self.killing = False
        self.rendered: Diagram | None = None
        self.images: list[str] = []
        self.image_data = ""
        self.image_error = ""
        self.error = ""
        self.page_status = ""
        self.zoom_upper_limit = False

    # ── View state ──────────────────────────────────────────

    def reset(self) -> None:
        self.rendered = None
        self.page_status = ""
        self.images = []
        self.image_error = ""
        self.error = ""

    def set_ui_status(self, status: str) -> None:
        """View callback hook: remember zoom and scroll state.

        The value is echoed back as ``page_status`` in every snapshot.
        """
        self.page_status = status

    @property
    def target_changed(self) -> bool:
        """True when the current diagram differs from the last rendered.

        Reading this records the current diagram as rendered and clears
        the previous image and error on a change.
        """
        current = self._source.current_diagram()
        if current is None:
            return False
        changed = not current.is_equal(self.rendered)
        if changed:
            self.rendered = current
            self.error = ""
            self.images = []
            self.image_error = ""
            self.page_status = ""
        return changed

    def snapshot(self) -> PreviewState:
        location = self.rendered.location if self.rendered else None
        cfg = self._dispatcher.settings.for_location(location)
        processing = self.status is PreviewStatus.PROCESSING
        error = "" if processing else self.error.replace("\n", "<br />")
        return PreviewState(
            status=self.status,
            image_data=self.image_data,
            images=tuple(self.images),
            image_error="" if processing else self.image_error,
            error=error,
            page_status=self.page_status,
            settings={
                "zoom_upper_limit": self.zoom_upper_limit,
                "show_spinner": processing,
                "show_snap_indicators": cfg.preview_snap_indicators,
            },
        )

    def refresh(self) -> None:
        """Push the current state to the view; never raises."""
        try:
            self._sink.show(self.snapshot())
        except Exception as exc:
            logger.exception("event=preview_refresh_failed")
            self._reporter(exc)

    def processing(self) -> None:
        """Show the busy indicator."""
        self.status = PreviewStatus.PROCESSING
        self.refresh()

    # ── Task lifecycle ──────────────────────────────────────

    async def open(self) -> None:
        """Preview command: start fresh on the diagram under the cursor."""
        self._closed = False
        self.reset()
        _ = self.target_changed
        await self.update(True)

    async def update(self, processing_tip: bool) -> None:
        """Re-render the current diagram.

        Dropped while a previous task is still being killed. Returns
        once the old task is gone; the new render continues in the
        background and reports failures through the reporter.
        """
        if self._closed:
            return
        if self.killing:
            logger.debug("event=update_dropped reason=killing")
            return
        await self.kill_tasks()
        pending = asyncio.ensure_future(self.do_update(processing_tip))
        self._updates.add(pending)
        pending.add_done_callback(self._on_update_done)

    def _on_update_done(self, pending: asyncio.Task[None]) -> None:
        self._updates.discard(pending)
        if pending.cancelled():
            return
        exc = pending.exception()
        if exc is not None:
            self._reporter(exc)

    async def kill_tasks(self) -> None:
        """Cancel the current task and reap every process it spawned."""
        task = self.task
        if task is None:
            return
        task.cancel()
        if task.processes:
            self.killing = True
            runner = self._dispatcher.session.runner
            try:
                await asyncio.gather(
                    *(runner.terminate(p) for p in task.processes)
                )
            finally:
                self.killing = False
            logger.debug(
                "event=task_killed processes=%d", len(task.processes)
            )
        if self.task is task:
            self.task = None

    async def do_update(self, processing_tip: bool) -> None:
        async with self._dispatch_lock:
            # a task dispatched after update() began must go first
            await self.kill_tasks()
            if self._closed:
                return
            diagram = self._source.current_diagram()
            if diagram is None:
                self.status = PreviewStatus.ERROR
                self.error = NO_DIAGRAM_MESSAGE
                self.images = []
                self.refresh()
                return
            task = await self._dispatcher.export_to_buffer(
                diagram, PREVIEW_FORMAT
            )
            self.task = task

        if processing_tip:
            self.processing()
        try:
            pages = await task.result()
        except Exception as exc:
            if task.canceled:
                return
            self._show_failure(task, exc)
            return
        if task.canceled:
            return
        self._show_pages(task, pages)

    def _show_pages(self, task: RenderTask, pages: list[bytes]) -> None:
        if self.task is task:
            self.task = None
        self.status = PreviewStatus.DEFAULT
        self.error = ""
        self.image_error = ""
        self.images = [p.decode("utf-8", errors="replace") for p in pages]
        self.image_data = self.images[-1] if self.images else ""
        self.refresh()

    def _show_failure(self, task: RenderTask, exc: Exception) -> None:
        if self.task is task:
            self.task = None
        self.status = PreviewStatus.ERROR
        err = parse_error(exc)[0]
        logger.info(
            "event=preview_render_failed error_class=%s error=%s",
            classify_error(exc).value,
            err.message,
        )
        self.error = err.message
        b64 = base64.b64encode(err.output).decode("ascii")
        if not (b64 or err.message):
            return
        self.image_error = (
            f"data:image/svg+xml;base64,{b64}" if b64 else ""
        )
        self.refresh()

    # ── Editor events ───────────────────────────────────────

    def on_document_changed(self) -> None:
        """Debounced auto-update after an edit."""
        self._schedule(require_target_change=False)

    def on_selection_changed(self) -> None:
        """Debounced auto-update when the cursor moves to another diagram."""
        self._schedule(require_target_change=True)

    def _auto_update_enabled(self) -> bool:
        current = self._source.current_diagram()
        location = current.location if current else None
        return self._dispatcher.settings.for_location(
            location
        ).preview_auto_update

    def _schedule(self, *, require_target_change: bool) -> None:
        if not self._auto_update_enabled():
            return
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = asyncio.get_running_loop().call_later(
            self._debounce_seconds,
            self._fire,
            require_target_change,
        )

    def _fire(self, require_target_change: bool) -> None:
        self._debounce = None
        if require_target_change:
            if not self.target_changed:
                return
        elif self._source.current_diagram() is None:
            return
        pending = asyncio.ensure_future(self.update(True))
        self._updates.add(pending)
        pending.add_done_callback(self._on_update_done)

    async def wait_idle(self) -> None:
        """Wait until no update is in flight."""
        while self._updates:
            await asyncio.gather(*self._updates, return_exceptions=True)

    async def close(self) -> None:
        """View closed: stop auto-updates and kill the current task."""
        self._closed = True
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        # waits out a dispatch that is spawning right now
        async with self._dispatch_lock:
            await self.kill_tasks()
