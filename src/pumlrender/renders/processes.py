"""Process spawning capability.

Renderers never call asyncio.create_subprocess_exec directly; they go
through a ProcessRunner so tests can substitute a fake that records
spawn/terminate ordering without touching real processes.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from typing import Protocol

logger = logging.getLogger(__name__)

# java exits cleanly on SIGINT; Windows only delivers SIGTERM
KILL_SIGNAL = signal.SIGTERM if sys.platform == "win32" else signal.SIGINT


class ProcessHandle(Protocol):
    """The subset of asyncio.subprocess.Process renderers rely on."""

    @property
    def pid(self) -> int: ...
    @property
    def returncode(self) -> int | None: ...
    @property
    def stdin(self) -> asyncio.StreamWriter | None: ...
    @property
    def stdout(self) -> asyncio.StreamReader | None: ...
    @property
    def stderr(self) -> asyncio.StreamReader | None: ...
    def send_signal(self, sig: int) -> None: ...
    async def wait(self) -> int: ...
    async def communicate(
        self, input: bytes | None = None
    ) -> tuple[bytes, bytes]: ...


class ProcessRunner(Protocol):
    async def spawn(self, args: Sequence[str]) -> ProcessHandle: ...
    async def terminate(self, handle: ProcessHandle) -> None: ...


class AsyncioProcessRunner:
    """ProcessRunner backed by asyncio subprocesses with piped stdio."""

    async def spawn(self, args: Sequence[str]) -> ProcessHandle:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        logger.debug(
            "event=process_spawned pid=%d cmd=%s", proc.pid, args[0]
        )
        return proc

    async def terminate(self, handle: ProcessHandle) -> None:
        """Signal the process and wait until it has exited."""
        if handle.returncode is None:
            try:
                handle.send_signal(KILL_SIGNAL)
            except ProcessLookupError:
                pass  # exited between the check and the signal
        code = await handle.wait()
        logger.debug(
            "event=process_reaped pid=%d code=%s", handle.pid, code
        )
