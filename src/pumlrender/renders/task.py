"""RenderTask: cancelable handle over one in-flight render."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field

from pumlrender.renders.processes import ProcessHandle


@dataclass(eq=False)
class RenderTask:
    """One rendering operation, possibly spanning several pages.

    ``processes`` is fixed when the task is dispatched. ``future``
    resolves to one buffer per page in page order, or fails with the
    first page error. Once canceled, the consumer ignores whatever
    the future settles to.
    """

    future: asyncio.Future[list[bytes]]
    processes: tuple[ProcessHandle, ...] = ()
    _canceled: bool = field(default=False, init=False)

    @property
    def canceled(self) -> bool:
        return self._canceled

    def cancel(self) -> None:
        """Flag the task canceled. The flag never resets."""
        self._canceled = True

    @property
    def done(self) -> bool:
        return self.future.done()

    async def result(self) -> list[bytes]:
        return await self.future

    @classmethod
    def rejected(cls, error: BaseException) -> RenderTask:
        """An already-failed task with no processes."""
        fut: asyncio.Future[list[bytes]] = (
            asyncio.get_running_loop().create_future()
        )
        fut.set_exception(error)
        return cls(future=fut)

    @classmethod
    def gather(
        cls,
        pages: Sequence[Awaitable[bytes]],
        processes: Sequence[ProcessHandle] = (),
    ) -> RenderTask:
        """Run per-page work concurrently; results keep page order.

        The first page failure fails the whole task. Other pages keep
        running to completion and their results are dropped.
        """
        return cls(
            future=asyncio.gather(*pages),
            processes=tuple(processes),
        )
