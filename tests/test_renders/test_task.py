"""Tests for RenderTask."""

from __future__ import annotations

import asyncio

import pytest

from pumlrender.renders.errors import ConfigurationError, ExportError
from pumlrender.renders.task import RenderTask


async def _page(value: bytes, delay: float) -> bytes:
    await asyncio.sleep(delay)
    return value


async def _fail(message: str, delay: float) -> bytes:
    await asyncio.sleep(delay)
    raise ExportError(message)


@pytest.mark.asyncio
async def test_results_keep_page_order() -> None:
    # later pages finish first
    task = RenderTask.gather([
        _page(b"p0", 0.03),
        _page(b"p1", 0.02),
        _page(b"p2", 0.0),
    ])
    assert await task.result() == [b"p0", b"p1", b"p2"]
    assert task.done


@pytest.mark.asyncio
async def test_first_failure_rejects_task() -> None:
    task = RenderTask.gather([
        _page(b"p0", 0.02),
        _fail("page 1 broke", 0.0),
    ])
    with pytest.raises(ExportError, match="page 1 broke"):
        await task.result()


@pytest.mark.asyncio
async def test_rejected_is_already_settled() -> None:
    task = RenderTask.rejected(ConfigurationError("no server"))
    assert task.done
    assert task.processes == ()
    with pytest.raises(ConfigurationError):
        await task.result()


@pytest.mark.asyncio
async def test_cancel_flag_is_sticky() -> None:
    task = RenderTask.gather([_page(b"x", 0)])
    assert task.canceled is False
    task.cancel()
    task.cancel()
    assert task.canceled is True
    await task.result()
    assert task.canceled is True
