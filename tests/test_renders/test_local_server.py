"""Tests for the spawned server lifecycle and its renderer."""

from __future__ import annotations

import asyncio
import logging

import pytest

from pumlrender.constants import RenderType
from pumlrender.renders.errors import ConfigurationError, ProcessError
from pumlrender.renders.local_server import (
    LocalServerManager,
    LocalServerRender,
    server_args,
    server_port,
)
from pumlrender.renders.session import RenderSession
from tests.fakes import (
    FakeRunner,
    Plan,
    RecordingTransport,
    SettingsFactory,
    make_diagram,
    svg_response,
)


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class TestArgs:
    def test_port_from_server_url(self) -> None:
        assert server_port("http://localhost:8765/plantuml") == "8765"
        assert server_port("http://localhost") == ""
        assert server_port("not a url:99999") == ""

    def test_picoweb_command(self, settings_factory: SettingsFactory) -> None:
        settings = settings_factory(server="http://127.0.0.1:9999")
        args = server_args(settings)
        assert args[0] == "java"
        assert args[-3:] == ["-jar", str(settings.jar), "-picoweb:9999"]

    def test_picoweb_without_port(
        self, settings_factory: SettingsFactory
    ) -> None:
        args = server_args(settings_factory(server="http://localhost"))
        assert args[-1] == "-picoweb"


class TestEnsureStarted:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_process(
        self, settings_factory: SettingsFactory
    ) -> None:
        runner = FakeRunner()
        manager = LocalServerManager(runner)
        settings = settings_factory(render=RenderType.LOCAL_SERVER)
        first = asyncio.ensure_future(
            manager.ensure_started(make_diagram(), settings)
        )
        second = asyncio.ensure_future(
            manager.ensure_started(make_diagram(), settings)
        )
        await _settle()
        assert len(runner.spawned) == 1
        assert not first.done() and not second.done()

        runner.spawned[0].emit(b"webserver started\n")
        await asyncio.wait_for(asyncio.gather(first, second), 1)
        assert manager.process is runner.spawned[0]

    @pytest.mark.asyncio
    async def test_stderr_output_also_counts_as_ready(
        self, settings_factory: SettingsFactory
    ) -> None:
        runner = FakeRunner()
        manager = LocalServerManager(runner)
        pending = asyncio.ensure_future(
            manager.ensure_started(make_diagram(), settings_factory())
        )
        await _settle()
        runner.spawned[0].emit(b"WARNING: whatever", stream="stderr")
        await asyncio.wait_for(pending, 1)

    @pytest.mark.asyncio
    async def test_running_server_reused_regardless_of_settings(
        self, settings_factory: SettingsFactory
    ) -> None:
        runner = FakeRunner()
        manager = LocalServerManager(runner)
        pending = asyncio.ensure_future(
            manager.ensure_started(make_diagram(), settings_factory())
        )
        await _settle()
        runner.spawned[0].emit(b"up")
        await pending

        other = settings_factory(server="http://localhost:1234")
        await asyncio.wait_for(
            manager.ensure_started(make_diagram(location="/x.puml"), other),
            1,
        )
        assert len(runner.spawned) == 1

    @pytest.mark.asyncio
    async def test_exit_clears_handle_and_next_call_respawns(
        self, settings_factory: SettingsFactory
    ) -> None:
        runner = FakeRunner()
        manager = LocalServerManager(runner)
        settings = settings_factory()
        pending = asyncio.ensure_future(
            manager.ensure_started(make_diagram(), settings)
        )
        await _settle()
        dead = runner.spawned[0]
        dead.emit(b"up")
        await pending

        dead.exit(1)
        await _settle()
        assert manager.process is None

        again = asyncio.ensure_future(
            manager.ensure_started(make_diagram(), settings)
        )
        await _settle()
        assert len(runner.spawned) == 2
        runner.spawned[1].emit(b"up")
        await asyncio.wait_for(again, 1)
        assert manager.process is runner.spawned[1]

    @pytest.mark.asyncio
    async def test_exit_before_ready_fails_waiters(
        self, settings_factory: SettingsFactory
    ) -> None:
        runner = FakeRunner()
        manager = LocalServerManager(runner)
        pending = asyncio.ensure_future(
            manager.ensure_started(make_diagram(), settings_factory())
        )
        await _settle()
        runner.spawned[0].exit(1)
        with pytest.raises(ProcessError, match="before it was ready"):
            await asyncio.wait_for(pending, 1)
        assert manager.process is None

    @pytest.mark.asyncio
    async def test_canceled_first_caller_does_not_strand_startup(
        self, settings_factory: SettingsFactory
    ) -> None:
        runner = FakeRunner()
        manager = LocalServerManager(runner)
        settings = settings_factory()
        first = asyncio.ensure_future(
            manager.ensure_started(make_diagram(), settings)
        )
        await asyncio.sleep(0)
        first.cancel()
        await _settle()
        assert first.cancelled()

        second = asyncio.ensure_future(
            manager.ensure_started(make_diagram(), settings)
        )
        await _settle()
        assert len(runner.spawned) == 1
        runner.spawned[0].emit(b"up")
        await asyncio.wait_for(second, 1)
        assert manager.process is runner.spawned[0]
        await manager.shutdown()
        assert runner.spawned[0].returncode is not None

    @pytest.mark.asyncio
    async def test_spawn_failure_rejects_and_allows_retry(
        self,
        settings_factory: SettingsFactory,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        runner = FakeRunner()
        runner.fail_spawn = FileNotFoundError("java")
        manager = LocalServerManager(runner)
        with caplog.at_level(logging.ERROR):
            with pytest.raises(ProcessError, match="Cannot start"):
                await manager.ensure_started(
                    make_diagram(), settings_factory()
                )
        assert "event=server_spawn_failed" in caplog.text

        runner.fail_spawn = None
        pending = asyncio.ensure_future(
            manager.ensure_started(make_diagram(), settings_factory())
        )
        await _settle()
        assert len(runner.spawned) == 1
        runner.spawned[0].emit(b"up")
        await asyncio.wait_for(pending, 1)


class TestLocalServerRender:
    @pytest.mark.asyncio
    async def test_no_server_fails_fast(
        self, settings_factory: SettingsFactory
    ) -> None:
        runner = FakeRunner()
        transport = RecordingTransport(svg_response)
        async with RenderSession(
            runner=runner, client=transport.client()
        ) as session:
            task = await LocalServerRender(session).render(
                make_diagram(),
                "svg",
                None,
                settings_factory(render=RenderType.LOCAL_SERVER, server=""),
            )
            assert task.done and task.processes == ()
            with pytest.raises(ConfigurationError):
                await task.result()
        assert runner.spawned == []
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_pages_wait_for_server_then_render(
        self, settings_factory: SettingsFactory
    ) -> None:
        runner = FakeRunner(Plan())
        transport = RecordingTransport(svg_response)
        async with RenderSession(
            runner=runner, client=transport.client()
        ) as session:
            task = await LocalServerRender(session).render(
                make_diagram(pages=3),
                "svg",
                None,
                settings_factory(render=RenderType.LOCAL_SERVER),
            )
            await _settle()
            assert len(runner.spawned) == 1
            assert transport.requests == []
            assert task.processes == ()

            runner.spawned[0].emit(b"ready")
            pages = await asyncio.wait_for(task.result(), 1)
        assert pages == [b"<svg>0</svg>", b"<svg>1</svg>", b"<svg>2</svg>"]
        assert transport.methods() == ["POST", "POST", "POST"]
