"""Shared test fixtures: fake processes, mock HTTP and fresh sessions."""

from __future__ import annotations

import os

# Keep a developer's environment from leaking into Settings().
for _key in list(os.environ):
    if _key.startswith("PUMLRENDER_"):
        del os.environ[_key]

from collections.abc import AsyncIterator  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from pumlrender.config import Settings  # noqa: E402
from pumlrender.constants import RenderType  # noqa: E402
from pumlrender.renders.session import RenderSession  # noqa: E402
from tests.fakes import (  # noqa: E402
    SERVER,
    FakeRunner,
    RecordingTransport,
    SettingsFactory,
    svg_response,
)


@pytest.fixture
def jar(tmp_path: Path) -> Path:
    path = tmp_path / "plantuml.jar"
    path.write_bytes(b"PK")
    return path


@pytest.fixture
def settings_factory(jar: Path) -> SettingsFactory:
    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "render": RenderType.LOCAL,
            "server": SERVER,
            "jar": jar,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)  # type: ignore[call-arg]

    return _make


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport(svg_response)


@pytest_asyncio.fixture
async def session(
    runner: FakeRunner, transport: RecordingTransport
) -> AsyncIterator[RenderSession]:
    async with RenderSession(
        runner=runner, client=transport.client()
    ) as s:
        yield s
