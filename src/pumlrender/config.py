"""Environment-based configuration with per-location overrides."""

from __future__ import annotations

import logging
from pathlib import Path, PurePath
from typing import Any

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings

from pumlrender.constants import (
    DEFAULT_JAVA,
    HTTP_TIMEOUT_SECONDS,
    RenderType,
)

logger = logging.getLogger(__name__)

_RENDER_ALIASES: dict[str, RenderType] = {
    "local": RenderType.LOCAL,
    "plantumlserver": RenderType.PLANTUML_SERVER,
    "localserver": RenderType.LOCAL_SERVER,
}


def _coerce_render(v: Any) -> Any:
    """Accept 'local_server', 'LocalServer', 'localserver', ..."""
    if isinstance(v, str):
        key = v.replace("_", "").replace("-", "").lower()
        if key in _RENDER_ALIASES:
            return _RENDER_ALIASES[key]
    return v


def _normalize_server(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip().rstrip("/")
    return v


class LocationOverride(BaseModel):
    """Partial settings applied to sources under one directory."""

    render: RenderType | None = None
    server: str | None = None
    jar: Path | None = None
    java: str | None = None
    java_args: list[str] | None = None
    include_paths: list[Path] | None = None
    preview_auto_update: bool | None = None
    preview_snap_indicators: bool | None = None

    @field_validator("render", mode="before")
    @classmethod
    def _parse_render(cls, v: Any) -> Any:
        return _coerce_render(v)

    @field_validator("server", mode="before")
    @classmethod
    def _strip_server(cls, v: Any) -> Any:
        return _normalize_server(v)


class Settings(BaseSettings):
    """Reads from .env file and PUMLRENDER_* environment variables."""

    # Rendering
    render: RenderType = RenderType.LOCAL
    server: str = ""
    jar: Path = Path("plantuml.jar")
    java: str = DEFAULT_JAVA
    java_args: list[str] = []
    include_paths: list[Path] = []
    http_timeout_seconds: float = HTTP_TIMEOUT_SECONDS

    # Preview
    preview_auto_update: bool = True
    preview_snap_indicators: bool = False

    # Logging
    log_level: str = "INFO"
    debug_mode: bool = False

    # Directory prefix -> partial settings, longest prefix wins
    location_overrides: dict[str, LocationOverride] = {}

    @field_validator("render", mode="before")
    @classmethod
    def _parse_render(cls, v: Any) -> Any:
        return _coerce_render(v)

    @field_validator("server", mode="before")
    @classmethod
    def _strip_server(cls, v: Any) -> Any:
        return _normalize_server(v)

    def for_location(self, location: str | None) -> Settings:
        """Settings in effect for a source file.

        Applies the override whose directory is the longest prefix of
        *location*. Returns self when nothing matches.
        """
        if not location or not self.location_overrides:
            return self
        target = PurePath(location)
        best: tuple[int, LocationOverride] | None = None
        for prefix, override in self.location_overrides.items():
            base = PurePath(prefix)
            if not target.is_relative_to(base):
                continue
            depth = len(base.parts)
            if best is None or depth > best[0]:
                best = (depth, override)
        if best is None:
            return self
        update = best[1].model_dump(exclude_none=True)
        logger.debug(
            "event=location_override location=%s keys=%s",
            location,
            ",".join(sorted(update)),
        )
        return self.model_copy(update=update)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "PUMLRENDER_",
        "extra": "ignore",
    }
