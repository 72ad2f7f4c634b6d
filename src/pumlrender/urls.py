"""URL and output-path helpers."""

from __future__ import annotations

import base64
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pumlrender.constants import RenderType
from pumlrender.diagrams.model import Diagram

if TYPE_CHECKING:
    from pumlrender.config import Settings
    from pumlrender.renders.session import RenderSession


_B64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_PUML = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_"
_TO_PUML = str.maketrans(_B64, _PUML)


def encode_plantuml(text: str) -> str:
    """Raw deflate + PlantUML's URL-safe base64 alphabet, unpadded."""
    # strip the 2-byte zlib header and 4-byte adler32 trailer
    deflated = zlib.compress(text.encode("utf-8"), level=9)[2:-4]
    return (
        base64.b64encode(deflated)
        .decode("ascii")
        .translate(_TO_PUML)
        .rstrip("=")
    )


def make_plantuml_url(
    server: str, diagram: Diagram, fmt: str, index: int
) -> str:
    return (
        f"{server.rstrip('/')}/{fmt}/{index}/"
        f"{encode_plantuml(diagram.content)}"
    )


def add_file_index(path: str | Path, index: int, count: int) -> Path:
    """``out/a.svg`` → ``out/a-page2.svg`` for page 1 of a multi-page run."""
    p = Path(path)
    if count <= 1:
        return p
    return p.with_name(f"{p.stem}-page{index + 1}{p.suffix}")


@dataclass(frozen=True)
class DiagramURL:
    name: str
    urls: list[str]


def make_diagram_urls(
    diagrams: list[Diagram],
    fmt: str,
    settings: Settings,
    session: RenderSession,
    *,
    warm: bool = True,
) -> list[DiagramURL]:
    """Server URLs for every page of every diagram.

    For the spawned-server strategy with *warm* set, this also starts
    the server in *session* without waiting for it, so the links work
    while the session stays open. The server stops when it closes.
    """
    results: list[DiagramURL] = []
    for diagram in diagrams:
        cfg = settings.for_location(diagram.location)
        if warm and cfg.render is RenderType.LOCAL_SERVER and cfg.server:
            session.warm_server(diagram, cfg)
        results.append(
            DiagramURL(
                name=diagram.name,
                urls=[
                    make_plantuml_url(cfg.server, diagram, fmt, i)
                    for i in range(diagram.page_count)
                ],
            )
        )
    return results
