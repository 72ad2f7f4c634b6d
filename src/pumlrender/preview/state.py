"""What a preview view shows, and the collaborators it talks to."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from pumlrender.constants import PreviewStatus
from pumlrender.diagrams.model import Diagram


@dataclass(frozen=True)
class PreviewState:
    """Snapshot handed to the presentation sink on every refresh."""

    status: PreviewStatus
    image_data: str = ""  # SVG text of the last page
    images: tuple[str, ...] = ()
    image_error: str = ""  # data: URI of the engine's error image
    error: str = ""  # HTML-ready, newlines as <br />
    page_status: str = ""
    settings: dict[str, Any] = field(default_factory=dict)

    @property
    def has_error(self) -> bool:
        return bool(self.error)


class DiagramSource(Protocol):
    """Whatever knows which diagram the user is looking at."""

    def current_diagram(self) -> Diagram | None: ...


class PresentationSink(Protocol):
    def show(self, state: PreviewState) -> None: ...
