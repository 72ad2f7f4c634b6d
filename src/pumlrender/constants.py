"""Cross-module constants: render strategies, formats, timings.

StrEnum members are str-compatible, so settings files, CLI arguments
and log lines work with the raw values unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ── String Enums ─────────────────────────────────────────


class RenderType(StrEnum):
    """Where diagrams get rendered."""

    LOCAL = "local"  # one engine process per page
    PLANTUML_SERVER = "plantuml_server"  # user-provided remote server
    LOCAL_SERVER = "local_server"  # picoweb server spawned by us


class HttpMethod(StrEnum):
    """Request styles a rendering server may accept.

    POST carries the diagram text in the body and is preferred;
    GET carries it encoded in the URL path.
    """

    POST = "POST"
    GET = "GET"


class PreviewStatus(StrEnum):
    """Display state of a preview view."""

    DEFAULT = "default"
    ERROR = "error"
    PROCESSING = "processing"


# ── Engine ───────────────────────────────────────────────

LOCAL_FORMATS: tuple[str, ...] = (
    "png",
    "svg",
    "eps",
    "pdf",
    "vdx",
    "xmi",
    "scxml",
    "html",
    "txt",
    "utxt",
    "latex",
    "latex:nopreamble",
)
SERVER_FORMATS: tuple[str, ...] = ("png", "svg", "txt")
MAP_FORMAT = "map"  # client-side image map, not an image

DEFAULT_JAVA = "java"
HEADLESS_FLAG = "-Djava.awt.headless=true"

# PlantUML servers report syntax errors in this header
DIAGRAM_ERROR_HEADER = "X-PlantUML-Diagram-Error"

# ── Timing ───────────────────────────────────────────────

HTTP_TIMEOUT_SECONDS = 30.0
DEBOUNCE_SECONDS = 0.4

ERROR_TRUNCATION_CHARS = 500
