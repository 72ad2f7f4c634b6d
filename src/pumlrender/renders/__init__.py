"""Render strategies, session state and the dispatcher."""

from pumlrender.renders.dispatcher import RenderDispatcher
from pumlrender.renders.errors import (
    ConfigurationError,
    ExportError,
    ProcessError,
    RenderHTTPError,
)
from pumlrender.renders.session import RenderSession
from pumlrender.renders.task import RenderTask

__all__ = [
    "ConfigurationError",
    "ExportError",
    "ProcessError",
    "RenderDispatcher",
    "RenderHTTPError",
    "RenderSession",
    "RenderTask",
]
