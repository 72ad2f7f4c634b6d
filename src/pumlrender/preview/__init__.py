"""Preview view state and render-task lifecycle."""

from pumlrender.preview.controller import PreviewController
from pumlrender.preview.state import PreviewState

__all__ = ["PreviewController", "PreviewState"]
