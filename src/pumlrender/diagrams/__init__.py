"""Diagram values and source-text resolution."""

from pumlrender.diagrams.model import Diagram
from pumlrender.diagrams.source import diagram_at, diagrams_of

__all__ = [
    "Diagram",
    "diagram_at",
    "diagrams_of",
]
