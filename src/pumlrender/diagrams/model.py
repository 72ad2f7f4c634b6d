"""Immutable diagram value rendered by every strategy."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, eq=False)
class Diagram:
    """One renderable @start/@end block.

    Identity for change detection is (location, content, index):
    two diagrams with the same text in the same file and the same
    selected page render identically, wherever the block sits.
    """

    location: str  # owning source file path or URI
    name: str
    content: str
    page_count: int = 1
    index: int = 0  # selected page
    start_line: int = 0

    def __post_init__(self) -> None:
        if self.page_count < 1:
            raise ValueError(
                f"page_count must be >= 1, got {self.page_count}"
            )
        if not 0 <= self.index < self.page_count:
            raise ValueError(
                f"index {self.index} outside 0..{self.page_count - 1}"
            )

    @property
    def identity(self) -> tuple[str, str, int]:
        return (self.location, self.content, self.index)

    def is_equal(self, other: Diagram | None) -> bool:
        """True when *other* renders to the same output."""
        return other is not None and self.identity == other.identity

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Diagram):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)
