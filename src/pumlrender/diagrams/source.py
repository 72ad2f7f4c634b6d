"""Locate diagram blocks in source text.

A block runs from an ``@startXXX`` line to the matching ``@endXXX``
line. ``newpage`` lines split a block into pages. Text with no block
at all is treated as a single implicit ``@startuml`` diagram.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath

from pumlrender.diagrams.model import Diagram

_START_RE = re.compile(r"^\s*@start(\w+)\b(.*)$")
_NEWPAGE_RE = re.compile(r"^\s*newpage\b")
_NAME_RE = re.compile(r"^\s*(?:\(id=)?([^\s()]+)")


@dataclass(frozen=True)
class _Block:
    start: int
    end: int
    kind: str
    title: str


def _find_blocks(lines: list[str]) -> list[_Block]:
    blocks: list[_Block] = []
    i = 0
    while i < len(lines):
        m = _START_RE.match(lines[i])
        if not m:
            i += 1
            continue
        kind = m.group(1)
        end_re = re.compile(rf"^\s*@end{re.escape(kind)}\b")
        j = i + 1
        while j < len(lines) and not end_re.match(lines[j]):
            j += 1
        if j == len(lines):
            # unterminated block: PlantUML ignores it
            break
        name_match = _NAME_RE.match(m.group(2))
        blocks.append(
            _Block(
                start=i,
                end=j,
                kind=kind,
                title=name_match.group(1) if name_match else "",
            )
        )
        i = j + 1
    return blocks


def _page_lines(lines: list[str], block: _Block) -> list[int]:
    return [
        n
        for n in range(block.start + 1, block.end)
        if _NEWPAGE_RE.match(lines[n])
    ]


def _to_diagram(
    lines: list[str],
    block: _Block,
    location: str,
    ordinal: int,
    cursor: int | None = None,
) -> Diagram:
    breaks = _page_lines(lines, block)
    index = 0
    if cursor is not None:
        index = sum(1 for n in breaks if n < cursor)
    stem = PurePath(location).stem if location else "untitled"
    name = block.title or (stem if ordinal == 0 else f"{stem}-{ordinal}")
    return Diagram(
        location=location,
        name=name,
        content="\n".join(lines[block.start : block.end + 1]),
        page_count=len(breaks) + 1,
        index=index,
        start_line=block.start,
    )


def _implicit(
    text: str, location: str, cursor: int | None = None
) -> Diagram | None:
    source = text.splitlines()
    if not text.strip() or any(_START_RE.match(s) for s in source):
        return None
    lines = ["@startuml", *source, "@enduml"]
    block = _Block(start=0, end=len(lines) - 1, kind="uml", title="")
    return _to_diagram(lines, block, location, 0, cursor=cursor)


def diagrams_of(text: str, location: str) -> list[Diagram]:
    """All diagrams defined in *text*, in source order."""
    lines = text.splitlines()
    blocks = _find_blocks(lines)
    if not blocks:
        implicit = _implicit(text, location)
        return [implicit] if implicit else []
    return [
        _to_diagram(lines, block, location, n)
        for n, block in enumerate(blocks)
    ]


def diagram_at(text: str, location: str, line: int) -> Diagram | None:
    """The diagram enclosing 0-based *line*, page selected by cursor.

    Returns None when the line is outside every block.
    """
    lines = text.splitlines()
    blocks = _find_blocks(lines)
    if not blocks:
        # shifted by the injected @startuml line
        return _implicit(text, location, cursor=line + 1)
    for n, block in enumerate(blocks):
        if block.start <= line <= block.end:
            return _to_diagram(lines, block, location, n, cursor=line)
    return None
