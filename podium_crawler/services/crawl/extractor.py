"""Podium extraction from a single ranking page.

Ranking pages come in a few template variants whose column layout drifts without
notice. Each variant is described by a ColumnLayout: an ordered list of candidate
column indexes per field (negative indexes count from the right). A header-based
detection step picks the layout; per cell, the first candidate that yields a
usable value wins, and two last-resort heuristics apply after that: first
non-empty name-like cell for the name, last non-empty cell for the time.

Nothing in here raises on bad markup: a page without a result table yields None.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from selectolax.parser import HTMLParser, Node

from podium_crawler.models.results import PodiumEntry


logger = logging.getLogger(__name__)

PODIUM_SIZE = 3

HEADER_LABELS = frozenset(
    {"#", "rank", "pos", "place", "name", "athlete", "athletes", "team", "members", "time", "total", "result"}
)

_TIME_RE = re.compile(r"^\d{1,2}:\d{2}(?::\d{2})?(?:\.\d+)?$")
_RANK_RE = re.compile(r"^#?\s*(\d{1,4})\.?$")
_NAME_SPLIT_RE = re.compile(r"\s*(?:\n|/|&|\band\b)\s*", re.IGNORECASE)
_LETTER_RE = re.compile(r"[^\W\d_]")
_WS_RE = re.compile(r"\s+")
_BREAK_RE = re.compile(r"<br\s*/?>|</(?:div|p|li)>", re.IGNORECASE)


@dataclass(frozen=True)
class ColumnLayout:
    rank: Tuple[int, ...]
    name: Tuple[int, ...]
    time: Tuple[int, ...]


# Template variant -> column candidates, in preference order.
TEMPLATE_LAYOUTS: Dict[str, ColumnLayout] = {
    # rank | name | time
    "standard": ColumnLayout(rank=(0,), name=(1, 2), time=(2, -1)),
    # rank | team | members | ... | time
    "team": ColumnLayout(rank=(0,), name=(2, 1), time=(-1, 3)),
    # rank | name | age group | nationality | ... | time
    "extended": ColumnLayout(rank=(0,), name=(1, 2), time=(-1, 3)),
}


def detect_template(headers: Sequence[str], width: int) -> str:
    """Choose a TEMPLATE_LAYOUTS key from header labels and row width."""
    labels = [h.strip().lower() for h in headers]
    joined = " ".join(labels)
    if "member" in joined or "athletes" in joined or "team" in labels[1:2]:
        return "team"
    if width > 3:
        return "extended"
    return "standard"


def normalize_name(raw: str) -> str:
    """Split multi-person cells and rejoin them as 'A & B'."""
    parts = [p.strip(" ,;") for p in _NAME_SPLIT_RE.split(raw or "")]
    parts = [p for p in parts if p]
    return " & ".join(parts)


def _is_time(value: str) -> bool:
    return bool(_TIME_RE.match(value))


def _is_rank(value: str) -> bool:
    return bool(_RANK_RE.match(value))


def _is_name(value: str) -> bool:
    return bool(value) and bool(_LETTER_RE.search(value)) and not _is_time(value)


def _cell_text(cell: Node) -> str:
    # Only <br> and block boundaries separate names; source whitespace does not.
    markup = _WS_RE.sub(" ", cell.html or "")
    markup = _BREAK_RE.sub("\n", markup)
    doc = HTMLParser(markup)
    node = doc.body or doc.root
    text = node.text(deep=True, separator="") if node is not None else ""
    lines = [" ".join(line.split()) for line in text.split("\n")]
    return "\n".join(line for line in lines if line)


def _pick(cells: List[str], indexes: Sequence[int], ok: Callable[[str], bool]) -> Optional[str]:
    for idx in indexes:
        if -len(cells) <= idx < len(cells):
            value = cells[idx]
            if value and ok(value):
                return value
    return None


def _resolve_row(cells: List[str], layout: ColumnLayout, position: int) -> Optional[PodiumEntry]:
    rank = _pick(cells, layout.rank, _is_rank)
    name = _pick(cells, layout.name, _is_name)
    time_value = _pick(cells, layout.time, _is_time)

    if name is None:
        name = next((c for c in cells if _is_name(c) and not _is_rank(c)), None)
    if time_value is None and cells and cells[-1] and cells[-1] != name and not _is_rank(cells[-1]):
        time_value = cells[-1]

    if not name and not time_value:
        return None

    rank_match = _RANK_RE.match(rank) if rank else None
    return PodiumEntry(
        rank=rank_match.group(1) if rank_match else str(position),
        name=normalize_name(name) if name else "",
        time=time_value or "",
    )


def _is_header_row(cells: List[str]) -> bool:
    labels = [c.strip().lower().rstrip(".:") for c in cells]
    if any(_is_time(c) or _is_rank(c) for c in cells):
        return False
    return any(label in HEADER_LABELS for label in labels)


def _own_rows(table: Node) -> List[Node]:
    """Rows of ``table`` itself, excluding rows of tables nested in its cells."""
    rows = []
    for tr in table.css("tr"):
        parent = tr.parent
        while parent is not None and parent.tag != "table":
            parent = parent.parent
        if parent is not None and parent.mem_id == table.mem_id:
            rows.append(tr)
    return rows


def _child_cells(tr: Node, tag: str) -> List[Node]:
    return [c for c in tr.iter() if c.tag == tag]


def _find_result_table(doc: HTMLParser) -> Optional[Tuple[List[str], List[List[str]]]]:
    for table in doc.css("table"):
        headers: List[str] = []
        data_rows: List[List[str]] = []
        for tr in _own_rows(table):
            tds = _child_cells(tr, "td")
            if not tds:
                if not headers:
                    headers = [_cell_text(th) for th in _child_cells(tr, "th")]
                continue
            cells = [_cell_text(c) for c in tds]
            # Header written with <td> instead of <th>.
            if not data_rows and _is_header_row(cells):
                headers = headers or cells
                continue
            data_rows.append(cells)
        if data_rows:
            return headers, data_rows
    return None


def extract_podium(page_content: Optional[str]) -> Optional[List[PodiumEntry]]:
    """Return up to three podium entries, or None when the page has no podium.

    A partial podium (gold and silver only) is returned as-is. If the first data
    row has neither a usable name nor a usable time, the page counts as having no
    podium.
    """
    if not page_content:
        return None
    try:
        found = _find_result_table(HTMLParser(page_content))
    except Exception as exc:  # noqa: BLE001 - parser must degrade, not raise
        logger.warning("Unparseable ranking page: %s", exc)
        return None
    if found is None:
        return None

    headers, rows = found
    podium: List[PodiumEntry] = []
    for position, cells in enumerate(rows[:PODIUM_SIZE], start=1):
        layout = TEMPLATE_LAYOUTS[detect_template(headers, len(cells))]
        entry = _resolve_row(cells, layout, position)
        if entry is None:
            if position == 1:
                return None
            continue
        podium.append(entry)
    return podium or None
