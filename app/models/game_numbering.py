"""Game numbering rules for a season's schedule grid.

Every cell of a season is linearized by ``(week, row, col, cell_index)``. Real
games along that order are numbered 1..K; a double header consumes two
consecutive numbers. Placeholders (missing team, "no game" status) get nothing.

Numbers are persisted as strings, so everything that reads them back goes
through :func:`parse_game_number`.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Protocol, Sequence, Set, Tuple

NO_GAME_STATUSES = frozenset({"nogame", "sinjuego", "nohayjuego"})

_NON_ALNUM = re.compile(r"[\W_]+", re.UNICODE)


class NumberedCell(Protocol):
    id: Optional[int]
    week_number: int
    row_index: Optional[int]
    col_index: Optional[int]
    cell_index: int
    local_team: Optional[str]
    visitors_team: Optional[str]
    game_status: Optional[str]
    is_double_game: bool
    game_number: Optional[str]
    game_number2: Optional[str]


class GameNumbers(NamedTuple):
    game_number: Optional[str]
    game_number2: Optional[str]


EMPTY_NUMBERS = GameNumbers(None, None)


def order_key(cell: NumberedCell) -> Tuple[int, int, int, int]:
    """Canonical position of a cell within its season."""
    return (
        cell.week_number or 0,
        cell.row_index or 0,
        cell.col_index or 0,
        cell.cell_index or 0,
    )


def _sort_key(cell: NumberedCell) -> Tuple[int, int, int, int, int]:
    # Natural keys are unique, the id only matters for malformed duplicates.
    return order_key(cell) + (cell.id or 0,)


def sort_cells(cells: Iterable[NumberedCell]) -> List[NumberedCell]:
    return sorted(cells, key=_sort_key)


def normalize_game_status(status: Optional[str]) -> str:
    """Lower-case a status and drop whitespace/punctuation ("No-Game" -> "nogame")."""
    if not status:
        return ""
    return _NON_ALNUM.sub("", status.strip().lower())


def is_no_game_status(status: Optional[str]) -> bool:
    return normalize_game_status(status) in NO_GAME_STATUSES


def counts_as_game(
    local_team: Optional[str], visitors_team: Optional[str], game_status: Optional[str]
) -> bool:
    """A real game has both teams filled in and a status that is not "no game"."""
    if not (local_team or "").strip():
        return False
    if not (visitors_team or "").strip():
        return False
    return not is_no_game_status(game_status)


def is_real_game(cell: NumberedCell) -> bool:
    return counts_as_game(cell.local_team, cell.visitors_team, cell.game_status)


def parse_game_number(value: object) -> Optional[int]:
    """Parse a stored game number; anything but a positive whole number is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer() or value <= 0:
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return parse_game_number(float(text))
        except ValueError:
            return None
    return None


def build_game_number_map(cells: Iterable[NumberedCell]) -> Dict[int, GameNumbers]:
    """Number every real game of a season from scratch.

    Args:
        cells: All cells of one season, in any order. Each must have an id.

    Returns:
        Mapping of cell id to its numbers. Non-games map to ``(None, None)``.
    """
    numbers: Dict[int, GameNumbers] = {}
    counter = 1
    for cell in sort_cells(cells):
        if cell.id is None:
            raise ValueError("Cannot number a cell that has not been persisted")
        if not is_real_game(cell):
            numbers[cell.id] = EMPTY_NUMBERS
            continue
        first = str(counter)
        counter += 1
        second: Optional[str] = None
        if cell.is_double_game:
            second = str(counter)
            counter += 1
        numbers[cell.id] = GameNumbers(first, second)
    return numbers


def numbers_in_use(
    cells: Iterable[NumberedCell], exclude_id: Optional[int] = None
) -> Set[int]:
    """Every parseable number held by the given cells, optionally skipping one."""
    used: Set[int] = set()
    for cell in cells:
        if exclude_id is not None and cell.id == exclude_id:
            continue
        for raw in (cell.game_number, cell.game_number2):
            parsed = parse_game_number(raw)
            if parsed is not None:
                used.add(parsed)
    return used


def season_max_number(cells: Iterable[NumberedCell]) -> int:
    return max(numbers_in_use(cells), default=0)


@dataclass(frozen=True)
class NumberChange:
    cell_id: int
    game_number: Optional[str]
    game_number2: Optional[str]


def diff_number_map(
    cells: Sequence[NumberedCell], numbers: Dict[int, GameNumbers]
) -> List[NumberChange]:
    """Cells whose stored numbers differ from ``numbers``, in canonical order."""
    changes: List[NumberChange] = []
    for cell in sort_cells(cells):
        if cell.id is None:
            continue
        target = numbers.get(cell.id, EMPTY_NUMBERS)
        if (cell.game_number, cell.game_number2) != tuple(target):
            changes.append(NumberChange(cell.id, target.game_number, target.game_number2))
    return changes


def allocate_numbers(
    existing: Optional[NumberedCell],
    *,
    is_double_game: bool,
    is_game: bool,
    season_cells: Sequence[NumberedCell],
) -> GameNumbers:
    """Decide the numbers for a single saved cell without touching other cells.

    Args:
        existing: The stored row for this cell, or None when it is new.
        is_double_game: Double-header flag of the incoming save.
        is_game: Whether the incoming save is a real game.
        season_cells: Current cells of the season (may include ``existing``).

    Returns:
        The numbers to store on the saved cell.
    """
    if not is_game:
        return EMPTY_NUMBERS

    season_max = season_max_number(season_cells)
    current = None if existing is None else parse_game_number(existing.game_number)

    if existing is None or current is None:
        # New cell, or an existing one that never got a number.
        first = season_max + 1
        second = str(first + 1) if is_double_game else None
        return GameNumbers(str(first), second)

    if not is_double_game:
        return GameNumbers(str(current), None)

    current_second = parse_game_number(existing.game_number2)
    if current_second is not None:
        return GameNumbers(str(current), str(current_second))

    candidate = current + 1
    taken = numbers_in_use(season_cells, exclude_id=existing.id)
    if candidate not in taken:
        return GameNumbers(str(current), str(candidate))
    return GameNumbers(str(current), str(season_max + 1))


def preview_numbers(
    season_cells: Sequence[NumberedCell], is_double_game: bool
) -> Dict[str, Optional[int]]:
    """Numbers a brand new cell would get right now; nothing is reserved."""
    season_max = season_max_number(season_cells)
    return {
        "next": season_max + 1,
        "next2": season_max + 2 if is_double_game else None,
    }
