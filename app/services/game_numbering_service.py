"""Game numbering service.

Handles saving schedule cells and keeping their game numbers unique and dense
across a season. Routes and the CLI are thin wrappers around these functions.

Every save runs inside the season lock: the incremental allocator picks the
saved cell's numbers from the current season state, then the whole season is
renumbered in the same transaction so the stored sequence is always 1..K in
canonical order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from app.models.fields import DEFAULT_GAME_STATUS, UmpirePosition
from app.models.game_numbering import (
    GameNumbers,
    allocate_numbers,
    build_game_number_map,
    counts_as_game,
    diff_number_map,
    preview_numbers,
)
from app.models.umpire_slots import has_umpire, normalize_umpires_payload
from app.schemas.assignments import Assignment
from app.services.errors import NotFoundError, ValidationError
from app.services.schedule_store import CellFilters, CellKey, ScheduleStore

logger = logging.getLogger(__name__)


@dataclass
class CellData:
    """Editable content of a schedule cell as sent by the grid editor.

    Game numbers are not part of it: they are always decided server side.
    """

    row_index: int | None = 0
    col_index: int | None = 0
    league: str | None = None
    day_name: str | None = ""
    date_str: str | None = ""
    stadium_city: str | None = ""
    stadium_name: str | None = ""
    local_team: str | None = ""
    visitors_team: str | None = ""
    game_time: str | None = None
    game_time2: str | None = None
    game_status: str | None = DEFAULT_GAME_STATUS
    is_double_game: bool = False
    is_final_game: bool = False
    umpires: Any = field(default=None)
    cell_id: int | None = None


def _require_int(value: Any, name: str, *, minimum: int) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer.")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError(f"{name} must be an integer.") from None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(f"{name} is required and must be an integer.")
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}.")
    return value


def validate_season_id(season_id: Any) -> int:
    return _require_int(season_id, "seasonId", minimum=1)


def validate_cell_key(season_id: Any, week_number: Any, cell_index: Any) -> CellKey:
    """Validate the natural key of a cell.

    Raises:
        ValidationError: any part is missing, non-integral or out of range.
    """
    return CellKey(
        season_id=_require_int(season_id, "seasonId", minimum=1),
        week_number=_require_int(week_number, "weekNumber", minimum=1),
        cell_index=_require_int(cell_index, "cellIndex", minimum=0),
    )


def build_cell_values(data: CellData) -> Dict[str, Any]:
    """Column values for a save, with defaults applied and umpires normalized."""
    return {
        "row_index": data.row_index or 0,
        "col_index": data.col_index or 0,
        "league": data.league or None,
        "day_name": data.day_name or "",
        "date_str": data.date_str or "",
        "stadium_city": data.stadium_city or "",
        "stadium_name": data.stadium_name or "",
        "local_team": data.local_team or "",
        "visitors_team": data.visitors_team or "",
        "game_time": data.game_time or None,
        "game_time2": data.game_time2 or None,
        "game_status": data.game_status or DEFAULT_GAME_STATUS,
        "is_double_game": bool(data.is_double_game),
        "is_final_game": bool(data.is_final_game),
        "umpires": normalize_umpires_payload(data.umpires),
    }


async def _require_season(store: ScheduleStore, season_id: int) -> None:
    if await store.get_season(season_id) is None:
        raise NotFoundError(f"Season {season_id} not found.")


async def renumber_locked(store: ScheduleStore, season_id: int) -> int:
    """Rebuild and persist a season's numbers. Caller must hold the season lock.

    Returns:
        Number of cells whose stored numbers changed.
    """
    cells = await store.find_cells_by_season(season_id)
    changes = diff_number_map(cells, build_game_number_map(cells))
    await store.batch_update_numbers(changes)
    return len(changes)


async def recompute_season(store: ScheduleStore, season_id: int) -> int:
    """Renumber every cell of a season from scratch.

    Args:
        store: Schedule store
        season_id: Season to renumber

    Returns:
        Number of cells rewritten (0 when the season was already consistent)

    Raises:
        ValidationError: malformed season id
        NotFoundError: no such season
    """
    season_id = validate_season_id(season_id)

    async def _recompute(tx: ScheduleStore) -> int:
        await _require_season(tx, season_id)
        return await renumber_locked(tx, season_id)

    changed = await store.with_season_lock(season_id, _recompute)
    logger.info(f"Recomputed season {season_id}: {changed} cell(s) renumbered")
    return changed


async def _resolve_existing(
    store: ScheduleStore, key: CellKey, cell_id: Optional[int]
) -> Assignment | None:
    if cell_id is not None:
        existing = await store.find_cell_by_id(cell_id)
        if existing is None or existing.season_id != key.season_id:
            raise NotFoundError(f"Assignment {cell_id} not found.")
        return existing
    return await store.find_cell_by_natural_key(
        key.season_id, key.week_number, key.cell_index
    )


async def _save_locked(
    store: ScheduleStore,
    key: CellKey,
    data: CellData,
    values: Dict[str, Any],
    *,
    renumber: bool,
) -> Assignment:
    await _require_season(store, key.season_id)

    existing = await _resolve_existing(store, key, data.cell_id)
    season_cells = await store.find_cells_by_season(key.season_id)
    numbers: GameNumbers = allocate_numbers(
        existing,
        is_double_game=values["is_double_game"],
        is_game=counts_as_game(
            values["local_team"], values["visitors_team"], values["game_status"]
        ),
        season_cells=season_cells,
    )
    values = {
        **values,
        "game_number": numbers.game_number,
        "game_number2": numbers.game_number2,
    }

    if existing is not None and data.cell_id is not None:
        # Addressed by id: may move the cell to another week/slot
        saved = await store.update_cell_by_id(
            data.cell_id,
            {**values, "week_number": key.week_number, "cell_index": key.cell_index},
        )
    else:
        saved = await store.upsert_cell(key, values)

    await store.grow_total_weeks(key.season_id, key.week_number)

    if renumber:
        await renumber_locked(store, key.season_id)
    return saved


async def upsert_and_renumber(
    store: ScheduleStore,
    season_id: Any,
    week_number: Any,
    cell_index: Any,
    cell_data: CellData,
    *,
    renumber: bool = True,
) -> Assignment:
    """Create or replace a cell and reconcile the season's numbering.

    Args:
        store: Schedule store
        season_id: Season of the cell
        week_number: Week of the cell (>= 1)
        cell_index: Slot within the week's grid (>= 0)
        cell_data: Editable cell content
        renumber: When False only the incremental allocation runs and no
            other cell is touched

    Returns:
        The saved cell carrying its final numbers

    Raises:
        ValidationError: malformed natural key
        NotFoundError: unknown season, or unknown ``cell_data.cell_id``
        ConflictError: a cell moved by id onto an occupied natural key
    """
    key = validate_cell_key(season_id, week_number, cell_index)
    values = build_cell_values(cell_data)

    if not has_umpire(values["umpires"], UmpirePosition.right_field_line):
        logger.debug(
            f"Saving season={key.season_id} week={key.week_number} "
            f"cell={key.cell_index} with empty LR slot"
        )

    saved = await store.with_season_lock(
        key.season_id,
        lambda tx: _save_locked(tx, key, cell_data, values, renumber=renumber),
    )
    logger.info(
        f"Saved season={key.season_id} week={key.week_number} cell={key.cell_index} "
        f"game_number={saved.game_number} game_number2={saved.game_number2}"
    )
    return saved


async def save_cell(
    store: ScheduleStore,
    season_id: Any,
    week_number: Any,
    cell_index: Any,
    cell_data: CellData,
) -> Assignment:
    """Save one cell with incremental numbering only (no season reflow)."""
    return await upsert_and_renumber(
        store, season_id, week_number, cell_index, cell_data, renumber=False
    )


async def delete_and_renumber(store: ScheduleStore, cell_id: Any) -> None:
    """Delete a cell and close the gap it leaves in the season's numbering.

    Raises:
        ValidationError: malformed id
        NotFoundError: no cell with that id
    """
    cell_id = _require_int(cell_id, "id", minimum=1)
    cell = await store.find_cell_by_id(cell_id)
    if cell is None:
        raise NotFoundError(f"Assignment {cell_id} not found.")
    season_id = cell.season_id

    async def _delete(tx: ScheduleStore) -> int:
        await tx.delete_cell_by_id(cell_id)
        return await renumber_locked(tx, season_id)

    changed = await store.with_season_lock(season_id, _delete)
    logger.info(
        f"Deleted assignment {cell_id} from season {season_id}; "
        f"{changed} cell(s) renumbered"
    )


async def preview_next_numbers(
    store: ScheduleStore, season_id: Any, is_double_game: bool
) -> Dict[str, Optional[int]]:
    """Numbers a new cell would get if saved now. Read-only, nothing reserved."""
    season_id = validate_season_id(season_id)
    await _require_season(store, season_id)
    cells = await store.find_cells_by_season(season_id)
    return preview_numbers(cells, bool(is_double_game))


async def list_assignments(
    store: ScheduleStore, season_id: Any, filters: CellFilters | None = None
) -> list[Assignment]:
    """List a season's cells in canonical order with optional filters."""
    season_id = validate_season_id(season_id)
    return await store.list_cells(season_id, filters or CellFilters())
