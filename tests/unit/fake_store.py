"""In-memory ScheduleStore for service and route tests.

Seasons and cells live in dicts; the season lock is an ``asyncio.Lock`` per
season and a failed locked block restores the cells it started with, which is
enough to exercise the service layer's transactional behaviour.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from app.models.fields import SeasonStatus
from app.models.game_numbering import NumberChange, sort_cells
from app.schemas.assignments import Assignment
from app.schemas.seasons import Season
from app.services.errors import ConflictError, NotFoundError
from app.services.schedule_store import CellFilters, CellKey

T = TypeVar("T")

_CELL_FIELDS = tuple(Assignment.model_fields.keys())
_PROTECTED = {"id", "season_id", "week_number", "cell_index", "created_at"}


def _snapshot(cell: Assignment) -> Dict[str, Any]:
    values = {name: getattr(cell, name) for name in _CELL_FIELDS}
    values["umpires"] = dict(values.get("umpires") or {})
    return values


def make_cell(
    cell_id: int,
    *,
    season_id: int = 1,
    week: int = 1,
    cell_index: int = 1,
    row: int = 0,
    col: int = 0,
    local: str = "",
    visitors: str = "",
    status: str = "game",
    double: bool = False,
    game_number: Optional[str] = None,
    game_number2: Optional[str] = None,
) -> Assignment:
    """Build an unsaved Assignment with only the numbering-relevant fields set."""
    return Assignment(
        id=cell_id,
        season_id=season_id,
        week_number=week,
        cell_index=cell_index,
        row_index=row,
        col_index=col,
        local_team=local,
        visitors_team=visitors,
        game_status=status,
        is_double_game=double,
        game_number=game_number,
        game_number2=game_number2,
        umpires={},
    )


class InMemoryScheduleStore:
    def __init__(self) -> None:
        self.seasons: Dict[int, Season] = {}
        self.cells: Dict[int, Assignment] = {}
        self.locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.lock_acquisitions: List[int] = []
        self.batch_updates: List[List[NumberChange]] = []
        self._next_cell_id = 1
        self._next_season_id = 1

    # --- test setup helpers ---

    def add_season(self, **kwargs: Any) -> Season:
        season = Season(
            id=self._next_season_id,
            league=kwargs.get("league", "LVBP"),
            start_date=kwargs.get("start_date", date(2025, 10, 14)),
            total_weeks=kwargs.get("total_weeks", 1),
            status=kwargs.get("status", SeasonStatus.active),
        )
        self.seasons[season.id] = season  # type: ignore[index]
        self._next_season_id += 1
        return season

    def add_cell(self, cell: Assignment) -> Assignment:
        if cell.id is None:
            cell.id = self._next_cell_id
        self._next_cell_id = max(self._next_cell_id, cell.id + 1)
        self.cells[cell.id] = cell
        return cell

    def numbers(self, season_id: int = 1) -> Dict[tuple, tuple]:
        """{(week, cell_index): (game_number, game_number2)} for assertions."""
        return {
            (c.week_number, c.cell_index): (c.game_number, c.game_number2)
            for c in self.cells.values()
            if c.season_id == season_id
        }

    # --- ScheduleStore ---

    async def get_season(self, season_id: int) -> Season | None:
        return self.seasons.get(season_id)

    async def create_season(
        self, *, league: str, start_date: date, total_weeks: int
    ) -> Season:
        for season in self.seasons.values():
            if season.league == league and season.start_date == start_date:
                raise ConflictError(
                    f"A {league} season starting {start_date.isoformat()} already exists."
                )
        return self.add_season(league=league, start_date=start_date, total_weeks=total_weeks)

    async def list_season_ids(self, *, active_only: bool = False) -> list[int]:
        return sorted(
            sid
            for sid, season in self.seasons.items()
            if not active_only or season.status == SeasonStatus.active
        )

    async def grow_total_weeks(self, season_id: int, week_number: int) -> None:
        season = self.seasons.get(season_id)
        if season is not None and season.total_weeks < week_number:
            season.total_weeks = week_number

    async def list_seasons(self, league: str | None = None) -> list[Season]:
        seasons = [s for s in self.seasons.values() if not league or s.league == league]
        return sorted(seasons, key=lambda s: (s.created_at, s.id), reverse=True)

    async def update_season(
        self,
        season_id: int,
        *,
        total_weeks: int | None = None,
        status: SeasonStatus | None = None,
    ) -> Season:
        season = self.seasons.get(season_id)
        if season is None:
            raise NotFoundError(f"Season {season_id} not found.")
        if status is not None:
            season.status = status
        if total_weeks is not None:
            season.total_weeks = total_weeks
        return season

    async def find_cells_by_season(self, season_id: int) -> list[Assignment]:
        # Yield so concurrent tasks can interleave here
        await asyncio.sleep(0)
        return sort_cells(c for c in self.cells.values() if c.season_id == season_id)  # type: ignore[return-value]

    async def list_cells(self, season_id: int, filters: CellFilters) -> list[Assignment]:
        cells = await self.find_cells_by_season(season_id)
        if filters.week_number:
            cells = [c for c in cells if c.week_number == filters.week_number]
        if filters.game_status:
            cells = [c for c in cells if c.game_status == filters.game_status]
        if filters.stadium_city:
            cells = [c for c in cells if c.stadium_city == filters.stadium_city]
        if filters.q and filters.q.strip():
            needle = filters.q.strip().casefold()
            cells = [
                c
                for c in cells
                if any(
                    needle in (value or "").casefold()
                    for value in (
                        c.local_team,
                        c.visitors_team,
                        c.stadium_name,
                        c.stadium_city,
                        c.day_name,
                    )
                )
            ]
        return cells

    async def find_cell_by_natural_key(
        self, season_id: int, week_number: int, cell_index: int
    ) -> Assignment | None:
        for cell in self.cells.values():
            if (cell.season_id, cell.week_number, cell.cell_index) == (
                season_id,
                week_number,
                cell_index,
            ):
                return cell
        return None

    async def find_cell_by_id(self, cell_id: int) -> Assignment | None:
        return self.cells.get(cell_id)

    async def upsert_cell(self, key: CellKey, data: Mapping[str, Any]) -> Assignment:
        existing = await self.find_cell_by_natural_key(
            key.season_id, key.week_number, key.cell_index
        )
        if existing is None:
            values = {k: v for k, v in data.items() if k not in _PROTECTED}
            return self.add_cell(Assignment(**values, **key.as_values()))
        for field, value in data.items():
            if field not in _PROTECTED:
                setattr(existing, field, value)
        existing.updated_at = datetime.utcnow()
        return existing

    async def update_cell_by_id(
        self, cell_id: int, data: Mapping[str, Any]
    ) -> Assignment:
        cell = self.cells.get(cell_id)
        if cell is None:
            raise NotFoundError(f"Assignment {cell_id} not found.")
        week = data.get("week_number", cell.week_number)
        index = data.get("cell_index", cell.cell_index)
        other = await self.find_cell_by_natural_key(cell.season_id, week, index)
        if other is not None and other.id != cell_id:
            raise ConflictError(f"Week {week} cell {index} already exists.")
        for field, value in data.items():
            if field not in {"id", "created_at"}:
                setattr(cell, field, value)
        return cell

    async def delete_cell_by_id(self, cell_id: int) -> None:
        if self.cells.pop(cell_id, None) is None:
            raise NotFoundError(f"Assignment {cell_id} not found.")

    async def batch_update_numbers(self, changes: Sequence[NumberChange]) -> None:
        self.batch_updates.append(list(changes))
        for change in changes:
            cell = self.cells.get(change.cell_id)
            if cell is None:
                raise NotFoundError(f"Assignment {change.cell_id} not found.")
            cell.game_number = change.game_number
            cell.game_number2 = change.game_number2

    async def with_season_lock(
        self, season_id: int, fn: Callable[[Any], Awaitable[T]]
    ) -> T:
        async with self.locks[season_id]:
            self.lock_acquisitions.append(season_id)
            saved = {cid: _snapshot(cell) for cid, cell in self.cells.items()}
            try:
                return await fn(self)
            except Exception:
                self.cells = {cid: Assignment(**values) for cid, values in saved.items()}
                raise
