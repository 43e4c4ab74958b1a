"""Persistence gateway for seasons and schedule cells.

The numbering service only talks to a :class:`ScheduleStore`. The SQL
implementation wraps one request-scoped ``AsyncSession``; every method joins
the caller's transaction when one is open and otherwise runs in its own
``session.begin()`` block.

The season lock is a row lock on ``seasons`` taken with ``SELECT ... FOR
UPDATE`` inside the transaction, so it is released on commit/rollback. Lock
waits are bounded by ``lock_timeout`` and retried with backoff; when every
attempt times out the work carries on unlocked and the miss is logged and
reported through ``on_lock_unavailable``.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Mapping,
    Protocol,
    Sequence,
    TypeVar,
)

from sqlalchemy import or_, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import SeasonStatus
from app.models.game_numbering import NumberChange
from app.schemas.assignments import Assignment
from app.schemas.seasons import Season
from app.services.errors import ConflictError, LockUnavailable, NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")

NATURAL_KEY_CONSTRAINT = "uq_assignments_season_week_cell"
SEASON_KEY_CONSTRAINT = "uq_seasons_league_start"

# SQLSTATE for lock_not_available (raised when lock_timeout expires)
_LOCK_NOT_AVAILABLE = "55P03"

# Columns a save may never overwrite through the upsert path
_PROTECTED_COLUMNS = {"id", "season_id", "week_number", "cell_index", "created_at"}


@dataclass(frozen=True)
class CellKey:
    """Natural key of a schedule cell."""

    season_id: int
    week_number: int
    cell_index: int

    def as_values(self) -> dict[str, int]:
        return {
            "season_id": self.season_id,
            "week_number": self.week_number,
            "cell_index": self.cell_index,
        }


@dataclass
class CellFilters:
    """Optional filters for listing a season's cells."""

    week_number: int | None = None
    game_status: str | None = None
    stadium_city: str | None = None
    q: str | None = None


LockMissHook = Callable[[LockUnavailable], None]


class ScheduleStore(Protocol):
    """Storage operations the numbering and season services rely on."""

    async def get_season(self, season_id: int) -> Season | None: ...

    async def create_season(
        self, *, league: str, start_date: date, total_weeks: int
    ) -> Season: ...

    async def list_season_ids(self, *, active_only: bool = False) -> list[int]: ...

    async def grow_total_weeks(self, season_id: int, week_number: int) -> None: ...

    async def list_seasons(self, league: str | None = None) -> list[Season]: ...

    async def update_season(
        self,
        season_id: int,
        *,
        total_weeks: int | None = None,
        status: SeasonStatus | None = None,
    ) -> Season: ...

    async def find_cells_by_season(self, season_id: int) -> list[Assignment]: ...

    async def list_cells(
        self, season_id: int, filters: CellFilters
    ) -> list[Assignment]: ...

    async def find_cell_by_natural_key(
        self, season_id: int, week_number: int, cell_index: int
    ) -> Assignment | None: ...

    async def find_cell_by_id(self, cell_id: int) -> Assignment | None: ...

    async def upsert_cell(self, key: CellKey, data: Mapping[str, Any]) -> Assignment: ...

    async def update_cell_by_id(
        self, cell_id: int, data: Mapping[str, Any]
    ) -> Assignment: ...

    async def delete_cell_by_id(self, cell_id: int) -> None: ...

    async def batch_update_numbers(self, changes: Sequence[NumberChange]) -> None: ...

    async def with_season_lock(
        self, season_id: int, fn: Callable[["ScheduleStore"], Awaitable[T]]
    ) -> T: ...


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _violates(exc: IntegrityError, constraint: str) -> bool:
    return constraint in str(getattr(exc, "orig", None) or exc)


def _is_lock_timeout(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code == _LOCK_NOT_AVAILABLE:
            return True
    return "lock timeout" in str(exc).lower()


def log_lock_miss(exc: LockUnavailable) -> None:
    """Default hook: a WARNING record per degraded (unlocked) recompute."""
    logger.warning(
        "Season %s lock unavailable after %s attempt(s); renumbering without it",
        exc.season_id,
        exc.attempts,
    )


class SqlScheduleStore:
    """SQLAlchemy implementation of :class:`ScheduleStore`."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        lock_timeout_ms: int = 2000,
        lock_attempts: int = 3,
        lock_backoff_ms: int = 50,
        on_lock_unavailable: LockMissHook | None = log_lock_miss,
    ) -> None:
        self.session = session
        self.lock_timeout_ms = lock_timeout_ms
        self.lock_attempts = max(1, lock_attempts)
        self.lock_backoff_ms = lock_backoff_ms
        self.on_lock_unavailable = on_lock_unavailable

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        if self.session.in_transaction():
            yield
        else:
            async with self.session.begin():
                yield

    # --- Seasons ---

    async def get_season(self, season_id: int) -> Season | None:
        async with self._transaction():
            return await self.session.get(Season, season_id)

    async def create_season(
        self, *, league: str, start_date: date, total_weeks: int
    ) -> Season:
        async with self._transaction():
            result = await self.session.execute(
                select(Season).where(
                    Season.league == league,  # type: ignore[arg-type]
                    Season.start_date == start_date,  # type: ignore[arg-type]
                )
            )
            if result.scalar_one_or_none() is not None:
                raise ConflictError(
                    f"A {league} season starting {start_date.isoformat()} already exists."
                )
            season = Season(league=league, start_date=start_date, total_weeks=total_weeks)
            try:
                async with self.session.begin_nested():
                    self.session.add(season)
            except IntegrityError as exc:
                if _violates(exc, SEASON_KEY_CONSTRAINT):
                    raise ConflictError(
                        f"A {league} season starting {start_date.isoformat()} already exists."
                    ) from exc
                raise
            return season

    async def list_season_ids(self, *, active_only: bool = False) -> list[int]:
        query = select(Season.id).order_by(Season.id)  # type: ignore[call-overload]
        if active_only:
            query = query.where(Season.status == SeasonStatus.active)
        async with self._transaction():
            result = await self.session.execute(query)
            return list(result.scalars().all())

    async def grow_total_weeks(self, season_id: int, week_number: int) -> None:
        async with self._transaction():
            await self.session.execute(
                update(Season)
                .where(
                    Season.id == season_id,  # type: ignore[arg-type]
                    Season.total_weeks < week_number,  # type: ignore[arg-type]
                )
                .values(total_weeks=week_number)
                .execution_options(synchronize_session="fetch")
            )

    async def list_seasons(self, league: str | None = None) -> list[Season]:
        query = select(Season).order_by(
            Season.created_at.desc(),  # type: ignore[attr-defined]
            Season.id.desc(),  # type: ignore[union-attr]
        )
        if league:
            query = query.where(Season.league == league)  # type: ignore[arg-type]
        async with self._transaction():
            result = await self.session.execute(query)
            return list(result.scalars().all())

    async def update_season(
        self,
        season_id: int,
        *,
        total_weeks: int | None = None,
        status: SeasonStatus | None = None,
    ) -> Season:
        async with self._transaction():
            season = await self.session.get(Season, season_id)
            if season is None:
                raise NotFoundError(f"Season {season_id} not found.")
            if status is not None:
                season.status = status
            if total_weeks is not None:
                season.total_weeks = total_weeks
            await self.session.flush()
            return season

    # --- Cells ---

    async def find_cells_by_season(self, season_id: int) -> list[Assignment]:
        async with self._transaction():
            result = await self.session.execute(
                select(Assignment)
                .where(Assignment.season_id == season_id)  # type: ignore[arg-type]
                .order_by(
                    Assignment.week_number,  # type: ignore[arg-type]
                    Assignment.row_index,  # type: ignore[arg-type]
                    Assignment.col_index,  # type: ignore[arg-type]
                    Assignment.cell_index,  # type: ignore[arg-type]
                    Assignment.id,  # type: ignore[arg-type]
                )
            )
            return list(result.scalars().all())

    async def list_cells(self, season_id: int, filters: CellFilters) -> list[Assignment]:
        query = select(Assignment).where(
            Assignment.season_id == season_id  # type: ignore[arg-type]
        )
        if filters.week_number is not None and filters.week_number > 0:
            query = query.where(
                Assignment.week_number == filters.week_number  # type: ignore[arg-type]
            )
        if filters.game_status:
            query = query.where(
                Assignment.game_status == filters.game_status  # type: ignore[arg-type]
            )
        if filters.stadium_city:
            query = query.where(
                Assignment.stadium_city == filters.stadium_city  # type: ignore[arg-type]
            )
        if filters.q and filters.q.strip():
            term = f"%{filters.q.strip()}%"
            query = query.where(
                or_(
                    Assignment.local_team.ilike(term),  # type: ignore[attr-defined]
                    Assignment.visitors_team.ilike(term),  # type: ignore[attr-defined]
                    Assignment.stadium_name.ilike(term),  # type: ignore[attr-defined]
                    Assignment.stadium_city.ilike(term),  # type: ignore[attr-defined]
                    Assignment.day_name.ilike(term),  # type: ignore[attr-defined]
                )
            )
        query = query.order_by(
            Assignment.week_number,  # type: ignore[arg-type]
            Assignment.row_index,  # type: ignore[arg-type]
            Assignment.col_index,  # type: ignore[arg-type]
            Assignment.cell_index,  # type: ignore[arg-type]
        )
        async with self._transaction():
            result = await self.session.execute(query)
            return list(result.scalars().all())

    async def find_cell_by_natural_key(
        self, season_id: int, week_number: int, cell_index: int
    ) -> Assignment | None:
        async with self._transaction():
            result = await self.session.execute(
                select(Assignment).where(
                    Assignment.season_id == season_id,  # type: ignore[arg-type]
                    Assignment.week_number == week_number,  # type: ignore[arg-type]
                    Assignment.cell_index == cell_index,  # type: ignore[arg-type]
                )
            )
            return result.scalar_one_or_none()

    async def find_cell_by_id(self, cell_id: int) -> Assignment | None:
        async with self._transaction():
            return await self.session.get(Assignment, cell_id)

    async def upsert_cell(self, key: CellKey, data: Mapping[str, Any]) -> Assignment:
        values = {k: v for k, v in data.items() if k not in _PROTECTED_COLUMNS}
        now = _utcnow()
        stmt = pg_insert(Assignment).values(
            **values, **key.as_values(), created_at=now, updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            constraint=NATURAL_KEY_CONSTRAINT,
            set_={**{k: stmt.excluded[k] for k in values}, "updated_at": now},
        ).returning(Assignment)
        async with self._transaction():
            result = await self.session.scalars(
                stmt, execution_options={"populate_existing": True}
            )
            return result.one()

    async def update_cell_by_id(
        self, cell_id: int, data: Mapping[str, Any]
    ) -> Assignment:
        async with self._transaction():
            cell = await self.session.get(Assignment, cell_id)
            if cell is None:
                raise NotFoundError(f"Assignment {cell_id} not found.")
            week = data.get("week_number", cell.week_number)
            index = data.get("cell_index", cell.cell_index)
            try:
                async with self.session.begin_nested():
                    for field, value in data.items():
                        if field in {"id", "created_at"}:
                            continue
                        setattr(cell, field, value)
                    cell.updated_at = _utcnow()
                    await self.session.flush()
            except IntegrityError as exc:
                if _violates(exc, NATURAL_KEY_CONSTRAINT):
                    raise ConflictError(
                        f"Week {week} cell {index} already exists."
                    ) from exc
                raise
            return cell

    async def delete_cell_by_id(self, cell_id: int) -> None:
        async with self._transaction():
            cell = await self.session.get(Assignment, cell_id)
            if cell is None:
                raise NotFoundError(f"Assignment {cell_id} not found.")
            await self.session.delete(cell)
            await self.session.flush()

    async def batch_update_numbers(self, changes: Sequence[NumberChange]) -> None:
        if not changes:
            return
        async with self._transaction():
            for change in changes:
                cell = await self.session.get(Assignment, change.cell_id)
                if cell is None:
                    raise NotFoundError(f"Assignment {change.cell_id} not found.")
                cell.game_number = change.game_number
                cell.game_number2 = change.game_number2
            await self.session.flush()

    # --- Locking ---

    async def _try_lock(self, season_id: int) -> int | None:
        """One bounded attempt at the season row lock, inside a savepoint."""
        async with self.session.begin_nested():
            if self.lock_timeout_ms > 0:
                await self.session.execute(
                    text("SELECT set_config('lock_timeout', :timeout, true)"),
                    {"timeout": f"{self.lock_timeout_ms}ms"},
                )
            result = await self.session.execute(
                select(Season.id)  # type: ignore[call-overload]
                .where(Season.id == season_id)
                .with_for_update()
            )
            locked = result.scalar_one_or_none()
            if self.lock_timeout_ms > 0:
                await self.session.execute(
                    text("SELECT set_config('lock_timeout', '0', true)")
                )
            return locked

    async def acquire_season_lock(self, season_id: int) -> None:
        """Lock the season row for the rest of the current transaction.

        Raises:
            NotFoundError: the season does not exist.
            LockUnavailable: every attempt hit ``lock_timeout``.
        """
        delay = self.lock_backoff_ms / 1000
        for attempt in range(1, self.lock_attempts + 1):
            try:
                locked = await self._try_lock(season_id)
            except DBAPIError as exc:
                if not _is_lock_timeout(exc):
                    raise
                logger.info(
                    "Season %s lock attempt %s/%s timed out",
                    season_id,
                    attempt,
                    self.lock_attempts,
                )
                if attempt == self.lock_attempts:
                    raise LockUnavailable(season_id, attempt) from exc
                await asyncio.sleep(delay)
                delay *= 2
                continue
            if locked is None:
                raise NotFoundError(f"Season {season_id} not found.")
            return

    async def with_season_lock(
        self, season_id: int, fn: Callable[[ScheduleStore], Awaitable[T]]
    ) -> T:
        async with self._transaction():
            try:
                await self.acquire_season_lock(season_id)
            except LockUnavailable as exc:
                if self.on_lock_unavailable is not None:
                    self.on_lock_unavailable(exc)
            return await fn(self)
