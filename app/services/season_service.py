"""Season service: creation, listing, lookup, updates and finishing.

Numbering never happens here; see game_numbering_service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from app.models.fields import League, SeasonStatus
from app.schemas.seasons import Season
from app.services.errors import NotFoundError, ValidationError
from app.services.game_numbering_service import validate_season_id
from app.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_WEEKS = 16
MAX_TOTAL_WEEKS = 60


@dataclass
class SeasonFormData:
    """Raw season payload from the request."""

    league: str | None
    start_date: str | None
    total_weeks: int | str | None = None


@dataclass
class SeasonUpdateData:
    """Partial season update; None means "leave unchanged"."""

    total_weeks: Any = None
    is_finished: Any = None


@dataclass
class ParsedSeasonData:
    league: str
    start_date: date
    total_weeks: int


def _parse_total_weeks(raw: int | str | None, default: int | None) -> int | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    if isinstance(raw, bool):
        raise ValidationError("totalWeeks must be a number.")
    try:
        weeks = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("totalWeeks must be a number.") from None
    if weeks <= 0 or weeks > MAX_TOTAL_WEEKS:
        raise ValidationError(f"totalWeeks must be between 1 and {MAX_TOTAL_WEEKS}.")
    return weeks


def parse_season_form(data: SeasonFormData) -> ParsedSeasonData:
    """Validate a season payload.

    Raises:
        ValidationError: unknown league, bad date or out-of-range week count
    """
    league = (data.league or "").strip().upper()
    if league not in {lg.value for lg in League}:
        raise ValidationError("Invalid league.")

    raw_date = (data.start_date or "").strip()
    try:
        start = date.fromisoformat(raw_date)
    except ValueError:
        raise ValidationError("Invalid startDate format. Use YYYY-MM-DD.") from None

    total_weeks = _parse_total_weeks(data.total_weeks, DEFAULT_TOTAL_WEEKS) or DEFAULT_TOTAL_WEEKS
    return ParsedSeasonData(league=league, start_date=start, total_weeks=total_weeks)


async def create_season(store: ScheduleStore, data: SeasonFormData) -> Season:
    """Create a season; a second season with the same league and start date conflicts."""
    parsed = parse_season_form(data)
    season = await store.create_season(
        league=parsed.league,
        start_date=parsed.start_date,
        total_weeks=parsed.total_weeks,
    )
    logger.info(f"Created season {season.id} ({season.league} {season.start_date})")
    return season


async def get_season(store: ScheduleStore, season_id: Any) -> Season:
    season_id = validate_season_id(season_id)
    season = await store.get_season(season_id)
    if season is None:
        raise NotFoundError(f"Season {season_id} not found.")
    return season


async def list_seasons(store: ScheduleStore, league: str | None = None) -> list[Season]:
    """All seasons, newest first, optionally limited to one league."""
    code = (league or "").strip().upper() or None
    return await store.list_seasons(code)


async def update_season(
    store: ScheduleStore, season_id: Any, data: SeasonUpdateData
) -> Season:
    """Change a season's week count and/or finished flag.

    Raises:
        ValidationError: bad id, out-of-range week count, non-boolean flag,
            or nothing to update
        NotFoundError: no such season
    """
    season_id = validate_season_id(season_id)
    weeks = _parse_total_weeks(data.total_weeks, None)

    status: SeasonStatus | None = None
    if data.is_finished is not None:
        if not isinstance(data.is_finished, bool):
            raise ValidationError("isFinished must be a boolean.")
        status = SeasonStatus.finished if data.is_finished else SeasonStatus.active

    if weeks is None and status is None:
        raise ValidationError("Nothing to update.")

    season = await store.update_season(season_id, total_weeks=weeks, status=status)
    logger.info(
        f"Updated season {season_id} (total_weeks={season.total_weeks}, "
        f"status={status.value if status else 'unchanged'})"
    )
    return season


async def finish_season(
    store: ScheduleStore, season_id: Any, total_weeks: Any = None
) -> Season:
    """Mark a season finished, optionally overriding its week count.

    Besides update_season, this is the only path allowed to lower
    ``total_weeks``.
    """
    season_id = validate_season_id(season_id)
    weeks = _parse_total_weeks(total_weeks, None)
    season = await store.update_season(
        season_id, total_weeks=weeks, status=SeasonStatus.finished
    )
    logger.info(f"Finished season {season_id} (total_weeks={season.total_weeks})")
    return season
