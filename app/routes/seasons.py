"""Season routes: creation, listing, lookup, updates, numbering preview and recompute."""

from fastapi import APIRouter, Depends, Query

from app.models.schedule import (
    NextNumbers,
    RecomputeResult,
    SeasonCreateRequest,
    SeasonList,
    SeasonRead,
    SeasonUpdateRequest,
)
from app.routes.helpers import http_error
from app.services import season_service
from app.services.errors import ScheduleError
from app.services.game_numbering_service import (
    preview_next_numbers,
    recompute_season as svc_recompute_season,
)
from app.services.schedule_store import ScheduleStore
from app.utils.db_async import get_schedule_store

router = APIRouter(prefix="/seasons", tags=["seasons"])


@router.post("", response_model=SeasonRead, status_code=201)
async def create_season(
    body: SeasonCreateRequest,
    store: ScheduleStore = Depends(get_schedule_store),
) -> SeasonRead:
    try:
        season = await season_service.create_season(
            store,
            season_service.SeasonFormData(
                league=body.league,
                start_date=body.start_date,
                total_weeks=body.total_weeks,
            ),
        )
    except ScheduleError as exc:
        raise http_error(exc) from exc
    return SeasonRead.model_validate(season)


@router.get("", response_model=SeasonList)
async def list_seasons(
    league: str | None = Query(default=None),
    store: ScheduleStore = Depends(get_schedule_store),
) -> SeasonList:
    """Seasons, newest first; `league` narrows to one league."""
    seasons = await season_service.list_seasons(store, league)
    return SeasonList(items=[SeasonRead.model_validate(s) for s in seasons])


@router.get("/{season_id}", response_model=SeasonRead)
async def get_season(
    season_id: int,
    store: ScheduleStore = Depends(get_schedule_store),
) -> SeasonRead:
    try:
        season = await season_service.get_season(store, season_id)
    except ScheduleError as exc:
        raise http_error(exc) from exc
    return SeasonRead.model_validate(season)


@router.patch("/{season_id}", response_model=SeasonRead)
async def update_season(
    season_id: int,
    body: SeasonUpdateRequest,
    store: ScheduleStore = Depends(get_schedule_store),
) -> SeasonRead:
    """Change `totalWeeks` and/or `isFinished`."""
    try:
        season = await season_service.update_season(
            store,
            season_id,
            season_service.SeasonUpdateData(
                total_weeks=body.total_weeks, is_finished=body.is_finished
            ),
        )
    except ScheduleError as exc:
        raise http_error(exc) from exc
    return SeasonRead.model_validate(season)


@router.get("/{season_id}/next-numbers", response_model=NextNumbers)
async def next_numbers(
    season_id: int,
    double: bool = Query(default=False),
    store: ScheduleStore = Depends(get_schedule_store),
) -> NextNumbers:
    """Preview the numbers a new cell would receive; nothing is reserved."""
    try:
        preview = await preview_next_numbers(store, season_id, double)
    except ScheduleError as exc:
        raise http_error(exc) from exc
    return NextNumbers(next=preview["next"], next2=preview["next2"])


@router.post("/{season_id}/recompute", response_model=RecomputeResult)
async def recompute_season(
    season_id: int,
    store: ScheduleStore = Depends(get_schedule_store),
) -> RecomputeResult:
    """Renumber every game of the season from scratch."""
    try:
        changed = await svc_recompute_season(store, season_id)
    except ScheduleError as exc:
        raise http_error(exc) from exc
    return RecomputeResult(season_id=season_id, renumbered=changed)
