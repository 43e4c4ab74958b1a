"""Schedule cell routes.

Thin wrappers: validation, numbering and locking live in
game_numbering_service.
"""

from fastapi import APIRouter, Depends, Query

from app.models.schedule import (
    AssignmentList,
    AssignmentRead,
    AssignmentSaved,
    AssignmentUpsertRequest,
    FinishSeasonRequest,
    OkResponse,
)
from app.routes.helpers import http_error
from app.services import season_service
from app.services.errors import ScheduleError
from app.services.game_numbering_service import (
    CellData,
    delete_and_renumber,
    list_assignments as svc_list_assignments,
    upsert_and_renumber,
)
from app.services.schedule_store import CellFilters, ScheduleStore
from app.utils.db_async import get_schedule_store

router = APIRouter(prefix="/assignments", tags=["assignments"])


def _cell_data(body: AssignmentUpsertRequest) -> CellData:
    return CellData(
        row_index=body.row_index,
        col_index=body.col_index,
        league=body.league,
        day_name=body.day_name,
        date_str=body.date_str,
        stadium_city=body.stadium_city,
        stadium_name=body.stadium_name,
        local_team=body.local_team,
        visitors_team=body.visitors_team,
        game_time=body.game_time,
        game_time2=body.game_time2,
        game_status=body.game_status,
        is_double_game=body.is_double_game,
        is_final_game=body.is_final_game,
        umpires=body.umpires,
        cell_id=body.id,
    )


@router.get("", response_model=AssignmentList)
async def list_assignments(
    season_id: str | None = Query(default=None, alias="seasonId"),
    week: int | None = Query(default=None),
    status: str | None = Query(default=None),
    city: str | None = Query(default=None),
    q: str | None = Query(default=None),
    store: ScheduleStore = Depends(get_schedule_store),
) -> AssignmentList:
    """List a season's cells in canonical order."""
    filters = CellFilters(week_number=week, game_status=status, stadium_city=city, q=q)
    try:
        cells = await svc_list_assignments(store, season_id, filters)
    except ScheduleError as exc:
        raise http_error(exc) from exc
    return AssignmentList(items=[AssignmentRead.model_validate(c) for c in cells])


@router.post("/upsert", response_model=AssignmentSaved)
async def upsert_assignment(
    body: AssignmentUpsertRequest,
    store: ScheduleStore = Depends(get_schedule_store),
) -> AssignmentSaved:
    """Create or replace a cell; the season is renumbered in the same transaction."""
    try:
        saved = await upsert_and_renumber(
            store, body.season_id, body.week_number, body.cell_index, _cell_data(body)
        )
    except ScheduleError as exc:
        raise http_error(exc) from exc
    return AssignmentSaved(assignment=AssignmentRead.model_validate(saved))


@router.post("/finish", response_model=OkResponse)
async def finish_season(
    body: FinishSeasonRequest,
    store: ScheduleStore = Depends(get_schedule_store),
) -> OkResponse:
    """Mark a season finished, optionally fixing its final week count."""
    try:
        await season_service.finish_season(
            store, body.season_id, body.total_weeks
        )
    except ScheduleError as exc:
        raise http_error(exc) from exc
    return OkResponse()


@router.delete("/{assignment_id}", response_model=OkResponse)
async def delete_assignment(
    assignment_id: int,
    store: ScheduleStore = Depends(get_schedule_store),
) -> OkResponse:
    """Delete a cell and close the gap in the season's numbering."""
    try:
        await delete_and_renumber(store, assignment_id)
    except ScheduleError as exc:
        raise http_error(exc) from exc
    return OkResponse()

