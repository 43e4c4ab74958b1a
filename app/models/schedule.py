"""Request and response models for the schedule API.

The grid editor speaks camelCase JSON; models accept both camelCase and
snake_case and always respond in camelCase.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.fields import SeasonStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class AssignmentUpsertRequest(CamelModel):
    """Body of POST /assignments/upsert.

    Key fields stay loosely typed so the service can answer with a specific
    validation message instead of a generic 422.
    """

    id: Optional[int] = None
    season_id: Any = None
    week_number: Any = None
    cell_index: Any = None
    row_index: Optional[int] = 0
    col_index: Optional[int] = 0
    league: Optional[str] = None
    day_name: Optional[str] = ""
    date_str: Optional[str] = ""
    stadium_city: Optional[str] = ""
    stadium_name: Optional[str] = ""
    local_team: Optional[str] = ""
    visitors_team: Optional[str] = ""
    game_time: Optional[str] = None
    game_time2: Optional[str] = None
    game_status: Optional[str] = "game"
    is_double_game: bool = False
    is_final_game: bool = False
    umpires: Any = None
    # Accepted for compatibility; numbers are always assigned server side
    game_number: Any = None
    game_number2: Any = None


class AssignmentRead(CamelModel):
    id: int
    season_id: int
    week_number: int
    cell_index: int
    row_index: int
    col_index: int
    league: Optional[str] = None
    day_name: str
    date_str: str
    stadium_city: str
    stadium_name: str
    local_team: str
    visitors_team: str
    game_number: Optional[str] = None
    game_number2: Optional[str] = None
    game_time: Optional[str] = None
    game_time2: Optional[str] = None
    game_status: str
    is_double_game: bool
    is_final_game: bool
    umpires: Dict[str, Any]
    updated_at: Optional[datetime] = None


class AssignmentSaved(CamelModel):
    ok: bool = True
    assignment: AssignmentRead


class AssignmentList(CamelModel):
    items: List[AssignmentRead]


class NextNumbers(CamelModel):
    next: int
    next2: Optional[int] = None


class RecomputeResult(CamelModel):
    ok: bool = True
    season_id: int
    renumbered: int


class SeasonCreateRequest(CamelModel):
    league: Optional[str] = None
    start_date: Optional[str] = None
    total_weeks: Optional[Any] = None


class FinishSeasonRequest(CamelModel):
    season_id: Any = None
    total_weeks: Optional[Any] = None


class SeasonRead(CamelModel):
    id: int
    league: str
    start_date: date
    total_weeks: int
    status: SeasonStatus
    created_at: Optional[datetime] = None


class SeasonList(CamelModel):
    items: List[SeasonRead]


class SeasonUpdateRequest(CamelModel):
    """Body of PATCH /seasons/{id}; omitted fields are left unchanged."""

    total_weeks: Optional[Any] = None
    is_finished: Optional[Any] = None


class OkResponse(CamelModel):
    ok: bool = True
