"""Schedule grid cells (one potential game each) and their umpire slots."""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Column, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from app.models.fields import DEFAULT_GAME_STATUS


class Assignment(SQLModel, table=True):  # type: ignore[call-arg]
    """One cell of a season's week x position grid.

    ``(season_id, week_number, cell_index)`` is the natural key. Game numbers
    are stored as strings and owned by the numbering service.
    """

    __tablename__ = "assignments"
    __table_args__ = (
        UniqueConstraint(
            "season_id",
            "week_number",
            "cell_index",
            name="uq_assignments_season_week_cell",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="seasons.id", index=True)
    week_number: int = Field(index=True)
    cell_index: int

    # Grid position, used for ordering and display only
    row_index: int = Field(default=0)
    col_index: int = Field(default=0)

    league: Optional[str] = Field(default=None)
    day_name: str = Field(default="")
    date_str: str = Field(default="")
    stadium_city: str = Field(default="", index=True)
    stadium_name: str = Field(default="")
    local_team: str = Field(default="")
    visitors_team: str = Field(default="")

    game_number: Optional[str] = Field(default=None)
    game_number2: Optional[str] = Field(default=None)
    game_time: Optional[str] = Field(default=None)
    game_time2: Optional[str] = Field(default=None)
    game_status: str = Field(default=DEFAULT_GAME_STATUS, index=True)
    is_double_game: bool = Field(default=False)
    is_final_game: bool = Field(default=False)

    umpires: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSONB, nullable=False, default=dict)
    )

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
