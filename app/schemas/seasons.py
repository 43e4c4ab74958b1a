from datetime import date, datetime
from typing import Optional

from sqlalchemy import Column, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel

from app.models.fields import SeasonStatus


class Season(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "seasons"
    __table_args__ = (
        UniqueConstraint("league", "start_date", name="uq_seasons_league_start"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    league: str = Field(index=True, description="League code like 'LVBP'")
    start_date: date
    # Grows with the highest week saved; only an explicit season update may lower it
    total_weeks: int = Field(default=16)
    status: SeasonStatus = Field(
        default=SeasonStatus.active,
        sa_column=Column(
            SAEnum(SeasonStatus, name="season_status_enum"),
            nullable=False,
            default=SeasonStatus.active,
        ),
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
