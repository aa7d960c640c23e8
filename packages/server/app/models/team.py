"""Team (tenant) model and its settings row."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Team(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "teams"

    name: str = Field(nullable=False, index=True)


class TeamSettings(SQLModel, table=True):
    __tablename__ = "team_settings"

    team_id: uuid.UUID = Field(foreign_key="teams.id", primary_key=True)
    is_discoverable: bool = Field(default=False, nullable=False)
    description: Optional[str] = None
