"""Pydantic schemas for simulations and their state blob."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StageSubmitSchema(BaseModel):
    answer: Any = None


class SimulationStateSchema(BaseModel):
    # extra keys from older/newer blobs pass through untouched
    model_config = ConfigDict(extra="allow")

    stageStates: dict[str, Any] = Field(default_factory=dict)
    currentStageId: Any = None
    eventLog: list[Any] = Field(default_factory=list)


class SimulationOutSchema(BaseModel):
    id: str
    user_id: int
    case_id: str
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    state: SimulationStateSchema


class NotificationOutSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    message: str
    link: str | None = None
    read: bool
    created_at: datetime | None = None
