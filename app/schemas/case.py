"""Pydantic schemas for cases, decision points and the prerequisite gate."""
from typing import Any

from pydantic import BaseModel, Field


class DecisionPointSchema(BaseModel):
    id: str
    title: str
    prompt_schema: dict[str, Any] = Field(default_factory=dict)


class PrerequisiteSchema(BaseModel):
    domain: str
    module: str
    lesson: str
    title: str | None = None


class CaseSummarySchema(BaseModel):
    id: str
    title: str
    decision_point_count: int


class CaseOutSchema(BaseModel):
    id: str
    title: str
    briefing: str
    decision_points: list[DecisionPointSchema]
    prerequisites: list[PrerequisiteSchema]


class GateResultSchema(BaseModel):
    allowed: bool
    unmet: list[PrerequisiteSchema] = Field(default_factory=list)
