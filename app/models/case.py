"""Case model: published business scenario with ordered decision points (JSON)."""
import json

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from app.db.session import Base

CASE_STATUS_DRAFT = "draft"
CASE_STATUS_PUBLISHED = "published"


class Case(Base):
    __tablename__ = "cases"

    id = Column(String(128), primary_key=True)  # slug, e.g. "unit-economics-crisis"
    title = Column(String(255), nullable=False)
    briefing = Column(Text, nullable=False, default="")
    status = Column(String(16), nullable=False, default=CASE_STATUS_DRAFT, index=True)
    # decision points: JSON array of {id, title, prompt_schema}
    decision_points_json = Column(Text, nullable=False, default="[]")
    # prerequisites: JSON array of {domain, module, lesson, title}
    prerequisites_json = Column(Text, nullable=False, default="[]")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)

    @property
    def decision_points(self) -> list[dict]:
        return json.loads(self.decision_points_json or "[]")

    @property
    def prerequisites(self) -> list[dict]:
        return json.loads(self.prerequisites_json or "[]")

    @property
    def stage_ids(self) -> list[str]:
        return [dp["id"] for dp in self.decision_points]
