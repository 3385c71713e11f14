"""Simulation model: one user's attempt at one case, state kept as a JSON blob."""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.db.session import Base

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"


def _new_id() -> str:
    return str(uuid.uuid4())


class Simulation(Base):
    __tablename__ = "simulations"
    # one attempt per (user, case); create() returns the existing row
    __table_args__ = (UniqueConstraint("user_id", "case_id", name="uq_simulations_user_case"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    case_id = Column(String(128), ForeignKey("cases.id"), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=STATUS_IN_PROGRESS, index=True)
    # {stageStates, currentStageId, eventLog, ...}; unknown keys are preserved
    state_json = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="simulations")
