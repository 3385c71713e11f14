"""Lesson progress: one row per (user, domain, module, lesson)."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from app.db.session import Base

LESSON_STATUS_IN_PROGRESS = "in_progress"
LESSON_STATUS_COMPLETED = "completed"


class LessonProgress(Base):
    __tablename__ = "lesson_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "domain_id", "module_id", "lesson_id", name="uq_lesson_progress_user_lesson"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    domain_id = Column(String(128), nullable=False)
    module_id = Column(String(128), nullable=False)
    lesson_id = Column(String(128), nullable=False)
    status = Column(String(16), nullable=False, default=LESSON_STATUS_IN_PROGRESS)
    completed_at = Column(DateTime(timezone=True), nullable=True)
