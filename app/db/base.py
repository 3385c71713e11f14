"""SQLAlchemy declarative base and model imports for Alembic."""
from app.db.session import Base

# Import all models so Alembic can see them
from app.models.case import Case  # noqa: F401
from app.models.forum import ForumChannel, ForumThread  # noqa: F401
from app.models.job import Job  # noqa: F401
from app.models.lesson_progress import LessonProgress  # noqa: F401
from app.models.notification import Notification  # noqa: F401
from app.models.simulation import Simulation  # noqa: F401
from app.models.user import User  # noqa: F401

__all__ = [
    "Base",
    "Case",
    "ForumChannel",
    "ForumThread",
    "Job",
    "LessonProgress",
    "Notification",
    "Simulation",
    "User",
]
