from app.models.user import User
from app.models.case import Case
from app.models.lesson_progress import LessonProgress
from app.models.simulation import Simulation
from app.models.job import Job
from app.models.notification import Notification
from app.models.forum import ForumChannel, ForumThread

__all__ = [
    "User",
    "Case",
    "LessonProgress",
    "Simulation",
    "Job",
    "Notification",
    "ForumChannel",
    "ForumThread",
]
