from app.services.completion import CompletionTrigger, DebriefJobQueue, ForumGateway, NotificationSink
from app.services.engine import SimulationEngine
from app.services.prerequisites import GateResult, check_prerequisites, mark_lesson_completed
from app.services.seeding import seed_demo_content
from app.services.state_store import SimulationStore

__all__ = [
    "CompletionTrigger",
    "DebriefJobQueue",
    "ForumGateway",
    "GateResult",
    "NotificationSink",
    "SimulationEngine",
    "SimulationStore",
    "check_prerequisites",
    "mark_lesson_completed",
    "seed_demo_content",
]
