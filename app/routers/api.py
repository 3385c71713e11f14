"""API routes: JSON for cases, the prerequisite gate, simulations and notifications."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.core.errors import PrerequisitesNotMetError
from app.db.session import get_db, get_session_factory
from app.models.notification import Notification
from app.models.simulation import Simulation
from app.models.user import User
from app.routers.auth import get_current_user
from app.schemas.case import (
    CaseOutSchema,
    CaseSummarySchema,
    DecisionPointSchema,
    GateResultSchema,
    PrerequisiteSchema,
)
from app.schemas.simulation import (
    NotificationOutSchema,
    SimulationOutSchema,
    SimulationStateSchema,
    StageSubmitSchema,
)
from app.services.case_store import get_case, list_published_cases
from app.services.completion import CompletionTrigger, DebriefJobQueue, ForumGateway, NotificationSink
from app.services.engine import SimulationEngine
from app.services.prerequisites import check_prerequisites, mark_lesson_completed

router = APIRouter(prefix="/api", tags=["api"])
settings = get_settings()


def get_completion_trigger(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> CompletionTrigger:
    forum = None
    if settings.forum_threads_enabled:
        forum = ForumGateway(session_factory, settings.forum_channel_slug)
    return CompletionTrigger(
        DebriefJobQueue(session_factory),
        NotificationSink(session_factory),
        forum,
        timeout=settings.side_effect_timeout_seconds,
    )


def get_engine(
    db: Annotated[AsyncSession, Depends(get_db)],
    trigger: Annotated[CompletionTrigger, Depends(get_completion_trigger)],
) -> SimulationEngine:
    return SimulationEngine(db, trigger)


async def simulation_out(engine: SimulationEngine, simulation: Simulation) -> SimulationOutSchema:
    state = await engine.view_state(simulation)
    return SimulationOutSchema(
        id=simulation.id,
        user_id=simulation.user_id,
        case_id=simulation.case_id,
        status=simulation.status,
        created_at=simulation.created_at,
        updated_at=simulation.updated_at,
        completed_at=simulation.completed_at,
        state=SimulationStateSchema(**state),
    )


# ---------- cases ----------

@router.get("/cases", response_model=list[CaseSummarySchema])
async def list_cases(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    cases = await list_published_cases(db)
    return [
        CaseSummarySchema(id=c.id, title=c.title, decision_point_count=len(c.decision_points))
        for c in cases
    ]


@router.get("/cases/{case_id}", response_model=CaseOutSchema)
async def get_case_detail(
    case_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    case = await get_case(db, case_id)
    return CaseOutSchema(
        id=case.id,
        title=case.title,
        briefing=case.briefing,
        decision_points=[DecisionPointSchema(**dp) for dp in case.decision_points],
        prerequisites=[PrerequisiteSchema(**p) for p in case.prerequisites],
    )


@router.get("/cases/{case_id}/gate", response_model=GateResultSchema)
async def get_gate(
    case_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    gate = await check_prerequisites(db, current_user.id, case_id)
    return GateResultSchema(allowed=gate.allowed, unmet=[PrerequisiteSchema(**p) for p in gate.unmet])


@router.post("/cases/{case_id}/simulation", response_model=SimulationOutSchema)
async def start_simulation(
    case_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[SimulationEngine, Depends(get_engine)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Gate check, then create-or-fetch the caller's simulation for this case."""
    gate = await check_prerequisites(db, current_user.id, case_id)
    if not gate.allowed:
        raise PrerequisitesNotMetError(gate.unmet)
    simulation = await engine.create(current_user.id, case_id)
    return await simulation_out(engine, simulation)


# ---------- lessons ----------

@router.put("/lessons/{domain_id}/{module_id}/{lesson_id}/complete")
async def complete_lesson(
    domain_id: str,
    module_id: str,
    lesson_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    progress = await mark_lesson_completed(db, current_user.id, domain_id, module_id, lesson_id)
    return {
        "domain": progress.domain_id,
        "module": progress.module_id,
        "lesson": progress.lesson_id,
        "status": progress.status,
        "completed_at": progress.completed_at,
    }


# ---------- simulations ----------

@router.get("/simulations", response_model=list[SimulationOutSchema])
async def list_simulations(
    engine: Annotated[SimulationEngine, Depends(get_engine)],
    current_user: Annotated[User, Depends(get_current_user)],
    status: str | None = None,
):
    simulations = await engine.list_for_user(current_user.id, status)
    return [await simulation_out(engine, s) for s in simulations]


@router.get("/simulations/{simulation_id}", response_model=SimulationOutSchema)
async def get_simulation(
    simulation_id: str,
    engine: Annotated[SimulationEngine, Depends(get_engine)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    simulation = await engine.get_owned(simulation_id, current_user.id)
    return await simulation_out(engine, simulation)


@router.get("/simulations/{simulation_id}/state", response_model=SimulationStateSchema)
async def get_simulation_state(
    simulation_id: str,
    engine: Annotated[SimulationEngine, Depends(get_engine)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    state = await engine.state(simulation_id, current_user.id)
    return SimulationStateSchema(**state)


@router.post("/simulations/{simulation_id}/stages/{stage_id}", response_model=SimulationOutSchema)
async def submit_stage(
    simulation_id: str,
    stage_id: str,
    body: StageSubmitSchema,
    engine: Annotated[SimulationEngine, Depends(get_engine)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    simulation = await engine.submit_stage(simulation_id, current_user.id, stage_id, body.answer)
    return await simulation_out(engine, simulation)


@router.post("/simulations/{simulation_id}/complete", response_model=SimulationOutSchema)
async def complete_simulation(
    simulation_id: str,
    engine: Annotated[SimulationEngine, Depends(get_engine)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    simulation = await engine.complete(simulation_id, current_user.id)
    return await simulation_out(engine, simulation)


# ---------- notifications ----------

@router.get("/notifications", response_model=list[NotificationOutSchema])
async def list_notifications(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == current_user.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    return [NotificationOutSchema.model_validate(n) for n in result.scalars().all()]
