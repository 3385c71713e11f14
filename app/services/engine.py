"""Stage progression: create, submit stages, complete."""
import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AlreadyCompletedError, ForbiddenError, IncompleteSimulationError
from app.models.simulation import STATUS_COMPLETED, Simulation
from app.services.case_store import get_case
from app.services.completion import CompletionTrigger
from app.services.progression import (
    apply_completion,
    apply_submission,
    initial_state,
    missing_stages,
    normalize_state,
)
from app.services.state_store import SimulationStore, load_state

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SimulationEngine:
    def __init__(self, db: AsyncSession, trigger: CompletionTrigger):
        self.db = db
        self.store = SimulationStore(db)
        self.trigger = trigger

    async def create(self, user_id: int, case_id: str) -> Simulation:
        """Create-or-fetch: an existing attempt for (user, case) is returned as is."""
        case = await get_case(self.db, case_id)
        existing = await self.store.get_by_user_and_case(user_id, case_id)
        if existing is not None:
            return existing
        simulation, created = await self.store.create(user_id, case_id, initial_state(case.stage_ids))
        if created:
            logger.info("Simulation %s created for user=%s case=%s", simulation.id, user_id, case_id)
        return simulation

    async def get_owned(self, simulation_id: str, user_id: int, *, for_update: bool = False) -> Simulation:
        simulation = await self.store.get(simulation_id, for_update=for_update)
        if simulation.user_id != user_id:
            raise ForbiddenError("Forbidden")
        return simulation

    async def view_state(self, simulation: Simulation) -> dict:
        """The blob with defaults filled in for keys older records lack."""
        case = await get_case(self.db, simulation.case_id, published_only=False)
        return normalize_state(load_state(simulation), case.stage_ids)

    async def state(self, simulation_id: str, user_id: int) -> dict:
        return await self.view_state(await self.get_owned(simulation_id, user_id))

    async def list_for_user(self, user_id: int, status: str | None = None) -> list[Simulation]:
        return await self.store.list_for_user(user_id, status)

    async def submit_stage(self, simulation_id: str, user_id: int, stage_id: str, answer) -> Simulation:
        simulation = await self.get_owned(simulation_id, user_id, for_update=True)
        if simulation.status == STATUS_COMPLETED:
            raise AlreadyCompletedError(simulation.id)

        case = await get_case(self.db, simulation.case_id, published_only=False)
        new_state = apply_submission(load_state(simulation), case.stage_ids, stage_id, answer, _utcnow())
        if not await self.store.put_state(simulation.id, new_state):
            # completed by another request between our read and write
            raise AlreadyCompletedError(simulation.id)

        logger.info("Simulation %s: stage %s submitted", simulation.id, stage_id)
        return await self.store.get(simulation.id)

    async def complete(self, simulation_id: str, user_id: int) -> Simulation:
        """Terminal transition; the completion trigger fires only for the winning call."""
        simulation = await self.get_owned(simulation_id, user_id, for_update=True)
        if simulation.status == STATUS_COMPLETED:
            raise AlreadyCompletedError(simulation.id)

        case = await get_case(self.db, simulation.case_id, published_only=False)
        state = load_state(simulation)
        missing = missing_stages(state, case.stage_ids)
        if missing:
            raise IncompleteSimulationError(missing)

        now = _utcnow()
        if not await self.store.mark_completed(simulation.id, apply_completion(state, case.stage_ids, now), now):
            raise AlreadyCompletedError(simulation.id)
        logger.info("Simulation %s completed", simulation.id)

        outcomes = await self.trigger.fire(
            simulation_id=simulation.id,
            user_id=simulation.user_id,
            case_id=case.id,
            case_title=case.title,
        )
        failed = [name for name, ok in outcomes.items() if not ok]
        if failed:
            logger.warning("Simulation %s completed with failed side effects: %s", simulation.id, ", ".join(failed))
        return await self.store.get(simulation.id)
