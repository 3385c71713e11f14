"""Durable simulation records. Ownership checks belong to the caller."""
import json
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.simulation import STATUS_COMPLETED, STATUS_IN_PROGRESS, Simulation

logger = logging.getLogger(__name__)


def load_state(simulation: Simulation) -> dict:
    """Decode the state blob; anything that is not a JSON object reads as empty."""
    raw = json.loads(simulation.state_json or "{}")
    return raw if isinstance(raw, dict) else {}


def dump_state(state: dict) -> str:
    return json.dumps(state, ensure_ascii=False, default=str)


class SimulationStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, simulation_id: str, *, for_update: bool = False) -> Simulation:
        stmt = (
            select(Simulation)
            .where(Simulation.id == simulation_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            # row lock on PostgreSQL; SQLite serializes writers on its own
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        simulation = result.scalar_one_or_none()
        if simulation is None:
            raise NotFoundError("Simulation not found")
        return simulation

    async def get_by_user_and_case(self, user_id: int, case_id: str) -> Simulation | None:
        result = await self.db.execute(
            select(Simulation)
            .where(Simulation.user_id == user_id, Simulation.case_id == case_id)
            .order_by(Simulation.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int, status: str | None = None) -> list[Simulation]:
        stmt = select(Simulation).where(Simulation.user_id == user_id)
        if status:
            stmt = stmt.where(Simulation.status == status)
        result = await self.db.execute(
            stmt.order_by(Simulation.created_at.desc()).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def create(self, user_id: int, case_id: str, state: dict) -> tuple[Simulation, bool]:
        """Insert a new in-progress record; returns (simulation, created).

        A concurrent insert for the same (user, case) loses on the unique
        constraint and gets the winner's record back.
        """
        simulation = Simulation(
            user_id=user_id,
            case_id=case_id,
            status=STATUS_IN_PROGRESS,
            state_json=dump_state(state),
        )
        self.db.add(simulation)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_by_user_and_case(user_id, case_id)
            if existing is None:
                raise
            logger.info("Concurrent create for user=%s case=%s resolved to %s", user_id, case_id, existing.id)
            return existing, False
        await self.db.refresh(simulation)
        return simulation, True

    async def put_state(self, simulation_id: str, state: dict) -> bool:
        """Replace the whole blob in one UPDATE; False if the record is no longer in progress."""
        result = await self.db.execute(
            update(Simulation)
            .where(Simulation.id == simulation_id, Simulation.status == STATUS_IN_PROGRESS)
            .values(state_json=dump_state(state), updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def mark_completed(self, simulation_id: str, state: dict, completed_at: datetime) -> bool:
        """The in_progress -> completed transition; only one caller can win it."""
        result = await self.db.execute(
            update(Simulation)
            .where(Simulation.id == simulation_id, Simulation.status == STATUS_IN_PROGRESS)
            .values(
                status=STATUS_COMPLETED,
                completed_at=completed_at,
                updated_at=completed_at,
                state_json=dump_state(state),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1
