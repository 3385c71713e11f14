"""Read-only access to case content."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.case import CASE_STATUS_PUBLISHED, Case


async def get_case(db: AsyncSession, case_id: str, *, published_only: bool = True) -> Case:
    """Return the case or raise NotFoundError.

    Existing simulations keep resolving their case with ``published_only=False``
    so that unpublishing content does not strand attempts already underway.
    """
    stmt = select(Case).where(Case.id == case_id)
    if published_only:
        stmt = stmt.where(Case.status == CASE_STATUS_PUBLISHED)
    result = await db.execute(stmt)
    case = result.scalar_one_or_none()
    if case is None:
        raise NotFoundError("Case not found")
    return case


async def list_published_cases(db: AsyncSession) -> list[Case]:
    result = await db.execute(
        select(Case).where(Case.status == CASE_STATUS_PUBLISHED).order_by(Case.title.asc())
    )
    return list(result.scalars().all())
