"""Prerequisite gate: a case's interactive stage needs its lessons completed first."""
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.lesson_progress import LESSON_STATUS_COMPLETED, LessonProgress
from app.services.case_store import get_case

LessonKey = tuple[str, str, str]


@dataclass
class GateResult:
    allowed: bool
    unmet: list[dict] = field(default_factory=list)


def lesson_key(prereq: dict) -> LessonKey:
    return (prereq["domain"], prereq["module"], prereq["lesson"])


def unmet_prerequisites(prerequisites: list[dict], completed: set[LessonKey]) -> list[dict]:
    """Prerequisites without a completion record, in declared order."""
    return [p for p in prerequisites if lesson_key(p) not in completed]


async def completed_lessons(db: AsyncSession, user_id: int) -> set[LessonKey]:
    result = await db.execute(
        select(LessonProgress.domain_id, LessonProgress.module_id, LessonProgress.lesson_id).where(
            LessonProgress.user_id == user_id,
            LessonProgress.status == LESSON_STATUS_COMPLETED,
        )
    )
    return {(d, m, l) for d, m, l in result.all()}


async def check_prerequisites(db: AsyncSession, user_id: int, case_id: str) -> GateResult:
    """Raises NotFoundError when the case is unknown or unpublished."""
    case = await get_case(db, case_id)
    # entries missing any part of the triple cannot be checked and are ignored
    prerequisites = [p for p in case.prerequisites if p.get("domain") and p.get("module") and p.get("lesson")]
    if not prerequisites:
        return GateResult(allowed=True)
    unmet = unmet_prerequisites(prerequisites, await completed_lessons(db, user_id))
    return GateResult(allowed=not unmet, unmet=unmet)


async def mark_lesson_completed(
    db: AsyncSession, user_id: int, domain_id: str, module_id: str, lesson_id: str
) -> LessonProgress:
    """Record a lesson completion (idempotent)."""
    result = await db.execute(
        select(LessonProgress).where(
            LessonProgress.user_id == user_id,
            LessonProgress.domain_id == domain_id,
            LessonProgress.module_id == module_id,
            LessonProgress.lesson_id == lesson_id,
        )
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        progress = LessonProgress(
            user_id=user_id,
            domain_id=domain_id,
            module_id=module_id,
            lesson_id=lesson_id,
        )
        db.add(progress)
    if progress.status != LESSON_STATUS_COMPLETED:
        progress.status = LESSON_STATUS_COMPLETED
        progress.completed_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(progress)
    return progress
