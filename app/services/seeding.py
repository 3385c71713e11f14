"""Demo content: one published case and the general forum channel."""
import json
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.case import CASE_STATUS_PUBLISHED, Case
from app.models.forum import ForumChannel

logger = logging.getLogger(__name__)

DEMO_CASES = [
    {
        "id": "unit-economics-crisis",
        "title": "Unit Economics Crisis",
        "briefing": (
            "A subscription meal-kit startup is growing fast but losing money on every order. "
            "The board wants a plan before the next funding round."
        ),
        "decision_points": [
            {
                "id": "d1",
                "title": "Diagnose the margin problem",
                "prompt_schema": {"type": "text", "minWords": 50},
            },
            {
                "id": "d2",
                "title": "Choose a pricing response",
                "prompt_schema": {
                    "type": "choice",
                    "options": ["raise_prices", "cut_discounts", "change_mix"],
                },
            },
            {
                "id": "d3",
                "title": "Present the plan to the board",
                "prompt_schema": {"type": "text", "minWords": 100},
            },
        ],
        "prerequisites": [
            {
                "domain": "finance",
                "module": "unit-economics",
                "lesson": "contribution-margin",
                "title": "Contribution Margin",
            },
            {
                "domain": "finance",
                "module": "unit-economics",
                "lesson": "cac-ltv",
                "title": "CAC and LTV",
            },
        ],
    },
]

FORUM_CHANNELS = [("general", "General Discussion")]


async def seed_demo_content(db: AsyncSession) -> None:
    """Insert demo cases and channels that are not there yet."""
    added = 0
    for data in DEMO_CASES:
        if await db.get(Case, data["id"]) is not None:
            continue
        db.add(
            Case(
                id=data["id"],
                title=data["title"],
                briefing=data["briefing"],
                status=CASE_STATUS_PUBLISHED,
                decision_points_json=json.dumps(data["decision_points"]),
                prerequisites_json=json.dumps(data["prerequisites"]),
            )
        )
        added += 1

    for slug, name in FORUM_CHANNELS:
        result = await db.execute(select(ForumChannel).where(ForumChannel.slug == slug))
        if result.scalar_one_or_none() is None:
            db.add(ForumChannel(slug=slug, name=name))

    await db.commit()
    if added:
        logger.info("Seeded %d demo case(s)", added)
