"""Side effects fired once when a simulation is completed.

Each effect runs in its own session, concurrently with the others and under
a timeout. Failures are logged and dropped: the completion itself has
already been committed when these run.
"""
import asyncio
import json
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.forum import ForumChannel, ForumThread
from app.models.job import JOB_STATUS_PENDING, JOB_TYPE_DEBRIEF, Job
from app.models.notification import Notification

logger = logging.getLogger(__name__)

NOTIFICATION_SIMULATION_COMPLETE = "simulation_complete"


class DebriefJobQueue:
    """Writes pending debrief jobs for the external scorer."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def enqueue(self, simulation_id: str, user_id: int) -> str:
        async with self.session_factory() as db:
            job = Job(
                type=JOB_TYPE_DEBRIEF,
                status=JOB_STATUS_PENDING,
                payload_json=json.dumps({"simulationId": simulation_id, "userId": user_id}),
            )
            db.add(job)
            await db.commit()
            return job.id


class NotificationSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def send(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        link: str | None = None,
        metadata: dict | None = None,
    ) -> int:
        async with self.session_factory() as db:
            notification = Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                link=link,
                metadata_json=json.dumps(metadata or {}),
                read=False,
            )
            db.add(notification)
            await db.commit()
            return notification.id


class ForumGateway:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], channel_slug: str):
        self.session_factory = session_factory
        self.channel_slug = channel_slug

    async def create_thread(self, author_id: int, title: str, content: str, metadata: dict) -> int | None:
        """Returns the thread id, or None when the channel does not exist."""
        async with self.session_factory() as db:
            result = await db.execute(select(ForumChannel).where(ForumChannel.slug == self.channel_slug))
            channel = result.scalar_one_or_none()
            if channel is None:
                return None
            thread = ForumThread(
                channel_id=channel.id,
                author_id=author_id,
                title=title,
                content=content,
                metadata_json=json.dumps(metadata),
            )
            db.add(thread)
            await db.commit()
            return thread.id


class CompletionTrigger:
    def __init__(
        self,
        jobs: DebriefJobQueue,
        notifications: NotificationSink,
        forum: ForumGateway | None = None,
        *,
        timeout: float = 5.0,
    ):
        self.jobs = jobs
        self.notifications = notifications
        self.forum = forum
        self.timeout = timeout

    async def fire(self, *, simulation_id: str, user_id: int, case_id: str, case_title: str) -> dict[str, bool]:
        """Run every side effect; returns effect name -> succeeded."""
        effects = {
            "debrief_job": self._enqueue_debrief(simulation_id, user_id),
            "notification": self._notify(simulation_id, user_id, case_title),
        }
        if self.forum is not None:
            effects["forum_thread"] = self._open_thread(simulation_id, user_id, case_id, case_title)

        names = list(effects)
        outcomes = await asyncio.gather(*(self._run(name, simulation_id, effects[name]) for name in names))
        return dict(zip(names, outcomes))

    async def _run(self, name: str, simulation_id: str, effect) -> bool:
        try:
            await asyncio.wait_for(effect, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Completion effect %s timed out for simulation %s", name, simulation_id)
            return False
        except Exception:
            logger.exception("Completion effect %s failed for simulation %s", name, simulation_id)
            return False
        return True

    async def _enqueue_debrief(self, simulation_id: str, user_id: int) -> None:
        job_id = await self.jobs.enqueue(simulation_id, user_id)
        logger.info("Queued debrief job %s for simulation %s", job_id, simulation_id)

    async def _notify(self, simulation_id: str, user_id: int, case_title: str) -> None:
        await self.notifications.send(
            user_id,
            NOTIFICATION_SIMULATION_COMPLETE,
            "Simulation Complete",
            f'You have completed the "{case_title}" simulation. '
            "View your after-action report to see your results and feedback.",
            link=f"/debrief/{simulation_id}",
            metadata={"simulationId": simulation_id, "caseTitle": case_title},
        )

    async def _open_thread(self, simulation_id: str, user_id: int, case_id: str, case_title: str) -> None:
        thread_id = await self.forum.create_thread(
            user_id,
            f"Discussion: {case_title}",
            f'Completed simulation "{case_title}" and would love to discuss insights '
            "and learnings with the community!",
            {"simulationId": simulation_id, "caseId": case_id, "autoCreated": True},
        )
        if thread_id is None:
            logger.info("No forum channel %r; skipped discussion thread", self.forum.channel_slug)
