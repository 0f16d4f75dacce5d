"""
Beyond Trips Backend — Side-Effect Task Queue
=============================================

What:  Durable, at-least-once execution of the secondary effects of a state
       change: driver notifications, admin audit entries and pickup counter
       updates.
How:   Producers call `enqueue_*()` inside their own transaction, so a task
       exists if and only if the change that caused it was committed. The
       worker then runs each due task in its own transaction together with
       the "completed" mark.

Execution Flow:
    ┌──────────────┐   ┌─────────────────┐   ┌──────────────────────────┐
    │ enqueue()    │──▶│ side_effect_    │──▶│ run_pending()            │
    │ (request tx) │   │ tasks (pending) │   │ handler + mark completed │
    └──────────────┘   └─────────────────┘   └──────────────────────────┘
                                                │ failure
                                                ▼
                               attempts += 1, next_attempt_at = now + backoff
                               attempts == task_max_attempts → dead

Retry layers:
    1. In-process: tenacity retries the task transaction a few times with
       short jittered waits (transient lock/connection errors).
    2. Durable: exhausted in-process retries push next_attempt_at out by
       min(base × 2^(attempts-1), max) seconds.

Callers never see handler failures; they are logged and kept on the task row.

Retention: the worker also deletes completed tasks older than
`task_retention_days` and rider scans older than `scan_retention_days`.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    before_sleep_log,
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
)

from beyondtrips.config import settings
from beyondtrips.database import async_session_factory, utcnow
from beyondtrips.exceptions import NotFoundError, ValidationError
from beyondtrips.models.notification import (
    AdminNotification,
    DriverNotification,
    SideEffectTask,
    TaskStatus,
)
from beyondtrips.models.pickup import MagazinePickup
from beyondtrips.models.rating import RiderScan

logger = logging.getLogger(__name__)

TaskHandler = Callable[[AsyncSession, Dict[str, Any]], Awaitable[None]]

# ── Task kinds ────────────────────────────────────────────────────────────
DRIVER_NOTIFY = "driver.notify"
ADMIN_LOG = "admin.log"
PICKUP_INCREMENT_COUNTERS = "pickup.increment_counters"


# ══════════════════════════════════════════════════════════════════════════
# Handlers
# ══════════════════════════════════════════════════════════════════════════

async def _handle_driver_notify(db: AsyncSession, payload: Dict[str, Any]) -> None:
    db.add(
        DriverNotification(
            driver_id=uuid.UUID(payload["driver_id"]),
            type=payload.get("type", "general"),
            title=payload["title"],
            message=payload["message"],
            priority=payload.get("priority", "medium"),
            is_read=False,
        )
    )


async def _handle_admin_log(db: AsyncSession, payload: Dict[str, Any]) -> None:
    db.add(
        AdminNotification(
            type=payload.get("type", "system"),
            title=payload["title"],
            message=payload["message"],
            priority=payload.get("priority", "low"),
            event_metadata=payload.get("metadata"),
        )
    )


async def _handle_pickup_increment(db: AsyncSession, payload: Dict[str, Any]) -> None:
    """
    Add one BTL coin and one rider scan to the driver's pickup of the magazine.

    Increments happen in SQL so concurrent awards cannot lose an update.
    A driver without a matching pickup is not an error: there is nothing to count.
    """
    driver_id = uuid.UUID(payload["driver_id"])
    magazine_id = uuid.UUID(payload["magazine_id"])
    pickup_id = payload.get("pickup_id")

    if pickup_id:
        target = select(MagazinePickup.id).where(MagazinePickup.id == uuid.UUID(pickup_id))
    else:
        target = (
            select(MagazinePickup.id)
            .where(
                MagazinePickup.driver_id == driver_id,
                MagazinePickup.magazine_id == magazine_id,
            )
            .order_by(MagazinePickup.requested_at.desc())
            .limit(1)
        )
    found = (await db.execute(target)).scalar_one_or_none()
    if found is None:
        logger.info("No pickup for driver %s / magazine %s; counters unchanged", driver_id, magazine_id)
        return

    await db.execute(
        update(MagazinePickup)
        .where(MagazinePickup.id == found)
        .values(
            btl_coins_earned=MagazinePickup.btl_coins_earned + 1,
            rider_scans=MagazinePickup.rider_scans + 1,
        )
    )


HANDLERS: Dict[str, TaskHandler] = {
    DRIVER_NOTIFY: _handle_driver_notify,
    ADMIN_LOG: _handle_admin_log,
    PICKUP_INCREMENT_COUNTERS: _handle_pickup_increment,
}


# ══════════════════════════════════════════════════════════════════════════
# Producers
# ══════════════════════════════════════════════════════════════════════════

async def enqueue(db: AsyncSession, kind: str, payload: Dict[str, Any]) -> SideEffectTask:
    """Insert a pending task in the caller's transaction."""
    if kind not in HANDLERS:
        raise ValueError(f"Unknown task kind '{kind}'")
    task = SideEffectTask(
        kind=kind,
        payload=payload,
        status=TaskStatus.PENDING.value,
        attempts=0,
        next_attempt_at=utcnow(),
    )
    db.add(task)
    await db.flush()
    logger.debug("Enqueued task %s (%s)", task.id, kind)
    return task


async def enqueue_driver_notification(
    db: AsyncSession,
    driver_id: uuid.UUID,
    title: str,
    message: str,
    type: str = "general",
    priority: str = "medium",
) -> SideEffectTask:
    return await enqueue(
        db,
        DRIVER_NOTIFY,
        {
            "driver_id": str(driver_id),
            "type": type,
            "title": title,
            "message": message,
            "priority": priority,
        },
    )


async def enqueue_admin_log(
    db: AsyncSession,
    title: str,
    message: str,
    metadata: Optional[Dict[str, Any]] = None,
    priority: str = "low",
) -> SideEffectTask:
    return await enqueue(
        db,
        ADMIN_LOG,
        {"type": "system", "title": title, "message": message, "priority": priority, "metadata": metadata},
    )


async def enqueue_pickup_counter_increment(
    db: AsyncSession,
    driver_id: uuid.UUID,
    magazine_id: uuid.UUID,
    pickup_id: Optional[uuid.UUID] = None,
) -> SideEffectTask:
    return await enqueue(
        db,
        PICKUP_INCREMENT_COUNTERS,
        {
            "driver_id": str(driver_id),
            "magazine_id": str(magazine_id),
            "pickup_id": str(pickup_id) if pickup_id else None,
        },
    )


# ══════════════════════════════════════════════════════════════════════════
# Consumer
# ══════════════════════════════════════════════════════════════════════════

@dataclass
class RunSummary:
    completed: int = 0
    retried: int = 0
    dead: int = 0

    @property
    def processed(self) -> int:
        return self.completed + self.retried + self.dead


@dataclass
class PruneSummary:
    tasks: int = 0
    scans: int = 0


def compute_backoff(attempts: int) -> timedelta:
    """Delay before the next durable attempt after `attempts` failures."""
    exponent = max(attempts - 1, 0)
    seconds = min(
        settings.task_backoff_base_seconds * (2 ** exponent),
        settings.task_backoff_max_seconds,
    )
    return timedelta(seconds=seconds)


class TaskQueue:
    """
    Runs pending side-effect tasks against a session factory.

    Stateless apart from the factory, so tests construct their own instance
    bound to an in-memory database.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session_factory

    async def run_pending(self, now: Optional[datetime] = None) -> RunSummary:
        """
        Execute every due pending task once.

        Returns counts of completed, rescheduled and dead-lettered tasks.
        Never raises for handler failures.
        """
        now = now or utcnow()
        summary = RunSummary()

        async with self.session_factory() as session:
            result = await session.execute(
                select(SideEffectTask.id, SideEffectTask.kind)
                .where(
                    SideEffectTask.status == TaskStatus.PENDING.value,
                    SideEffectTask.next_attempt_at <= now,
                )
                .order_by(SideEffectTask.next_attempt_at)
                .limit(settings.task_batch_size)
            )
            due = list(result.all())

        for task_id, kind in due:
            if kind not in HANDLERS:
                await self._record_failure(task_id, f"No handler registered for '{kind}'", now, dead=True)
                summary.dead += 1
                continue
            try:
                await self._run_once(task_id)
            except Exception as e:
                logger.error("Task %s (%s) failed: %s", task_id, kind, str(e))
                became_dead = await self._record_failure(task_id, f"{type(e).__name__}: {e}", now)
                if became_dead:
                    summary.dead += 1
                else:
                    summary.retried += 1
            else:
                summary.completed += 1

        if summary.processed:
            logger.info(
                "Task run: %d completed, %d rescheduled, %d dead",
                summary.completed, summary.retried, summary.dead,
            )
        return summary

    @retry(
        stop=stop_after_attempt(settings.task_inline_retries),
        wait=wait_exponential_jitter(initial=0.05, max=1, jitter=0.05),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _run_once(self, task_id: uuid.UUID) -> None:
        """Handler and completion mark share one transaction."""
        async with self.session_factory() as session:
            async with session.begin():
                task = (
                    await session.execute(
                        select(SideEffectTask)
                        .where(
                            SideEffectTask.id == task_id,
                            SideEffectTask.status == TaskStatus.PENDING.value,
                        )
                        .with_for_update(skip_locked=True)
                    )
                ).scalar_one_or_none()
                if task is None:
                    # Completed or claimed by another worker meanwhile
                    return
                await HANDLERS[task.kind](session, dict(task.payload or {}))
                task.attempts += 1
                task.status = TaskStatus.COMPLETED.value
                task.completed_at = utcnow()
                task.last_error = None

    async def _record_failure(
        self, task_id: uuid.UUID, error: str, now: datetime, dead: bool = False
    ) -> bool:
        """Persist a failed attempt; returns True when the task is now dead."""
        async with self.session_factory() as session:
            async with session.begin():
                task = await session.get(SideEffectTask, task_id)
                if task is None:
                    return False
                task.attempts += 1
                task.last_error = error[:2000]
                if dead or task.attempts >= settings.task_max_attempts:
                    task.status = TaskStatus.DEAD.value
                    logger.error(
                        "Task %s (%s) is dead after %d attempts: %s",
                        task.id, task.kind, task.attempts, error,
                    )
                    return True
                task.next_attempt_at = now + compute_backoff(task.attempts)
                logger.warning(
                    "Task %s (%s) rescheduled for %s (attempt %d)",
                    task.id, task.kind, task.next_attempt_at.isoformat(), task.attempts,
                )
                return False

    async def drain(self) -> Optional[RunSummary]:
        """run_pending() for fire-and-forget callers; infrastructure errors are logged."""
        try:
            return await self.run_pending()
        except Exception as e:
            # Tasks stay pending; the next drain or worker tick picks them up
            logger.error("Side-effect drain failed: %s", str(e), exc_info=True)
            return None

    # ── Operator helpers ──────────────────────────────────────────────────

    async def list_tasks(
        self, db: AsyncSession, status: Optional[str] = None, limit: int = 50
    ) -> Tuple[List[SideEffectTask], int]:
        query = select(SideEffectTask)
        count_query = select(func.count(SideEffectTask.id))
        if status:
            if status not in {s.value for s in TaskStatus}:
                raise ValidationError(message=f"Unknown task status '{status}'", field="status")
            query = query.where(SideEffectTask.status == status)
            count_query = count_query.where(SideEffectTask.status == status)
        query = query.order_by(SideEffectTask.created_at.desc()).limit(limit)
        tasks = list((await db.execute(query)).scalars().all())
        total = (await db.execute(count_query)).scalar() or 0
        return tasks, total

    async def retry_task(self, db: AsyncSession, task_id: uuid.UUID) -> SideEffectTask:
        """Put a dead (or pending) task back at the head of the queue."""
        task = await db.get(SideEffectTask, task_id)
        if task is None:
            raise NotFoundError(resource="task", resource_id=str(task_id))
        if task.status == TaskStatus.COMPLETED.value:
            raise ValidationError(message="Completed tasks cannot be retried", field="status")
        task.status = TaskStatus.PENDING.value
        task.attempts = 0
        task.next_attempt_at = utcnow()
        await db.flush()
        logger.info("Task %s (%s) re-queued by operator", task.id, task.kind)
        return task

    async def count_by_status(self, db: AsyncSession) -> Dict[str, int]:
        rows = await db.execute(
            select(SideEffectTask.status, func.count(SideEffectTask.id)).group_by(SideEffectTask.status)
        )
        return {status: count for status, count in rows.all()}

    # ── Retention ─────────────────────────────────────────────────────────

    async def prune(self, now: Optional[datetime] = None) -> PruneSummary:
        """
        Delete completed tasks and rider scans past their retention window.

        Dead and pending tasks are kept whatever their age; an operator
        decides what happens to those. Scans only matter for the rescan
        cool-down, so anything older than `scan_retention_days` is history.
        """
        now = now or utcnow()
        task_cutoff = now - timedelta(days=settings.task_retention_days)
        scan_cutoff = now - timedelta(days=settings.scan_retention_days)

        async with self.session_factory() as session:
            async with session.begin():
                tasks = await session.execute(
                    delete(SideEffectTask).where(
                        SideEffectTask.status == TaskStatus.COMPLETED.value,
                        SideEffectTask.completed_at < task_cutoff,
                    )
                )
                scans = await session.execute(
                    delete(RiderScan).where(RiderScan.created_at < scan_cutoff)
                )

        summary = PruneSummary(tasks=tasks.rowcount or 0, scans=scans.rowcount or 0)
        if summary.tasks or summary.scans:
            logger.info("Pruned %d completed tasks and %d rider scans", summary.tasks, summary.scans)
        return summary

    async def sweep(self) -> Optional[PruneSummary]:
        """prune() for the worker loop; errors are logged and retried next sweep."""
        try:
            return await self.prune()
        except Exception as e:
            logger.error("Retention sweep failed: %s", str(e), exc_info=True)
            return None


class TaskWorker:
    """
    Background loop draining the queue every `task_poll_interval_seconds`
    and sweeping expired rows every `retention_sweep_interval_seconds`.

    Started and stopped by the application lifespan.
    """

    def __init__(
        self,
        queue: TaskQueue,
        interval: Optional[float] = None,
        sweep_interval: Optional[float] = None,
    ):
        self.queue = queue
        self.interval = interval or settings.task_poll_interval_seconds
        self.sweep_interval = sweep_interval or settings.retention_sweep_interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()
        self._next_sweep = 0.0

    def start(self) -> None:
        if self._task is None:
            self._stopping.clear()
            self._task = asyncio.create_task(self._loop(), name="side-effect-worker")
            logger.info("Side-effect worker started (interval=%.1fs)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        logger.info("Side-effect worker stopped")

    async def _loop(self) -> None:
        clock = asyncio.get_running_loop()
        while not self._stopping.is_set():
            await self.queue.drain()
            if clock.time() >= self._next_sweep:
                await self.queue.sweep()
                self._next_sweep = clock.time() + self.sweep_interval
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass


task_queue = TaskQueue()


async def run_pending(
    session_factory: Optional[async_sessionmaker] = None, now: Optional[datetime] = None
) -> RunSummary:
    """Drain due tasks once; used by BackgroundTasks after a request commits."""
    queue = TaskQueue(session_factory) if session_factory else task_queue
    return await queue.run_pending(now)
