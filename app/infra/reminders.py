"""
Appointment reminders.

Two jobs per appointment, 24h and 2h before the start. Jobs live in a
Redis sorted set scored by due timestamp (payloads in separate keys);
without Redis they are kept in process memory. A worker task polls for
due jobs, re-checks the appointment and sends the WhatsApp text.

Job ids are deterministic ("{appointment_id}-24h"), so scheduling twice
overwrites and cancelling needs only the appointment id.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from redis.asyncio import Redis

from app.config import settings
from app.core.scheduling.response import MessageFormatter
from app.infra.redis import APP_PREFIX, get_redis
from app.infra.twilio import get_whatsapp_client

logger = logging.getLogger(__name__)

REMINDER_QUEUE_KEY = f"{APP_PREFIX}reminders:due"
REMINDER_JOB_PREFIX = f"{APP_PREFIX}reminders:job:"

REMINDER_OFFSETS = {
    "24h": timedelta(hours=24),
    "2h": timedelta(hours=2),
}

# First retry after 2s, then 4s, 8s...
RETRY_BASE_SECONDS = 2


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass
class ReminderJob:
    """One pending reminder message."""

    appointment_id: str
    reminder_type: str  # "24h" | "2h"
    customer_phone: str
    employee_name: str
    start_time: datetime
    end_time: datetime
    due_at: datetime
    customer_name: Optional[str] = None
    attempts: int = 0

    @property
    def job_id(self) -> str:
        return f"{self.appointment_id}-{self.reminder_type}"

    def to_json(self) -> str:
        """Convert to JSON string for storage."""
        return json.dumps(
            {
                "appointment_id": self.appointment_id,
                "reminder_type": self.reminder_type,
                "customer_phone": self.customer_phone,
                "customer_name": self.customer_name,
                "employee_name": self.employee_name,
                "start_time": self.start_time.isoformat(),
                "end_time": self.end_time.isoformat(),
                "due_at": self.due_at.isoformat(),
                "attempts": self.attempts,
            }
        )

    @classmethod
    def from_json(cls, json_str: str) -> "ReminderJob":
        """Create from JSON string."""
        data = json.loads(json_str)
        return cls(
            appointment_id=data["appointment_id"],
            reminder_type=data["reminder_type"],
            customer_phone=data["customer_phone"],
            customer_name=data.get("customer_name"),
            employee_name=data.get("employee_name", ""),
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=datetime.fromisoformat(data["end_time"]),
            due_at=datetime.fromisoformat(data["due_at"]),
            attempts=data.get("attempts", 0),
        )


class ReminderScheduler:
    """
    Schedules, cancels and delivers appointment reminders.

    Key pattern:
        whatsapp:v1:reminders:due           ZSET job_id -> due epoch seconds
        whatsapp:v1:reminders:job:{job_id}  job payload JSON
    """

    def __init__(
        self,
        send_message: Optional[Callable[[str, str], Awaitable[object]]] = None,
        use_redis: Optional[bool] = None,
        max_attempts: Optional[int] = None,
    ):
        """Initialize scheduler.

        Args:
            send_message: Outbound transport, called as send_message(phone, text)
            use_redis: Force backend choice (defaults to settings.session_backend)
            max_attempts: Delivery attempts per job (defaults to settings)
        """
        self._send = send_message
        self._use_redis = (
            settings.session_backend == "redis" if use_redis is None else use_redis
        )
        self._max_attempts = max_attempts or settings.reminder_max_attempts
        self._in_memory: dict[str, ReminderJob] = {}

    async def _get_redis(self) -> Optional[Redis]:
        if not self._use_redis:
            return None
        return await get_redis()

    # === Storage ===

    async def _put(self, job: ReminderJob) -> None:
        redis = await self._get_redis()

        if redis:
            await redis.set(f"{REMINDER_JOB_PREFIX}{job.job_id}", job.to_json())
            await redis.zadd(REMINDER_QUEUE_KEY, {job.job_id: job.due_at.timestamp()})
        else:
            self._in_memory[job.job_id] = job

    async def _remove(self, job_id: str) -> bool:
        redis = await self._get_redis()

        if redis:
            removed = await redis.zrem(REMINDER_QUEUE_KEY, job_id)
            await redis.delete(f"{REMINDER_JOB_PREFIX}{job_id}")
            return bool(removed)

        return self._in_memory.pop(job_id, None) is not None

    async def _claim_due(self, now: datetime) -> list[ReminderJob]:
        """Take every job due at or before now off the queue."""
        redis = await self._get_redis()

        if redis:
            jobs = []
            for job_id in await redis.zrangebyscore(REMINDER_QUEUE_KEY, 0, now.timestamp()):
                # zrem succeeds for exactly one worker
                if not await redis.zrem(REMINDER_QUEUE_KEY, job_id):
                    continue
                key = f"{REMINDER_JOB_PREFIX}{job_id}"
                raw = await redis.get(key)
                await redis.delete(key)
                if raw:
                    jobs.append(ReminderJob.from_json(raw))
            return jobs

        due = [job for job in self._in_memory.values() if job.due_at <= now]
        for job in due:
            del self._in_memory[job.job_id]
        return sorted(due, key=lambda job: job.due_at)

    async def pending_jobs(self) -> list[ReminderJob]:
        """Every job not yet delivered (diagnostics)."""
        redis = await self._get_redis()

        if redis:
            jobs = []
            for job_id in await redis.zrange(REMINDER_QUEUE_KEY, 0, -1):
                raw = await redis.get(f"{REMINDER_JOB_PREFIX}{job_id}")
                if raw:
                    jobs.append(ReminderJob.from_json(raw))
            return jobs

        return sorted(self._in_memory.values(), key=lambda job: job.due_at)

    # === Scheduling ===

    async def schedule_reminders(
        self,
        appointment_id: str,
        customer_phone: str,
        employee_name: str,
        start_time: datetime,
        end_time: datetime,
        customer_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[str]:
        """
        Queue the 24h and 2h reminders for an appointment.

        A reminder whose moment has already passed is skipped.

        Returns:
            Ids of the jobs queued
        """
        now = now or _utcnow()
        scheduled = []

        for reminder_type, offset in REMINDER_OFFSETS.items():
            due_at = start_time - offset
            if due_at <= now:
                logger.debug(f"Skipping {reminder_type} reminder for {appointment_id}: already due")
                continue

            job = ReminderJob(
                appointment_id=appointment_id,
                reminder_type=reminder_type,
                customer_phone=customer_phone,
                customer_name=customer_name,
                employee_name=employee_name,
                start_time=start_time,
                end_time=end_time,
                due_at=due_at,
            )
            await self._put(job)
            scheduled.append(job.job_id)

        logger.info(f"Scheduled reminders for appointment {appointment_id}: {scheduled}")
        return scheduled

    async def cancel_reminders(self, appointment_id: str) -> int:
        """
        Drop every pending reminder of an appointment.

        Returns:
            Number of jobs removed
        """
        removed = 0
        for reminder_type in REMINDER_OFFSETS:
            if await self._remove(f"{appointment_id}-{reminder_type}"):
                removed += 1

        logger.info(f"Cancelled {removed} reminders for appointment {appointment_id}")
        return removed

    # === Delivery ===

    async def process_reminder(self, job: ReminderJob, store) -> bool:
        """
        Deliver one reminder unless the appointment is gone or cancelled.

        Returns:
            True if a message was sent
        """
        appointment = await store.get_appointment(job.appointment_id)
        if appointment is None or appointment.is_cancelled:
            logger.info(f"Skipping reminder {job.job_id}: appointment not active")
            return False

        text = MessageFormatter.format_reminder(
            job.reminder_type,
            appointment.employee_name or job.employee_name,
            appointment.start_time,
            appointment.end_time,
        )
        await self._send(job.customer_phone, text)
        logger.info(f"Reminder {job.job_id} sent to {job.customer_phone}")
        return True

    async def process_due(self, store, now: Optional[datetime] = None) -> int:
        """
        Deliver every due reminder.

        Failed deliveries are re-queued with exponential backoff until
        max_attempts is reached.

        Args:
            store: EntityStore used to re-check each appointment
            now: Reference instant (defaults to UTC now)

        Returns:
            Number of reminders sent
        """
        now = now or _utcnow()
        sent = 0

        for job in await self._claim_due(now):
            try:
                if await self.process_reminder(job, store):
                    sent += 1
            except Exception as e:
                job.attempts += 1
                if job.attempts >= self._max_attempts:
                    logger.error(
                        f"Reminder {job.job_id} failed {job.attempts} times, giving up: {e}"
                    )
                    continue

                job.due_at = now + timedelta(seconds=RETRY_BASE_SECONDS * 2 ** (job.attempts - 1))
                logger.warning(
                    f"Reminder {job.job_id} failed (attempt {job.attempts}), "
                    f"retrying at {job.due_at.isoformat()}: {e}"
                )
                await self._put(job)

        return sent

    async def run(self, store, interval: Optional[float] = None) -> None:
        """
        Poll for due reminders until cancelled.

        Usage:
            task = asyncio.create_task(scheduler.run(store))
            ...
            task.cancel()
        """
        interval = interval or settings.reminder_poll_interval
        logger.info(f"Reminder worker started (every {interval}s)")

        while True:
            try:
                await self.process_due(store)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Reminder worker iteration failed: {e}", exc_info=True)

            await asyncio.sleep(interval)


# Singleton
_scheduler: Optional[ReminderScheduler] = None


def get_reminder_scheduler() -> ReminderScheduler:
    """Get singleton ReminderScheduler wired to the WhatsApp transport."""
    global _scheduler
    if _scheduler is None:
        _scheduler = ReminderScheduler(send_message=get_whatsapp_client().send_message)
    return _scheduler
