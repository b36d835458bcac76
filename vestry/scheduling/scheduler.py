"""Periodic job runner driven by an external cron tick."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from ..cache import LeaderDirectory
from ..civil_time import Clock, SystemClock, aware, week_start
from ..config import VestryConfig
from ..records import RecordSource, ScheduleItem
from ..results import Outcome
from ..store import StateStore
from ..transports import ChatTransport, Choice
from . import messages
from .ledger import FiredLedger
from .rules import CalendarRule, LastDayOfMonthRule, MonthlyDayRule, RelativeOffsetRule, WeeklyRule

logger = logging.getLogger(__name__)

Action = Callable[[datetime], Awaitable[bool]]


class CalendarJob:
    """A named action fired by a calendar rule."""

    def __init__(self, name: str, rule: CalendarRule, action: Action) -> None:
        self.name = name
        self.rule = rule
        self.action = action

    def key(self, now: datetime) -> str:
        return f"{self.name}:{self.rule.occurrence_key(now)}"


class Scheduler:
    """Evaluate every job on each tick and perform the due ones at most once.

    A job is recorded in the fired ledger only after its action succeeds, so
    a failure is retried by the next tick that still falls inside the window.
    """

    def __init__(
        self,
        store: StateStore,
        transport: ChatTransport,
        records: RecordSource,
        config: Optional[VestryConfig] = None,
        leaders: Optional[LeaderDirectory] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.config = config or VestryConfig()
        self.transport = transport
        self.records = records
        self.clock = clock or SystemClock()
        self.ledger = FiredLedger(store)
        self.leaders = leaders or LeaderDirectory(
            records,
            ttl=timedelta(seconds=self.config.dispatch.leaders_cache_ttl_seconds),
            clock=self.clock,
        )
        self.jobs = self._calendar_jobs()

    @property
    def timezone(self) -> str:
        return self.config.schedule.timezone

    def _calendar_jobs(self) -> List[CalendarJob]:
        common = {
            "timezone": self.config.schedule.timezone,
            "grace_minutes": self.config.schedule.grace_minutes,
        }
        return [
            CalendarJob(
                "weekly_schedule",
                WeeklyRule(weekday=0, hour=9, **common),
                self._send_weekly_schedule,
            ),
            CalendarJob(
                "admin_weekly_schedule",
                WeeklyRule(weekday=5, hour=12, **common),
                self._send_admin_weekly_schedule,
            ),
            CalendarJob(
                "youth_report_reminder",
                LastDayOfMonthRule(hour=18, **common),
                self._send_youth_report_reminder,
            ),
            CalendarJob(
                "youth_care_reminder",
                MonthlyDayRule(day=15, hour=12, **common),
                self._send_youth_care_reminder,
            ),
        ]

    def poll_rule(self, event: ScheduleItem) -> RelativeOffsetRule:
        return RelativeOffsetRule(
            event_at=event.starts_at,
            offset_hours=self.config.schedule.poll_offset_hours,
            grace_minutes=self.config.schedule.grace_minutes,
        )

    def notice_rule(self, event: ScheduleItem) -> RelativeOffsetRule:
        return RelativeOffsetRule(
            event_at=event.starts_at,
            offset_hours=self.config.schedule.notify_offset_hours,
            grace_minutes=self.config.schedule.grace_minutes,
        )

    def due_jobs(self, now: datetime) -> List[CalendarJob]:
        return [job for job in self.jobs if job.rule.is_due(now)]

    # ------------------------------------------------------------------
    async def run_tick(self, now: Optional[datetime] = None) -> Outcome:
        now = aware(now or self.clock.now())
        counts: Dict[str, int] = {"sent": 0, "skipped": 0, "failed": 0}

        for job in self.due_jobs(now):
            await self._fire(job.key(now), job.action, now, counts)

        schedule = self.config.schedule
        try:
            events = await self.records.find_events_between(
                now, now + timedelta(hours=schedule.lookahead_hours), schedule.event_types
            )
        except Exception:
            logger.exception("Could not load upcoming events")
            counts["failed"] += 1
            events = []

        for event in events:
            if not event.id:
                logger.warning(f"Skipping event without id: {event.title}")
                continue
            if self.notice_rule(event).is_due(now):
                await self._fire(
                    f"event_poll_notice:{event.id}", self._notice_action(event), now, counts
                )
            if self.poll_rule(event).is_due(now):
                await self._fire(f"event_poll:{event.id}", self._poll_action(event), now, counts)

        summary = ", ".join(f"{k}={v}" for k, v in counts.items())
        logger.info(f"Scheduler tick at {now.isoformat()}: {summary}")
        if counts["failed"]:
            return Outcome.failure("scheduled_action_failed", summary, **counts)
        return Outcome.success(summary, **counts)

    async def _fire(
        self, key: str, action: Action, now: datetime, counts: Dict[str, int]
    ) -> None:
        try:
            if await self.ledger.has_fired(key):
                logger.info(f"{key} already fired, skipping")
                counts["skipped"] += 1
                return
            if not await action(now):
                counts["failed"] += 1
                return
            await self.ledger.mark_fired(key, now)
        except Exception:
            logger.exception(f"Scheduled action {key} failed")
            counts["failed"] += 1
            return
        counts["sent"] += 1

    # ------------------------------------------------------------------
    # Delivery helpers
    async def _deliver(
        self, targets: Iterable[int | str], text: str, thread_id: Optional[int] = None
    ) -> bool:
        targets = list(targets)
        if not targets:
            logger.warning("No recipients configured for scheduled message")
            return False
        ok = True
        for target in targets:
            result = await self.transport.send_text(target, text, thread_id=thread_id)
            if not result.ok:
                logger.error(f"Delivery to {target} failed: {result.error}")
                ok = False
        return ok

    def _main_group(self) -> List[int]:
        group = self.config.telegram.main_group_id
        return [group] if group is not None else []

    # ------------------------------------------------------------------
    # Actions
    async def _send_weekly_schedule(self, now: datetime) -> bool:
        start = week_start(now, self.timezone)
        items = await self.records.list_week_records(start)
        text = messages.format_week(start, items, self.timezone)
        return await self._deliver(
            self._main_group(), text, thread_id=self.config.telegram.announcements_topic_id
        )

    async def _send_admin_weekly_schedule(self, now: datetime) -> bool:
        start = week_start(now, self.timezone, weeks_ahead=1)
        items = await self.records.list_week_records(start)
        text = messages.format_week(start, items, self.timezone)
        return await self._deliver(self.config.telegram.admin_ids, text)

    async def _send_youth_report_reminder(self, now: datetime) -> bool:
        leaders = await self.leaders.leaders()
        targets = [leader.telegram_id for leader in leaders if leader.telegram_id is not None]
        return await self._deliver(targets, messages.YOUTH_REPORT_REMINDER)

    async def _send_youth_care_reminder(self, now: datetime) -> bool:
        return await self._deliver(self.config.telegram.admin_ids, messages.YOUTH_CARE_REMINDER)

    def _poll_action(self, event: ScheduleItem) -> Action:
        async def send_poll(now: datetime) -> bool:
            targets = self._main_group()
            if not targets:
                logger.warning("No main group configured for event polls")
                return False
            result = await self.transport.send_choice(
                targets[0],
                messages.poll_question(event, self.timezone),
                [Choice(label=label) for label in messages.POLL_OPTIONS],
                poll=True,
            )
            if not result.ok:
                logger.error(f"Poll for {event.id} failed: {result.error}")
            return result.ok

        return send_poll

    def _notice_action(self, event: ScheduleItem) -> Action:
        hours = self.config.schedule.notify_offset_hours - self.config.schedule.poll_offset_hours

        async def send_notice(now: datetime) -> bool:
            text = messages.poll_notice(event, self.timezone, hours)
            return await self._deliver(self.config.telegram.admin_ids, text)

        return send_notice
