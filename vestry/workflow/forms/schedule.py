"""Weekly schedule form: add an entry or edit one picked from a week."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional

from ...civil_time import local_instant, to_zone, week_start
from ...errors import ChoiceDecodeError, ValidationFailure
from ...records import ScheduleItem, UpsertResult
from ...results import Outcome
from ..actions import (
    Action,
    BackToReview,
    Confirm,
    ContinueEdit,
    EditField,
    FreeText,
    Pick,
    SetValue,
)
from ..codec import decode_choice, index_choices
from ..machine import WorkflowDefinition, WorkflowState, begin, merge_data, validate_before_commit
from .base import FormHandler, Prompt

logger = logging.getLogger(__name__)

KIND = "schedule"

DATE_FORMATS = ("%d.%m.%Y %H:%M", "%d.%m.%Y")


def validate_schedule(state: WorkflowState) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not state.data.get("date"):
        errors["date"] = "Set the date"
    if not (state.data.get("title") or "").strip():
        errors["title"] = "Set the title"
    return errors


DEFINITION = WorkflowDefinition(
    kind=KIND,
    start="mode",
    transitions={
        "mode": ["date", "select_week"],
        "select_week": ["preview_week"],
        "preview_week": ["select_service", "select_week"],
        "select_service": ["review"],
        "date": ["title", "review"],
        "title": ["review"],
        "review": ["title", "date", "select_week", "completed"],
        "completed": ["review"],
    },
    validator=validate_schedule,
)


def parse_local_datetime(text: str) -> Optional[datetime]:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text.strip(), fmt)
        except ValueError:
            continue
    return None


class ScheduleForm(FormHandler):
    definition = DEFINITION
    free_text_steps = frozenset({"date", "title"})

    async def start(self, subject_id: str, conversation_id: str) -> Outcome:
        return await self.present(begin(self.definition, subject_id, conversation_id))

    def render(self, state: WorkflowState) -> Prompt:
        step, data = state.step, state.data
        nav = [self.cancel_button()]
        if data.get("mode") == "edit" and step in self.free_text_steps:
            nav = [self.button("Back to review", "review")] + nav

        if step == "mode":
            return "Schedule: add an entry or edit an existing one?", [
                self.button("Add", "set", "mode", "create"),
                self.button("Edit", "set", "mode", "edit"),
                self.cancel_button(),
            ]
        if step == "select_week":
            return "Which week?", [
                self.button("This week", "set", "week", "current"),
                self.button("Next week", "set", "week", "next"),
                self.cancel_button(),
            ]
        if step == "preview_week":
            labels = data.get("week_labels") or []
            if not labels:
                return "Nothing is scheduled for that week.", [
                    self.button("Another week", "edit", "week"),
                    self.cancel_button(),
                ]
            return "Choose the entry to edit:\n" + "\n".join(labels), index_choices(
                KIND, "week_records", data.get("week_records") or [], labels=labels
            ) + [self.button("Another week", "edit", "week"), self.cancel_button()]
        if step == "date":
            return "Send the date and time as dd.mm.yyyy hh:mm:", nav
        if step == "title":
            return "Send the title:", nav
        if step == "review":
            when = data.get("date")
            lines = [
                "<b>Schedule entry</b>",
                f"Date: {when:%d.%m.%Y %H:%M}" if when else "Date: not set",
                f"Title: {data.get('title') or 'not set'}",
            ]
            choices = [self.button("Title", "edit", "title"), self.button("Date", "edit", "date")]
            if data.get("mode") == "edit":
                choices.append(self.button("Another entry", "edit", "week"))
            return "\n".join(lines), choices + [self.button("Save", "confirm"), self.cancel_button()]
        if step == "completed":
            return "Saved.", [self.button("Keep editing", "continue"), self.cancel_button("Finish")]
        # select_service is passed through on the way to review
        raise ValueError(f"{KIND}: no prompt for step {step}")

    # ------------------------------------------------------------------
    async def handle(self, state: WorkflowState, action: Action) -> Outcome:
        step = state.step
        if isinstance(action, SetValue):
            if step == "mode" and action.field == "mode" and action.value in ("create", "edit"):
                target = "date" if action.value == "create" else "select_week"
                return await self.present(self.go(state, target, mode=action.value))
            if step == "select_week" and action.field == "week" and action.value in ("current", "next"):
                return await self.present(await self._load_week(state, action.value))
            return await self.unexpected(state)
        if isinstance(action, Pick) and step == "preview_week" and action.list_name == "week_records":
            return await self._on_pick(state, action.index)
        if isinstance(action, FreeText) and step in self.free_text_steps:
            return await self._on_text(state, action.text)
        if isinstance(action, EditField) and step in ("review", "preview_week"):
            if action.field == "week" and state.data.get("mode") == "edit":
                return await self.present(self.go(state, "select_week"))
            if action.field in ("title", "date") and step == "review":
                return await self.present(self.go(state, action.field))
            return await self.unexpected(state)
        if isinstance(action, BackToReview) and step in self.free_text_steps and state.data.get("mode") == "edit":
            return await self.present(self.go(state, "review"))
        if isinstance(action, Confirm) and step == "review":
            return await self._commit(state)
        if isinstance(action, ContinueEdit) and step == "completed":
            return await self.present(self.go(state, "review"))
        return await self.unexpected(state)

    async def _load_week(self, state: WorkflowState, week: str) -> WorkflowState:
        zone = self.ctx.config.schedule.timezone
        start = week_start(self.ctx.clock.now(), zone, weeks_ahead=1 if week == "next" else 0)
        items = await self.ctx.records.list_week_records(start)
        items = [item for item in items if item.id]
        labels = [f"{to_zone(i.starts_at, zone):%a %d.%m %H:%M} {i.title}" for i in items]
        return self.go(
            state,
            "preview_week",
            week=week,
            week_records=[item.id for item in items],
            week_labels=labels,
        )

    async def _on_pick(self, state: WorkflowState, index: int) -> Outcome:
        try:
            record_id = decode_choice(state, "week_records", index)
        except ChoiceDecodeError:
            return await self._reload_week(state)
        item = await self.ctx.records.get_record(record_id)
        if item is None:
            return await self._reload_week(state)
        local = to_zone(item.starts_at, self.ctx.config.schedule.timezone)
        state = self.go(
            state,
            "select_service",
            service_id=item.id,
            title=item.title,
            date=local.replace(tzinfo=None),
            type=item.type,
            theme=item.theme,
            location=item.location,
        )
        return await self.present(self.go(state, "review"))

    async def _reload_week(self, state: WorkflowState) -> Outcome:
        state = await self._load_week(state, state.data.get("week") or "current")
        return await self.present(
            state,
            note="The list has changed, please choose again.",
            ok=False,
            error="choice_decode_failed",
        )

    async def _on_text(self, state: WorkflowState, text: str) -> Outcome:
        step = state.step
        if step == "date":
            when = parse_local_datetime(text)
            if when is None:
                return await self.present(
                    state, note="Could not read that date.", ok=False, error="invalid_date"
                )
            state = merge_data(state, {"date": when})
            target = "review" if state.data.get("mode") == "edit" or state.data.get("title") else "title"
            return await self.present(self.go(state, target))
        title = text.strip()
        if not title:
            return await self.present(state, note="The title can't be empty.", ok=False, error="empty_text")
        return await self.present(self.go(state, "review", title=title))

    async def _commit(self, state: WorkflowState) -> Outcome:
        try:
            validate_before_commit(state, self.definition)
        except ValidationFailure as exc:
            note = "Can't save yet:\n" + "\n".join(f"- {msg}" for msg in exc.errors.values())
            return await self.present(state, note=note, ok=False, error="validation_failed", errors=exc.errors)

        data = state.data
        when: datetime = data["date"]
        item = ScheduleItem(
            id=data.get("service_id"),
            title=data["title"].strip(),
            starts_at=local_instant(when.date(), when.time(), self.ctx.config.schedule.timezone),
            type=data.get("type") or "",
            theme=data.get("theme"),
            location=data.get("location"),
        )
        try:
            result = await self.ctx.records.upsert_record(item)
        except Exception as exc:
            logger.exception(f"Saving {KIND} entry failed")
            result = UpsertResult(ok=False, error=str(exc))
        if not result.ok:
            return await self.present(
                state,
                note="Could not save the entry. Your answers are kept, try again.",
                ok=False,
                error="save_failed",
            )
        state = merge_data(state, {"mode": "edit", "service_id": result.id})
        return await self.present(self.go(state, "completed"), service_id=result.id)
