"""Weekly prayer form: pick the week, the person and the topic."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List, Sequence

from ...civil_time import week_start
from ...errors import ChoiceDecodeError, ValidationFailure
from ...records import PrayerRecord, UpsertResult
from ...results import Outcome
from ..actions import Action, Confirm, Custom, EditField, FreeText, Pick, SetValue
from ..codec import decode_choice, index_choices
from ..machine import (
    WorkflowDefinition,
    WorkflowState,
    await_free_text,
    begin,
    clear_free_text,
    merge_data,
    validate_before_commit,
)
from .base import FormHandler, Prompt

logger = logging.getLogger(__name__)

KIND = "prayer"

MAX_PEOPLE = 5
MIN_PERSON_LENGTH = 2
MIN_TOPIC_LENGTH = 3


def validate_prayer(state: WorkflowState) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if state.data.get("week") not in ("current", "next"):
        errors["week"] = "Choose the week"
    if len((state.data.get("person") or "").strip()) < MIN_PERSON_LENGTH:
        errors["person"] = f"The name needs at least {MIN_PERSON_LENGTH} characters"
    if len((state.data.get("topic") or "").strip()) < MIN_TOPIC_LENGTH:
        errors["topic"] = f"The topic needs at least {MIN_TOPIC_LENGTH} characters"
    return errors


DEFINITION = WorkflowDefinition(
    kind=KIND,
    start="week",
    transitions={
        "week": ["person", "review"],
        "person": ["topic", "review"],
        "topic": ["review"],
        "review": ["week", "person", "topic"],
    },
    validator=validate_prayer,
)


def longest_unprayed(records: Sequence[PrayerRecord], limit: int = MAX_PEOPLE) -> List[str]:
    """People ordered by their latest prayer week, the longest waiting first."""
    latest: Dict[str, PrayerRecord] = {}
    for record in records:
        seen = latest.get(record.person)
        if seen is None or record.date_start > seen.date_start:
            latest[record.person] = record
    ordered = sorted(latest.values(), key=lambda r: (r.date_start, r.person))
    return [record.person for record in ordered[:limit]]


def last_topic(records: Sequence[PrayerRecord], person: str) -> str:
    topics = [r for r in records if r.person == person]
    if not topics:
        return ""
    return max(topics, key=lambda r: r.date_start).topic


class PrayerForm(FormHandler):
    """Add one person to the prayer list of the current or the next week.

    The session is removed once the record is saved.
    """

    definition = DEFINITION
    free_text_steps = frozenset({"topic"})

    async def start(self, subject_id: str, conversation_id: str) -> Outcome:
        return await self.present(begin(self.definition, subject_id, conversation_id))

    def render(self, state: WorkflowState) -> Prompt:
        step, data = state.step, state.data
        week_text = "this" if data.get("week") == "current" else "next"
        if step == "week":
            return "Which week is the prayer for?", [
                self.button("This week", "set", "week", "current"),
                self.button("Next week", "set", "week", "next"),
                self.cancel_button(),
            ]
        if step == "person" and state.waiting_for_free_text:
            return "Send the name of the person:", [self.cancel_button()]
        if step == "person":
            people = data.get("people_list") or []
            return f"Who do we pray for {week_text} week?", index_choices(
                KIND, "people_list", people
            ) + [self.button("New person", "custom", "person"), self.cancel_button()]
        if step == "topic":
            choices = [self.cancel_button()]
            if data.get("last_topic"):
                choices = [self.button("Same topic as last time", "custom", "last_topic")] + choices
            return (
                f"Send the prayer topic for <b>{data.get('person')}</b> "
                f"(at least {MIN_TOPIC_LENGTH} characters):",
                choices,
            )
        if step == "review":
            lines = [
                "<b>Prayer</b>",
                f"Person: {data.get('person') or 'not set'}",
                f"Topic: {data.get('topic') or 'not set'}",
                f"Week: {data['week_label']}" if data.get("week_label") else "Week: not set",
            ]
            return "\n".join(lines), [
                self.button("Week", "edit", "week"),
                self.button("Person", "edit", "person"),
                self.button("Topic", "edit", "topic"),
                self.button("Save", "confirm"),
                self.cancel_button(),
            ]
        raise ValueError(f"{KIND}: no prompt for step {step}")

    # ------------------------------------------------------------------
    async def handle(self, state: WorkflowState, action: Action) -> Outcome:
        step = state.step
        if isinstance(action, SetValue) and step == "week" and action.field == "week":
            if action.value not in ("current", "next"):
                return await self.unexpected(state)
            state = merge_data(state, self._week(action.value))
            if state.data.get("person"):
                return await self.present(self.go(state, "review"))
            return await self.present(await self._enter_person(state))
        if isinstance(action, Pick) and step == "person" and action.list_name == "people_list":
            try:
                person = decode_choice(state, "people_list", action.index)
            except ChoiceDecodeError:
                return await self.present(
                    await self._enter_person(state),
                    note="The list has changed, please choose again.",
                    ok=False,
                    error="choice_decode_failed",
                )
            return await self._set_person(state, person)
        if isinstance(action, Custom) and step == "person" and action.field == "person":
            return await self.present(await_free_text(state, "person"))
        if isinstance(action, Custom) and step == "topic" and action.field == "last_topic":
            topic = state.data.get("last_topic")
            if not topic:
                return await self.unexpected(state)
            return await self.present(self.go(state, "review", topic=topic))
        if isinstance(action, FreeText) and state.waiting_for_free_text:
            return await self._on_text(state, action.text)
        if isinstance(action, EditField) and step == "review" and action.field in ("week", "person", "topic"):
            if action.field == "person":
                return await self.present(await self._enter_person(state))
            return await self.present(self.go(state, action.field))
        if isinstance(action, Confirm) and step == "review":
            return await self._commit(state)
        return await self.unexpected(state)

    def _week(self, week: str) -> Dict[str, object]:
        start = week_start(
            self.ctx.clock.now(),
            self.ctx.config.schedule.timezone,
            weeks_ahead=1 if week == "next" else 0,
        )
        end = start + timedelta(days=6)
        return {
            "week": week,
            "date_start": start,
            "date_end": end,
            "week_label": f"{start:%d.%m.%Y} - {end:%d.%m.%Y}",
        }

    async def _enter_person(self, state: WorkflowState) -> WorkflowState:
        records = await self.ctx.records.list_prayer_records()
        people = longest_unprayed(records)
        state = self.go(state, "person", people_list=people)
        if not people:
            state = await_free_text(state, "person")
        return state

    async def _set_person(self, state: WorkflowState, person: str) -> Outcome:
        records = await self.ctx.records.list_prayer_records()
        state = clear_free_text(
            merge_data(state, {"person": person, "last_topic": last_topic(records, person)})
        )
        if state.data.get("topic"):
            return await self.present(self.go(state, "review"))
        return await self.present(self.go(state, "topic"))

    async def _on_text(self, state: WorkflowState, text: str) -> Outcome:
        text = text.strip()
        if state.step == "person":
            if len(text) < MIN_PERSON_LENGTH:
                return await self.present(
                    state,
                    note=f"The name needs at least {MIN_PERSON_LENGTH} characters.",
                    ok=False,
                    error="text_too_short",
                )
            return await self._set_person(state, text)
        if state.step == "topic":
            if len(text) < MIN_TOPIC_LENGTH:
                return await self.present(
                    state,
                    note=f"The topic needs at least {MIN_TOPIC_LENGTH} characters.",
                    ok=False,
                    error="text_too_short",
                )
            return await self.present(self.go(state, "review", topic=text))
        return await self.unexpected(state)

    async def _commit(self, state: WorkflowState) -> Outcome:
        try:
            validate_before_commit(state, self.definition)
        except ValidationFailure as exc:
            note = "Can't save yet:\n" + "\n".join(f"- {msg}" for msg in exc.errors.values())
            return await self.present(state, note=note, ok=False, error="validation_failed", errors=exc.errors)

        data = state.data
        record = PrayerRecord(
            person=data["person"].strip(),
            topic=data["topic"].strip(),
            date_start=data["date_start"],
            date_end=data["date_end"],
        )
        try:
            result = await self.ctx.records.upsert_record(record)
        except Exception as exc:
            logger.exception(f"Saving {KIND} record failed")
            result = UpsertResult(ok=False, error=str(exc))
        if not result.ok:
            return await self.present(
                state,
                note="Could not save the prayer. Your answers are kept, try again.",
                ok=False,
                error="save_failed",
            )

        await self.ctx.sessions.cancel(KIND, state.subject_id)
        text = f"Prayer for {record.person} saved for {data['week_label']}."
        await self.ctx.transport.send_text(state.conversation_id, text)
        return Outcome.success(text, prayer_id=result.id)
