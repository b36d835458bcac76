"""Youth care report form filled in by youth leaders."""

from __future__ import annotations

import logging
from typing import Dict, List

from ...civil_time import wall_clock_fields
from ...errors import ChoiceDecodeError, ValidationFailure
from ...records import UpsertResult, YouthReport
from ...results import Outcome
from ..actions import Action, Confirm, Done, EditField, FreeText, Pick, Toggle
from ..codec import decode_choice, decode_index, index_choices
from ..machine import (
    WorkflowDefinition,
    WorkflowState,
    begin,
    clear_free_text,
    merge_data,
    toggle_membership,
    validate_before_commit,
)
from .base import FormHandler, Prompt

logger = logging.getLogger(__name__)

KIND = "youth_report"

OTHER_LABEL = "Другое"

COMMUNICATION_TYPES = [
    "Общение до/после служения",
    "Общение в соцсетях/мессенджерах",
    "Общение на домашнем общении",
    "Посещение (встреча)",
    "Не пообщался",
    OTHER_LABEL,
]

EVENT_TYPES = [
    "Воскресное служение",
    "Домашнее общение",
    "Молодежное служение",
    "Молитвенное служение",
    OTHER_LABEL,
]

MAX_PEOPLE = 10

# multi-select step -> (data field, option list, field for the "other" text)
MULTI_SELECT = {
    "communication": ("communication_types", COMMUNICATION_TYPES, "communication_other"),
    "events": ("events", EVENT_TYPES, "events_other"),
}

STEP_ORDER = ("person", "communication", "events", "help", "note")


def validate_report(state: WorkflowState) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not state.data.get("person"):
        errors["person"] = "Choose the person"
    if not state.data.get("communication_types"):
        errors["communication_types"] = "Choose at least one kind of contact"
    return errors


DEFINITION = WorkflowDefinition(
    kind=KIND,
    start="person",
    transitions={
        "person": ["communication", "review"],
        "communication": ["events", "review"],
        "events": ["help", "review"],
        "help": ["note", "review"],
        "note": ["review"],
        "review": list(STEP_ORDER) + ["completed"],
        "completed": [],
    },
    validator=validate_report,
)


def _replace_other(values: List[str], other_text: str) -> List[str]:
    if not other_text:
        return list(values)
    return [other_text if v == OTHER_LABEL else v for v in values]


class YouthReportForm(FormHandler):
    """Report one contact between a youth leader and a person in their care.

    The session is removed once the report is saved.
    """

    definition = DEFINITION
    free_text_steps = frozenset({"help", "note"})

    async def _people(self, leader: str) -> List[str]:
        return (await self.ctx.records.people_for_leader(leader))[:MAX_PEOPLE]

    async def start(self, subject_id: str, conversation_id: str) -> Outcome:
        leader = await self.ctx.leaders.leader_for_subject(subject_id)
        if leader is None:
            text = "Reports can only be filled in by registered youth leaders."
            await self.ctx.transport.send_text(conversation_id, text)
            return Outcome.failure("not_a_leader", text)
        people = await self._people(leader.name)
        if not people:
            text = "No people are assigned to you yet."
            await self.ctx.transport.send_text(conversation_id, text)
            return Outcome.failure("no_people", text)

        state = begin(
            self.definition,
            subject_id,
            conversation_id,
            {"leader": leader.name, "people_list": people, "communication_types": [], "events": []},
        )
        return await self.present(state)

    # ------------------------------------------------------------------
    def render(self, state: WorkflowState) -> Prompt:
        step, data = state.step, state.data
        if state.waiting_for_free_text and step in MULTI_SELECT:
            return "Describe it in a few words:", [self.cancel_button()]
        if step == "person":
            return "Who is this report about?", index_choices(
                KIND, "people_list", data.get("people_list") or []
            ) + [self.cancel_button()]
        if step in MULTI_SELECT:
            field, options, _ = MULTI_SELECT[step]
            selected = data.get(field) or []
            question = (
                "How did you keep in touch?" if step == "communication" else "Which events did they attend?"
            )
            choices = [
                self.button(("✓ " if option in selected else "") + option, "toggle", field, i)
                for i, option in enumerate(options)
            ]
            return question, choices + [self.button("Done", "done", field), self.cancel_button()]
        if step == "help":
            return "Does the person need any help? Send text or skip.", [
                self.button("Skip", "done", "help"),
                self.cancel_button(),
            ]
        if step == "note":
            return "Anything else to note? Send text or skip.", [
                self.button("Skip", "done", "note"),
                self.cancel_button(),
            ]
        if step == "review":
            lines = [
                "<b>Youth report</b>",
                f"Person: {data.get('person') or 'not set'}",
                "Contact: "
                + (", ".join(_replace_other(data.get("communication_types") or [], data.get("communication_other", ""))) or "not set"),
                "Events: "
                + (", ".join(_replace_other(data.get("events") or [], data.get("events_other", ""))) or "none"),
                f"Help needed: {data.get('help') or '-'}",
                f"Note: {data.get('note') or '-'}",
            ]
            choices = [
                self.button("Person", "edit", "person"),
                self.button("Contact", "edit", "communication"),
                self.button("Events", "edit", "events"),
                self.button("Help", "edit", "help"),
                self.button("Note", "edit", "note"),
                self.button("Send", "confirm"),
                self.cancel_button(),
            ]
            return "\n".join(lines), choices
        raise ValueError(f"{KIND}: no prompt for step {step}")

    # ------------------------------------------------------------------
    async def handle(self, state: WorkflowState, action: Action) -> Outcome:
        step = state.step
        if isinstance(action, Pick) and step == "person" and action.list_name == "people_list":
            try:
                person = decode_choice(state, "people_list", action.index)
            except ChoiceDecodeError:
                people = await self._people(state.data["leader"])
                return await self.present(
                    merge_data(state, {"people_list": people}),
                    note="The list has changed, please choose again.",
                    ok=False,
                    error="choice_decode_failed",
                )
            return await self._after_field(merge_data(state, {"person": person}))
        if isinstance(action, Toggle) and step in MULTI_SELECT:
            field, options, other_field = MULTI_SELECT[step]
            if action.list_name != field:
                return await self.unexpected(state)
            try:
                value = decode_index(options, field, action.index)
            except ChoiceDecodeError:
                return await self.unexpected(state)
            if value == OTHER_LABEL and OTHER_LABEL in (state.data.get(field) or []):
                # a second press drops the free-text answer
                kept = [v for v in state.data[field] if v != OTHER_LABEL]
                return await self.present(merge_data(state, {field: kept, other_field: ""}))
            return await self.present(toggle_membership(state, field, value, other=OTHER_LABEL))
        if isinstance(action, Done):
            return await self._on_done(state, action.field)
        if isinstance(action, FreeText):
            return await self._on_text(state, action.text)
        if isinstance(action, EditField) and step == "review" and action.field in STEP_ORDER:
            state = self.go(state, action.field)
            if action.field == "person":
                state = merge_data(state, {"people_list": await self._people(state.data["leader"])})
            return await self.present(state)
        if isinstance(action, Confirm) and step == "review":
            return await self._commit(state)
        return await self.unexpected(state)

    async def _after_field(self, state: WorkflowState) -> Outcome:
        if state.data.get("reviewing"):
            return await self.present(self.go(state, "review"))
        i = STEP_ORDER.index(state.step)
        if i + 1 < len(STEP_ORDER):
            return await self.present(self.go(state, STEP_ORDER[i + 1]))
        return await self.present(self.go(state, "review", reviewing=True))

    async def _on_done(self, state: WorkflowState, field: str) -> Outcome:
        step = state.step
        if step == "communication" and field == "communication_types":
            if not state.data.get("communication_types"):
                return await self.present(
                    state,
                    note="Choose at least one option.",
                    ok=False,
                    error="selection_required",
                )
            return await self._after_field(clear_free_text(state))
        if step == "events" and field == "events":
            return await self._after_field(clear_free_text(state))
        if step in ("help", "note") and field == step:
            return await self._after_field(merge_data(state, {step: ""}))
        return await self.unexpected(state)

    async def _on_text(self, state: WorkflowState, text: str) -> Outcome:
        step = state.step
        text = text.strip()
        if step in MULTI_SELECT:
            field, _, other_field = MULTI_SELECT[step]
            if not text:
                return await self.present(state, note="Please send some text.", ok=False, error="empty_text")
            selected = list(state.data.get(field) or [])
            if OTHER_LABEL not in selected:
                selected.append(OTHER_LABEL)
            state = clear_free_text(merge_data(state, {field: selected, other_field: text}))
            return await self._after_field(state)
        if step in ("help", "note"):
            return await self._after_field(merge_data(state, {step: text}))
        return await self.unexpected(state)

    async def _commit(self, state: WorkflowState) -> Outcome:
        try:
            validate_before_commit(state, self.definition)
        except ValidationFailure as exc:
            note = "Can't send yet:\n" + "\n".join(f"- {msg}" for msg in exc.errors.values())
            return await self.present(state, note=note, ok=False, error="validation_failed", errors=exc.errors)

        data = state.data
        today = wall_clock_fields(self.ctx.clock.now(), self.ctx.config.schedule.timezone).date
        report = YouthReport(
            leader=data["leader"],
            person=data["person"],
            date=today,
            communication_types=_replace_other(data["communication_types"], data.get("communication_other", "")),
            events=_replace_other(data.get("events") or [], data.get("events_other", "")),
            help=data.get("help") or "",
            note=data.get("note") or "",
        )
        try:
            result = await self.ctx.records.upsert_record(report)
        except Exception as exc:
            logger.exception(f"Saving {KIND} failed")
            result = UpsertResult(ok=False, error=str(exc))
        if not result.ok:
            return await self.present(
                state,
                note="Could not send the report. Your answers are kept, try again.",
                ok=False,
                error="save_failed",
            )

        await self.ctx.sessions.cancel(KIND, state.subject_id)
        text = "Report sent, thank you!"
        await self.ctx.transport.send_text(state.conversation_id, text)
        return Outcome.success(text, report_id=result.id)
