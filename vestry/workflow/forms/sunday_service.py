"""Sunday service form: one or both streams of a Sunday's service plan."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List

from ...civil_time import upcoming_weekdays
from ...errors import ChoiceDecodeError, ValidationFailure
from ...records import SundayServiceRecord, UpsertResult
from ...results import Outcome
from ...transports import Choice
from ..actions import (
    Action,
    BackToReview,
    Confirm,
    ContinueEdit,
    Custom,
    Done,
    EditField,
    FreeText,
    Page,
    Pick,
    SetValue,
    SwitchStream,
    Toggle,
)
from ..codec import decode_choice, decode_index, index_choices
from ..machine import (
    WorkflowDefinition,
    WorkflowState,
    await_free_text,
    begin,
    clear_free_text,
    merge_data,
    split_and_switch_stream,
    stream_values,
    toggle_membership,
    validate_before_commit,
)
from .base import FormHandler, Prompt

logger = logging.getLogger(__name__)

KIND = "sunday_service"

FIELD_CHAIN = (
    "title",
    "preachers",
    "worship_service",
    "song_before_start",
    "num_worship_songs",
    "solo_song",
    "repentance_song",
    "scripture_reading",
    "scripture_reader",
)
STREAM_FIELDS = FIELD_CHAIN
BOOL_FIELDS = ("song_before_start", "solo_song", "repentance_song")

FIELD_LABELS = {
    "title": "Title",
    "preachers": "Preachers",
    "worship_service": "Worship team",
    "song_before_start": "Song before start",
    "num_worship_songs": "Worship songs",
    "solo_song": "Group song",
    "repentance_song": "Repentance song",
    "scripture_reading": "Scripture reading",
    "scripture_reader": "Scripture reader",
}

PREACHER_PAGES = (
    ("Антон Кириенко", "Денис Аргер", "Алексей Сорокин", "Николай Степанов", "Дмитрий Ширко"),
    ("Андрей Седюко", "Слава Кизин", "Дмитрий Атрошенко"),
)
PREACHERS = [name for page in PREACHER_PAGES for name in page]

OPTION_LISTS = {
    "worship_service": ("worship_services_list", "worship_services"),
    "scripture_reader": ("scripture_readers_list", "scripture_readers"),
}

STREAM_NAMES = {"1": "I", "2": "II"}
MAX_SONGS_BUTTONS = 10


def _transitions() -> Dict[str, List[str]]:
    graph: Dict[str, List[str]] = {
        "mode": ["date"],
        "date": ["stream"],
        "stream": ["review"],
        "review": list(FIELD_CHAIN) + ["completed"],
        "completed": ["review"],
    }
    for i, field in enumerate(FIELD_CHAIN):
        following = FIELD_CHAIN[i + 1] if i + 1 < len(FIELD_CHAIN) else "review"
        graph[field] = sorted({following, "review"})
    return graph


def default_title(stream: str, day: date) -> str:
    return f"Sunday service {STREAM_NAMES[stream]} stream - {day:%d.%m.%Y}"


def default_stream_values(stream: str, day: date) -> Dict[str, Any]:
    return {
        "title": default_title(stream, day),
        "preachers": [],
        "worship_service": "",
        "song_before_start": False,
        "num_worship_songs": None,
        "solo_song": False,
        "repentance_song": False,
        "scripture_reading": "",
        "scripture_reader": "",
    }


def _stream_keys(data: Dict[str, Any]) -> List[str]:
    stream = data.get("stream")
    if stream == "both":
        return ["1", "2"]
    return [stream] if stream in ("1", "2") else []


def validate_service(state: WorkflowState) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    data = state.data
    if not data.get("date"):
        errors["date"] = "Pick a date"
    keys = _stream_keys(data)
    if not keys:
        errors["stream"] = "Pick a stream"
    both = len(keys) > 1
    for key in keys:
        values = stream_values(state, key, data.get("current_stream"), STREAM_FIELDS)
        suffix = f" ({STREAM_NAMES[key]} stream)" if both else ""
        if not values:
            errors[f"stream_{key}"] = f"Stream {STREAM_NAMES[key]} is not filled in"
            continue
        if not values.get("preachers"):
            errors[f"preachers{suffix}"] = "Choose at least one preacher"
        if not values.get("worship_service"):
            errors[f"worship_service{suffix}"] = "Choose the worship team"
    return errors


DEFINITION = WorkflowDefinition(
    kind=KIND,
    start="mode",
    transitions=_transitions(),
    stream_fields=STREAM_FIELDS,
    validator=validate_service,
)


def _yes_no(value: Any) -> str:
    return "yes" if value else "no"


class SundayServiceForm(FormHandler):
    """Fill in or edit the plan of a Sunday service.

    ``both`` streams are edited one at a time: the stream not on screen is
    parked as a snapshot in ``state.streams`` and swapped in on demand.
    """

    definition = DEFINITION
    free_text_steps = frozenset({"title", "scripture_reading"})

    async def start(self, subject_id: str, conversation_id: str) -> Outcome:
        state = begin(self.definition, subject_id, conversation_id)
        return await self.present(state)

    # ------------------------------------------------------------------
    # Rendering
    def render(self, state: WorkflowState) -> Prompt:
        step = state.step
        data = state.data
        if state.waiting_for_free_text and step not in self.free_text_steps:
            label = FIELD_LABELS.get(state.pending_freeform_slot or step, "value")
            return f"Type the {label.lower()}:", [self.cancel_button()]

        if step == "mode":
            return "Sunday service: create a new plan or edit an existing one?", [
                self.button("Create", "set", "mode", "create"),
                self.button("Edit", "set", "mode", "edit"),
                self.cancel_button(),
            ]
        if step == "date":
            sundays = upcoming_weekdays(
                self.ctx.clock.now(), 6, 2, self.ctx.config.schedule.timezone
            )
            return "Which Sunday?", [
                self.button(f"{day:%d.%m.%Y}", "set", "date", day.isoformat()) for day in sundays
            ] + [self.cancel_button()]
        if step == "stream":
            return "Which stream?", [
                self.button("I stream", "set", "stream", "1"),
                self.button("II stream", "set", "stream", "2"),
                self.button("Both streams", "set", "stream", "both"),
                self.cancel_button(),
            ]
        if step in ("title", "scripture_reading"):
            current = data.get(step) or "not set"
            return f"{FIELD_LABELS[step]} (now: {current}). Send the new text:", self._field_nav(state)
        if step == "preachers":
            return self._render_preachers(state)
        if step in OPTION_LISTS:
            list_name, _ = OPTION_LISTS[step]
            options = data.get(list_name) or []
            text = f"Choose the {FIELD_LABELS[step].lower()}:"
            if not options:
                text = f"No {FIELD_LABELS[step].lower()} options are available. Enter one by hand."
            return text, index_choices(KIND, list_name, options) + [
                self.button("Other...", "custom", step)
            ] + self._field_nav(state)
        if step in BOOL_FIELDS:
            return f"{FIELD_LABELS[step]}?", [
                self.button("Yes", "set", step, "yes"),
                self.button("No", "set", step, "no"),
            ] + self._field_nav(state)
        if step == "num_worship_songs":
            return "How many worship songs?", [
                self.button(str(n), "set", step, n) for n in range(1, MAX_SONGS_BUTTONS + 1)
            ] + [self.button("Other...", "custom", step)] + self._field_nav(state)
        if step == "review":
            return self._render_review(state)
        if step == "completed":
            return "Saved.", [
                self.button("Keep editing", "continue"),
                self.cancel_button("Finish"),
            ]
        raise ValueError(f"{KIND}: no prompt for step {step}")

    def _field_nav(self, state: WorkflowState) -> List[Choice]:
        if state.data.get("mode") == "edit":
            return [self.button("Back to review", "review"), self.cancel_button()]
        return [self.cancel_button()]

    def _render_preachers(self, state: WorkflowState) -> Prompt:
        selected = list(state.data.get("preachers") or [])
        page = int(state.data.get("preachers_page") or 0)
        offset = sum(len(p) for p in PREACHER_PAGES[:page])
        choices = []
        for i, name in enumerate(PREACHER_PAGES[page]):
            mark = "✓ " if name in selected else ""
            choices.append(self.button(f"{mark}{name}", "toggle", "preachers", offset + i))
        if page > 0:
            choices.append(self.button("« Back", "page", "preachers", page - 1))
        if page + 1 < len(PREACHER_PAGES):
            choices.append(self.button("More »", "page", "preachers", page + 1))
        choices.append(self.button("Other...", "custom", "preachers"))
        choices.append(self.button("Done", "done", "preachers"))
        text = "Choose the preachers. Selected: " + (", ".join(selected) or "none")
        return text, choices + self._field_nav(state)[-1:]

    def _render_review(self, state: WorkflowState) -> Prompt:
        data = state.data
        current = data.get("current_stream") or "1"
        day = data.get("date")
        header = f"Sunday service {day:%d.%m.%Y}, {STREAM_NAMES[current]} stream"
        if data.get("stream") == "both":
            header += " (both streams)"
        lines = [f"<b>{header}</b>"]
        for field in FIELD_CHAIN:
            value = data.get(field)
            if field in BOOL_FIELDS:
                shown = _yes_no(value)
            elif field == "preachers":
                shown = ", ".join(value or []) or "not set"
            else:
                shown = value if value not in (None, "") else "not set"
            lines.append(f"{FIELD_LABELS[field]}: {shown}")

        choices = [self.button(FIELD_LABELS[f], "edit", f) for f in FIELD_CHAIN]
        if data.get("stream") == "both":
            other = "2" if current == "1" else "1"
            choices.append(self.button(f"Switch to {STREAM_NAMES[other]} stream", "switch", other))
        choices.append(self.button("Save", "confirm"))
        choices.append(self.cancel_button())
        return "\n".join(lines), choices

    # ------------------------------------------------------------------
    # Actions
    async def handle(self, state: WorkflowState, action: Action) -> Outcome:
        if isinstance(action, FreeText):
            return await self._on_text(state, action.text)
        if isinstance(action, SetValue):
            return await self._on_set(state, action)
        if isinstance(action, Pick) and state.step in OPTION_LISTS:
            return await self._on_pick(state, action)
        if isinstance(action, Toggle) and state.step == "preachers" and action.list_name == "preachers":
            try:
                name = decode_index(PREACHERS, "preachers", action.index)
            except ChoiceDecodeError:
                return await self.unexpected(state)
            return await self.present(toggle_membership(state, "preachers", name))
        if isinstance(action, Page) and state.step == "preachers":
            if not 0 <= action.page < len(PREACHER_PAGES):
                return await self.unexpected(state)
            return await self.present(merge_data(state, {"preachers_page": action.page}))
        if isinstance(action, Custom) and action.field == state.step and state.step in (
            "preachers",
            "worship_service",
            "num_worship_songs",
            "scripture_reader",
        ):
            return await self.present(await_free_text(state, action.field))
        if isinstance(action, Done) and state.step == "preachers":
            return await self._after_field(state)
        if isinstance(action, EditField) and state.step == "review" and action.field in FIELD_CHAIN:
            return await self.present(await self._enter(state, action.field))
        if isinstance(action, BackToReview) and state.step in FIELD_CHAIN:
            return await self.present(self.go(state, "review"))
        if isinstance(action, SwitchStream) and state.step == "review":
            return await self._on_switch(state, action.stream)
        if isinstance(action, Confirm) and state.step == "review":
            return await self._commit(state)
        if isinstance(action, ContinueEdit) and state.step == "completed":
            return await self.present(self.go(state, "review"))
        return await self.unexpected(state)

    async def _enter(self, state: WorkflowState, step: str) -> WorkflowState:
        state = self.go(state, step)
        if step in OPTION_LISTS:
            list_name, source = OPTION_LISTS[step]
            options = await self.ctx.records.list_options(source)
            state = merge_data(state, {list_name: options})
        if step == "preachers":
            state = merge_data(state, {"preachers_page": 0})
        return state

    async def _after_field(self, state: WorkflowState, note: str | None = None) -> Outcome:
        if state.data.get("mode") == "edit":
            return await self.present(self.go(state, "review"), note=note)
        i = FIELD_CHAIN.index(state.step)
        if i + 1 < len(FIELD_CHAIN):
            return await self.present(await self._enter(state, FIELD_CHAIN[i + 1]), note=note)
        return await self._end_of_chain(state)

    async def _end_of_chain(self, state: WorkflowState) -> Outcome:
        data = state.data
        if data.get("stream") == "both" and data.get("current_stream") == "1":
            state = self._switch(self.go(state, "review"), "2")
            return await self.present(
                state, note="I stream is filled in. Now the II stream."
            )
        return await self.present(self.go(state, "review"))

    def _switch(self, state: WorkflowState, target: str) -> WorkflowState:
        current = state.data.get("current_stream") or "1"
        had_snapshot = bool(state.streams.get(target))
        state = split_and_switch_stream(state, current, target, STREAM_FIELDS)
        state = merge_data(state, {"current_stream": target})
        if not had_snapshot:
            state = merge_data(state, default_stream_values(target, state.data["date"]))
        return state

    async def _on_switch(self, state: WorkflowState, target: str) -> Outcome:
        current = state.data.get("current_stream")
        if state.data.get("stream") != "both" or target not in ("1", "2") or target == current:
            return await self.unexpected(state)
        return await self.present(self._switch(state, target))

    async def _on_set(self, state: WorkflowState, action: SetValue) -> Outcome:
        field, value = action.field, action.value
        if field != state.step:
            return await self.unexpected(state)

        if field == "mode" and value in ("create", "edit"):
            return await self.present(self.go(state, "date", mode=value))
        if field == "date":
            try:
                day = date.fromisoformat(value)
            except ValueError:
                return await self.unexpected(state)
            return await self.present(self.go(state, "stream", date=day))
        if field == "stream" and value in ("1", "2", "both"):
            return await self._load_streams(state, value)
        if field in BOOL_FIELDS and value in ("yes", "no"):
            return await self._after_field(merge_data(state, {field: value == "yes"}))
        if field == "num_worship_songs" and value.isdigit() and 1 <= int(value) <= MAX_SONGS_BUTTONS:
            return await self._after_field(merge_data(state, {field: int(value)}))
        return await self.unexpected(state)

    async def _load_streams(self, state: WorkflowState, stream: str) -> Outcome:
        day: date = state.data["date"]
        keys = ["1", "2"] if stream == "both" else [stream]
        current = keys[0]
        mode = state.data.get("mode")
        values: Dict[str, Dict[str, Any]] = {}
        service_ids: Dict[str, str] = {}
        if mode == "edit":
            for key in keys:
                record = await self.ctx.records.find_record_matching_date(day, key)
                if record is not None:
                    values[key] = record.model_dump(include=set(STREAM_FIELDS))
                    service_ids[key] = record.id
        note = None
        if mode == "edit" and not values:
            mode = "create"
            note = "Nothing is planned for that date yet, starting a new plan."
        for key in keys:
            values.setdefault(key, default_stream_values(key, day))

        state = merge_data(
            state,
            {
                "stream": stream,
                "mode": mode,
                "current_stream": current,
                "service_ids": service_ids,
                **values[current],
            },
        )
        state = state.model_copy(
            update={"streams": {key: values[key] for key in keys if key != current}}
        )
        return await self.present(self.go(state, "review"), note=note)

    async def _on_pick(self, state: WorkflowState, action: Pick) -> Outcome:
        field = state.step
        list_name, _ = OPTION_LISTS[field]
        if action.list_name != list_name:
            return await self.unexpected(state)
        try:
            value = decode_choice(state, list_name, action.index)
        except ChoiceDecodeError as exc:
            logger.info(f"Reloading {list_name} after stale choice: {exc}")
            state = await self._enter(state, field)
            return await self.present(
                state,
                note="The list has changed, please choose again.",
                ok=False,
                error="choice_decode_failed",
            )
        return await self._after_field(merge_data(state, {field: value}))

    async def _on_text(self, state: WorkflowState, text: str) -> Outcome:
        slot = state.pending_freeform_slot or state.step
        text = text.strip()
        if slot in ("title", "scripture_reading", "worship_service", "scripture_reader"):
            if not text:
                return await self.present(state, note="Please send some text.", ok=False, error="empty_text")
            return await self._after_field(merge_data(state, {slot: text}))
        if slot == "preachers":
            selected = list(state.data.get("preachers") or [])
            for name in (n.strip() for n in text.split(",")):
                if name and name not in selected:
                    selected.append(name)
            return await self.present(clear_free_text(merge_data(state, {"preachers": selected})))
        if slot == "num_worship_songs":
            if not text.isdigit() or int(text) < 1:
                return await self.present(
                    state, note="Send a whole number of songs, 1 or more.", ok=False, error="invalid_number"
                )
            return await self._after_field(merge_data(state, {slot: int(text)}))
        return await self.unexpected(state)

    # ------------------------------------------------------------------
    async def _commit(self, state: WorkflowState) -> Outcome:
        try:
            validate_before_commit(state, self.definition)
        except ValidationFailure as exc:
            note = "Can't save yet:\n" + "\n".join(f"- {msg}" for msg in exc.errors.values())
            return await self.present(
                state, note=note, ok=False, error="validation_failed", errors=exc.errors
            )

        data = state.data
        service_ids: Dict[str, str] = dict(data.get("service_ids") or {})
        for key in _stream_keys(data):
            values = stream_values(state, key, data.get("current_stream"), STREAM_FIELDS)
            record = SundayServiceRecord(id=service_ids.get(key), date=data["date"], stream=key, **values)
            try:
                result = await self.ctx.records.upsert_record(record)
            except Exception as exc:
                logger.exception(f"Saving {KIND} stream {key} failed")
                result = UpsertResult(ok=False, error=str(exc))
            if not result.ok:
                state = merge_data(state, {"service_ids": service_ids})
                return await self.present(
                    state,
                    note=f"Could not save the {STREAM_NAMES[key]} stream. Your answers are kept, try again.",
                    ok=False,
                    error="save_failed",
                )
            service_ids[key] = result.id

        state = merge_data(state, {"mode": "edit", "service_ids": service_ids})
        return await self.present(self.go(state, "completed"), service_ids=service_ids)
