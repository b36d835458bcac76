import asyncio

import pytest

from vestry.constants import SCHEMA_VERSION
from vestry.dispatch import FAILURE_PROMPT, RESTART_PROMPT
from vestry.errors import IllegalTransitionError


@pytest.mark.asyncio
async def test_cancel_twice(bot):
    await bot.start("schedule")
    outcome = await bot.press("schedule:cancel")
    assert outcome.ok
    assert bot.transport.last.text == "Cancelled."
    sent = len(bot.transport.sent)

    outcome = await bot.press("schedule:cancel")
    assert outcome.ok
    assert len(bot.transport.sent) == sent
    assert await bot.session("schedule") is None


@pytest.mark.asyncio
async def test_press_without_session(bot):
    outcome = await bot.press("schedule:confirm")
    assert outcome.error == "session_not_found"
    assert bot.transport.last.text == RESTART_PROMPT


@pytest.mark.asyncio
async def test_outdated_session_is_discarded(bot):
    await bot.start("schedule")
    payload = await bot.store.get(42, "schedule")
    payload["schema_version"] = SCHEMA_VERSION - 1
    await bot.store.set(42, "schedule", payload)

    outcome = await bot.press("schedule:set:mode:create")
    assert outcome.error == "session_not_found"
    assert await bot.store.get(42, "schedule") is None


@pytest.mark.asyncio
async def test_free_text_without_waiting_form_is_ignored(bot):
    outcome = await bot.say("hello")
    assert outcome.ok
    assert outcome.data == {"ignored": True}

    await bot.start("schedule")
    sent = len(bot.transport.sent)
    outcome = await bot.say("hello")
    assert outcome.data == {"ignored": True}
    assert len(bot.transport.sent) == sent


@pytest.mark.asyncio
async def test_unrecognized_and_empty_interactions(bot):
    assert (await bot.press("nonsense:pick:x:1")).error == "unrecognized_action"
    assert (await bot.press("schedule:fly")).error == "unrecognized_action"
    assert (await bot.dispatcher.handle_interaction(42, 42)).error == "empty_interaction"
    assert (await bot.start("unknown")).error == "unknown_workflow"


@pytest.mark.asyncio
async def test_unexpected_action_keeps_step(bot):
    await bot.start("schedule")
    outcome = await bot.press("schedule:confirm")
    assert outcome.error == "unexpected_action"
    assert (await bot.session("schedule")).step == "mode"


@pytest.mark.asyncio
async def test_start_replaces_unfinished_session(bot):
    await bot.start("schedule")
    await bot.press("schedule:set:mode:create")
    outcome = await bot.start("schedule")
    assert outcome.data["step"] == "mode"
    state = await bot.session("schedule")
    assert state.data == {}
    assert state.last_message_id == bot.transport.last.message_id


@pytest.mark.asyncio
async def test_interactions_are_acknowledged(bot):
    await bot.dispatcher.handle_interaction(42, 42, payload="schedule:cancel", interaction_id="cb-1")
    assert bot.transport.acknowledged == ["cb-1"]


@pytest.mark.asyncio
async def test_concurrent_presses_are_serialized(bot):
    await bot.start("youth_report", subject=11)
    await bot.press("youth_report:pick:people_list:0", subject=11)

    await asyncio.gather(
        bot.press("youth_report:toggle:communication_types:0", subject=11),
        bot.press("youth_report:toggle:communication_types:1", subject=11),
    )
    state = await bot.session("youth_report", subject=11)
    assert sorted(state.data["communication_types"]) == sorted(
        ["Общение до/после служения", "Общение в соцсетях/мессенджерах"]
    )


@pytest.mark.asyncio
async def test_subject_locks_are_released_after_handling(bot, monkeypatch):
    await bot.start("schedule")
    await bot.press("schedule:set:mode:create")
    assert bot.dispatcher._locks == {}

    await asyncio.gather(*(bot.press("schedule:cancel", subject=s) for s in (42, 42, 43)))
    assert bot.dispatcher._locks == {}
    assert bot.dispatcher._waiters == {}

    await bot.start("schedule")
    form = bot.dispatcher.forms["schedule"]

    async def broken(state, action):
        raise KeyError("date")

    monkeypatch.setattr(form, "handle", broken)
    assert (await bot.press("schedule:confirm")).error == "internal_error"
    assert bot.dispatcher._locks == {}


@pytest.mark.asyncio
async def test_handler_errors_become_outcomes(bot, monkeypatch):
    await bot.start("schedule")
    form = bot.dispatcher.forms["schedule"]

    async def illegal(state, action):
        raise IllegalTransitionError("schedule", "mode", "completed")

    monkeypatch.setattr(form, "handle", illegal)
    outcome = await bot.press("schedule:confirm")
    assert outcome.error == "illegal_transition"
    assert bot.transport.last.text == FAILURE_PROMPT

    async def broken(state, action):
        raise KeyError("date")

    monkeypatch.setattr(form, "handle", broken)
    outcome = await bot.press("schedule:confirm")
    assert outcome.error == "internal_error"
    assert (await bot.session("schedule")).step == "mode"
