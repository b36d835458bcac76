from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from vestry.records import ScheduleItem

MOSCOW = ZoneInfo("Europe/Moscow")


async def _seed(bot):
    await bot.records.upsert_record(
        ScheduleItem(
            id="s1",
            title="Prayer",
            starts_at=datetime(2025, 1, 22, 19, 0, tzinfo=MOSCOW),
            type="Молитвенное",
            location="Main hall",
        )
    )


@pytest.mark.asyncio
async def test_create_entry(bot):
    await bot.start("schedule")
    outcome = await bot.press("schedule:set:mode:create")
    assert outcome.data["step"] == "date"

    outcome = await bot.say("tomorrow")
    assert outcome.error == "invalid_date"
    state = await bot.session("schedule")
    assert state.step == "date"
    assert state.waiting_for_free_text

    outcome = await bot.say("26.01.2025 18:00")
    assert outcome.data["step"] == "title"
    outcome = await bot.say("   ")
    assert outcome.error == "empty_text"
    outcome = await bot.say("Youth meeting")
    assert outcome.data["step"] == "review"
    assert "26.01.2025 18:00" in outcome.message

    outcome = await bot.press("schedule:confirm")
    assert outcome.ok
    item = bot.records.schedule[outcome.data["service_id"]]
    assert item.title == "Youth meeting"
    assert item.starts_at == datetime(2025, 1, 26, 18, 0, tzinfo=MOSCOW)

    outcome = await bot.press("schedule:continue")
    assert outcome.data["step"] == "review"


@pytest.mark.asyncio
async def test_edit_entry_picked_from_week(bot):
    await _seed(bot)
    await bot.start("schedule")
    await bot.press("schedule:set:mode:edit")
    outcome = await bot.press("schedule:set:week:current")
    assert outcome.data["step"] == "preview_week"
    assert "Prayer" in bot.transport.last.choices[0].label

    outcome = await bot.press("schedule:pick:week_records:0")
    assert outcome.data["step"] == "review"
    assert "22.01.2025 19:00" in outcome.message

    await bot.press("schedule:edit:title")
    outcome = await bot.say("Prayer night")
    assert outcome.data["step"] == "review"
    outcome = await bot.press("schedule:confirm")
    assert outcome.ok
    assert outcome.data["service_id"] == "s1"

    item = bot.records.schedule["s1"]
    assert item.title == "Prayer night"
    assert item.starts_at == datetime(2025, 1, 22, 19, 0, tzinfo=MOSCOW)
    assert item.location == "Main hall"
    assert len(bot.records.schedule) == 1


@pytest.mark.asyncio
async def test_next_week_is_empty(bot):
    await _seed(bot)
    await bot.start("schedule")
    await bot.press("schedule:set:mode:edit")
    outcome = await bot.press("schedule:set:week:next")
    assert outcome.data["step"] == "preview_week"
    assert "Nothing is scheduled" in outcome.message


@pytest.mark.asyncio
async def test_stale_pick_reloads_week(bot):
    await _seed(bot)
    await bot.start("schedule")
    await bot.press("schedule:set:mode:edit")
    await bot.press("schedule:set:week:current")

    outcome = await bot.press("schedule:pick:week_records:3")
    assert outcome.error == "choice_decode_failed"
    assert outcome.data["step"] == "preview_week"

    del bot.records.schedule["s1"]
    outcome = await bot.press("schedule:pick:week_records:0")
    assert outcome.error == "choice_decode_failed"
    state = await bot.session("schedule")
    assert state.data["week_records"] == []
