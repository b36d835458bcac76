from datetime import date

import pytest

from vestry.records import UpsertResult
from vestry.store import SQLiteStateStore


async def _open(bot, stream, mode="create"):
    await bot.start("sunday_service")
    await bot.press(f"sunday_service:set:mode:{mode}")
    await bot.press("sunday_service:set:date:2025-01-26")
    return await bot.press(f"sunday_service:set:stream:{stream}")


async def _fill_required(bot, preacher_index, team_index):
    await bot.press("sunday_service:edit:preachers")
    await bot.press(f"sunday_service:toggle:preachers:{preacher_index}")
    await bot.press("sunday_service:done:preachers")
    await bot.press(f"sunday_service:pick:worship_services_list:{team_index}")
    return await bot.press("sunday_service:review")


@pytest.mark.asyncio
async def test_date_step_offers_next_two_sundays(bot):
    await bot.start("sunday_service")
    await bot.press("sunday_service:set:mode:create")
    labels = [c.label for c in bot.transport.last.choices]
    assert labels[:2] == ["26.01.2025", "02.02.2025"]


@pytest.mark.asyncio
async def test_single_stream_full_chain(bot):
    outcome = await _open(bot, "1")
    assert outcome.data["step"] == "review"

    outcome = await bot.press("sunday_service:confirm")
    assert outcome.error == "validation_failed"
    assert set(outcome.data["errors"]) == {"preachers", "worship_service"}

    await bot.press("sunday_service:edit:preachers")
    await bot.press("sunday_service:toggle:preachers:0")
    await bot.press("sunday_service:page:preachers:1")
    await bot.press("sunday_service:toggle:preachers:5")
    outcome = await bot.press("sunday_service:done:preachers")
    assert outcome.data["step"] == "worship_service"
    assert [c.label for c in bot.transport.last.choices][:2] == ["Team A", "Team B"]

    await bot.press("sunday_service:pick:worship_services_list:1")
    await bot.press("sunday_service:set:song_before_start:yes")
    await bot.press("sunday_service:set:num_worship_songs:4")
    await bot.press("sunday_service:set:solo_song:no")
    outcome = await bot.press("sunday_service:set:repentance_song:yes")
    assert outcome.data["step"] == "scripture_reading"

    outcome = await bot.say("Psalm 23")
    assert outcome.data["step"] == "scripture_reader"
    outcome = await bot.press("sunday_service:pick:scripture_readers_list:0")
    assert outcome.data["step"] == "review"

    outcome = await bot.press("sunday_service:confirm")
    assert outcome.ok
    assert outcome.data["step"] == "completed"

    (record,) = bot.records.services.values()
    assert record.date == date(2025, 1, 26)
    assert record.stream == "1"
    assert record.title == "Sunday service I stream - 26.01.2025"
    assert record.preachers == ["Антон Кириенко", "Андрей Седюко"]
    assert record.worship_service == "Team B"
    assert record.song_before_start is True
    assert record.num_worship_songs == 4
    assert record.solo_song is False
    assert record.repentance_song is True
    assert record.scripture_reading == "Psalm 23"
    assert record.scripture_reader == "Reader 1"
    assert outcome.data["service_ids"] == {"1": record.id}

    state = await bot.session("sunday_service")
    assert state.data["mode"] == "edit"


@pytest.mark.asyncio
async def test_custom_values_by_text(bot):
    await _open(bot, "1")
    await bot.press("sunday_service:edit:preachers")
    await bot.press("sunday_service:custom:preachers")
    outcome = await bot.say("Guest Speaker, Антон Кириенко")
    assert outcome.data["step"] == "preachers"
    state = await bot.session("sunday_service")
    assert state.data["preachers"] == ["Guest Speaker", "Антон Кириенко"]
    assert not state.waiting_for_free_text

    await bot.press("sunday_service:done:preachers")
    await bot.press("sunday_service:custom:worship_service")
    outcome = await bot.say("Visiting band")
    assert outcome.data["step"] == "song_before_start"

    await bot.press("sunday_service:set:song_before_start:no")
    await bot.press("sunday_service:custom:num_worship_songs")
    outcome = await bot.say("many")
    assert outcome.error == "invalid_number"
    outcome = await bot.say("12")
    assert outcome.data["step"] == "solo_song"
    state = await bot.session("sunday_service")
    assert state.data["num_worship_songs"] == 12


@pytest.mark.asyncio
async def test_both_streams_are_edited_separately(bot):
    await _open(bot, "both")

    outcome = await bot.press("sunday_service:confirm")
    assert outcome.error == "validation_failed"
    assert "preachers (I stream)" in outcome.data["errors"]
    assert "preachers (II stream)" in outcome.data["errors"]

    await _fill_required(bot, 0, 0)
    outcome = await bot.press("sunday_service:switch:2")
    assert outcome.ok
    state = await bot.session("sunday_service")
    assert state.data["current_stream"] == "2"
    assert state.data["title"] == "Sunday service II stream - 26.01.2025"
    assert state.data["preachers"] == []
    assert state.streams["1"]["worship_service"] == "Team A"

    await _fill_required(bot, 1, 1)
    outcome = await bot.press("sunday_service:switch:1")
    state = await bot.session("sunday_service")
    assert state.data["worship_service"] == "Team A"
    assert state.streams["2"]["worship_service"] == "Team B"

    outcome = await bot.press("sunday_service:confirm")
    assert outcome.ok
    records = {r.stream: r for r in bot.records.services.values()}
    assert records["1"].preachers == ["Антон Кириенко"]
    assert records["1"].worship_service == "Team A"
    assert records["2"].preachers == ["Денис Аргер"]
    assert records["2"].worship_service == "Team B"
    assert records["2"].title == "Sunday service II stream - 26.01.2025"


@pytest.mark.asyncio
async def test_end_of_first_stream_moves_to_second(bot):
    await _open(bot, "both")
    await bot.press("sunday_service:edit:scripture_reader")
    outcome = await bot.press("sunday_service:pick:scripture_readers_list:0")
    assert outcome.data["step"] == "review"
    assert "Now the II stream" in outcome.message

    state = await bot.session("sunday_service")
    assert state.data["current_stream"] == "2"
    assert state.streams["1"]["scripture_reader"] == "Reader 1"


@pytest.mark.asyncio
async def test_edit_existing_service(bot):
    await _open(bot, "1")
    await _fill_required(bot, 0, 1)
    await bot.press("sunday_service:confirm")
    (saved,) = bot.records.services.values()

    await _open(bot, "1", mode="edit")
    state = await bot.session("sunday_service")
    assert state.step == "review"
    assert state.data["worship_service"] == "Team B"
    assert state.data["service_ids"] == {"1": saved.id}

    await bot.press("sunday_service:edit:worship_service")
    outcome = await bot.press("sunday_service:pick:worship_services_list:0")
    assert outcome.data["step"] == "review"
    outcome = await bot.press("sunday_service:confirm")
    assert outcome.ok

    assert list(bot.records.services) == [saved.id]
    assert bot.records.services[saved.id].worship_service == "Team A"


@pytest.mark.asyncio
async def test_edit_without_existing_record_switches_to_create(bot):
    outcome = await _open(bot, "2", mode="edit")
    assert "starting a new plan" in outcome.message
    state = await bot.session("sunday_service")
    assert state.data["mode"] == "create"
    assert state.data["title"] == "Sunday service II stream - 26.01.2025"


@pytest.mark.asyncio
async def test_failed_save_keeps_answers(bot, monkeypatch):
    await _open(bot, "1")
    await _fill_required(bot, 0, 0)

    async def failing_upsert(record):
        return UpsertResult(ok=False, error="backend down")

    monkeypatch.setattr(bot.records, "upsert_record", failing_upsert)
    outcome = await bot.press("sunday_service:confirm")
    assert not outcome.ok
    assert outcome.error == "save_failed"
    state = await bot.session("sunday_service")
    assert state.step == "review"
    assert state.data["preachers"] == ["Антон Кириенко"]


@pytest.mark.asyncio
async def test_stale_choice_reloads_list(bot):
    await _open(bot, "1")
    await bot.press("sunday_service:edit:worship_service")
    bot.records.options["worship_services"] = ["Team C"]

    outcome = await bot.press("sunday_service:pick:worship_services_list:5")
    assert outcome.error == "choice_decode_failed"
    assert outcome.data["step"] == "worship_service"
    state = await bot.session("sunday_service")
    assert state.data["worship_services_list"] == ["Team C"]
    assert bot.transport.last.choices[0].label == "Team C"

    outcome = await bot.press("sunday_service:pick:worship_services_list:0")
    assert outcome.ok
    state = await bot.session("sunday_service")
    assert state.data["worship_service"] == "Team C"


@pytest.mark.asyncio
async def test_session_survives_restart(tmp_path, make_bot):
    db_path = tmp_path / "state.db"
    first = make_bot(store=SQLiteStateStore(db_path))
    await _open(first, "1")
    await _fill_required(first, 0, 0)
    first.store.close()

    second = make_bot(store=SQLiteStateStore(db_path), records=first.records)
    state = await second.session("sunday_service")
    assert state.step == "review"
    assert state.data["date"] == date(2025, 1, 26)

    outcome = await second.press("sunday_service:confirm")
    assert outcome.ok
    (record,) = second.records.services.values()
    assert record.date == date(2025, 1, 26)
