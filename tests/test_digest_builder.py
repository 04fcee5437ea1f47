from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from config import LOCAL_TZ
from services.date_normalizer import parse_iso
from services.digest_builder import (
    DIGEST_JOB_ID,
    DigestBuilder,
    register_daily_digest,
    send_daily_digests,
)

from conftest import FakeCalendar, FakeMessenger, MONDAY_9AM

EVENTS = [
    {"id": "a", "summary": "Dentista", "start": {"dateTime": "2025-06-02T15:00:00-03:00"}},
    {"id": "b", "summary": "Feriado", "start": {"date": "2025-06-03"}},
    {"id": "c", "start": {"dateTime": "2025-06-02T21:00:00Z"}},
]


def test_digest_lists_events_and_reminders(store):
    store.add("u1", "comprar pan", now=MONDAY_9AM)
    store.add("u2", "de otro usuario", now=MONDAY_9AM)
    store.add("u1", "muy lejos", lead_minutes=2000, now=MONDAY_9AM)
    done = store.add("u1", "ya enviado", now=MONDAY_9AM)
    store.mark_done(done)
    builder = DigestBuilder(FakeCalendar(events=EVENTS), store)

    text = builder.digest("u1", now=MONDAY_9AM)

    assert text == (
        "📋 *Resumen del día*\n\n"
        "🗓️ *Eventos (próximas 24h)*:\n"
        "• 02/06 15:00 — Dentista\n"
        "• 03/06 — Feriado\n"
        "• 02/06 18:00 — (Sin título)\n\n"
        "⏰ *Recordatorios locales*:\n"
        "• 09:30 — comprar pan"
    )


def test_calendar_window_is_next_24_hours(store):
    calendar = FakeCalendar()
    DigestBuilder(calendar, store).digest("u1", now=MONDAY_9AM)

    [(time_min, time_max)] = calendar.list_calls
    assert parse_iso(time_min) == MONDAY_9AM
    assert parse_iso(time_max) == MONDAY_9AM + timedelta(hours=24)


def test_empty_sections_use_placeholders(store):
    text = DigestBuilder(FakeCalendar(), store).digest("u1", now=MONDAY_9AM)

    assert "• (Sin eventos en Google Calendar)" in text
    assert "• (Sin recordatorios locales)" in text


def test_calendar_failure_does_not_fail_digest(store):
    store.add("u1", "comprar pan", now=MONDAY_9AM)
    text = DigestBuilder(FakeCalendar(fail_list=True), store).digest("u1", now=MONDAY_9AM)

    assert "• (No se pudo leer Calendar)" in text
    assert "• 09:30 — comprar pan" in text


def test_digest_uses_clock(store, clock):
    clock.advance(hours=1)
    calendar = FakeCalendar()
    DigestBuilder(calendar, store, now_fn=clock).digest("u1")
    assert parse_iso(calendar.list_calls[0][0]) == MONDAY_9AM + timedelta(hours=1)


def test_send_daily_digests_to_every_user(store):
    store.ensure_user("u1")
    store.ensure_user("u2")
    messenger = FakeMessenger(raise_for={"u2"})
    builder = DigestBuilder(FakeCalendar(), store, now_fn=lambda: MONDAY_9AM)

    results = send_daily_digests(builder, store, messenger.send)

    assert results == {"u1": True, "u2": False}
    [(identity, text)] = messenger.sent
    assert identity == "u1"
    assert text.startswith("📋 *Resumen del día*")


def test_register_daily_digest_cron(store, messenger):
    scheduler = BackgroundScheduler(timezone=LOCAL_TZ)
    builder = DigestBuilder(FakeCalendar(), store)

    assert register_daily_digest(scheduler, builder, store, messenger.send) == DIGEST_JOB_ID

    job = scheduler.get_job(DIGEST_JOB_ID)
    fields = {f.name: str(f) for f in job.trigger.fields}
    assert fields["hour"] == "6"
    assert fields["minute"] == "30"
