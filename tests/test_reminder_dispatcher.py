from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from config import LOCAL_TZ
from services.reminder_dispatcher import DISPATCHER_JOB_ID, ReminderDispatcher, reminder_text
from services.reminder_store import ReminderStore

from conftest import FakeMessenger, MONDAY_9AM


def test_reminder_delivered_exactly_once(store, messenger):
    r = store.add("u1", "comprar pan", now=MONDAY_9AM)
    dispatcher = ReminderDispatcher(store, messenger.send)

    assert dispatcher.tick(MONDAY_9AM + timedelta(minutes=10)) == []
    assert messenger.sent == []

    delivered = dispatcher.tick(MONDAY_9AM + timedelta(minutes=31))
    assert [d.id for d in delivered] == [r.id]
    assert messenger.sent == [("u1", "⏰ Recordatorio: comprar pan")]
    assert store.get(r.id).done is True

    assert dispatcher.tick(MONDAY_9AM + timedelta(minutes=40)) == []
    assert len(messenger.sent) == 1


def test_done_flag_is_persisted(store, session_factory, messenger):
    r = store.add("u1", "sacar la basura", now=MONDAY_9AM)
    ReminderDispatcher(store, messenger.send).tick(MONDAY_9AM + timedelta(hours=1))

    assert ReminderStore(session_factory).get(r.id).done is True


def test_failed_delivery_is_not_retried(store):
    messenger = FakeMessenger(fail_for={"u2"}, raise_for={"u3"})
    ok = store.add("u1", "uno", now=MONDAY_9AM)
    failed = store.add("u2", "dos", now=MONDAY_9AM)
    crashed = store.add("u3", "tres", now=MONDAY_9AM)
    dispatcher = ReminderDispatcher(store, messenger.send)

    delivered = dispatcher.tick(MONDAY_9AM + timedelta(minutes=45))

    assert [d.id for d in delivered] == [ok.id]
    assert failed.done and crashed.done
    assert dispatcher.tick(MONDAY_9AM + timedelta(hours=2)) == []
    assert messenger.sent == [("u1", "⏰ Recordatorio: uno")]


def test_batch_persists_once(store, messenger, monkeypatch):
    store.add("u1", "uno", now=MONDAY_9AM)
    store.add("u1", "dos", now=MONDAY_9AM)
    calls = []
    real_persist = store.persist
    monkeypatch.setattr(store, "persist", lambda: calls.append(1) or real_persist())

    ReminderDispatcher(store, messenger.send).tick(MONDAY_9AM + timedelta(hours=1))

    assert len(calls) == 1
    assert len(messenger.sent) == 2


def test_run_job_uses_clock(store, messenger, clock):
    store.add("u1", "con reloj")
    dispatcher = ReminderDispatcher(store, messenger.send, now_fn=clock)

    dispatcher.run_job()
    assert messenger.sent == []

    clock.advance(minutes=30)
    dispatcher.run_job()
    assert messenger.sent == [("u1", "⏰ Recordatorio: con reloj")]


def test_register_adds_interval_job(store, messenger):
    scheduler = BackgroundScheduler(timezone=LOCAL_TZ)
    job_id = ReminderDispatcher(store, messenger.send).register(scheduler, interval_seconds=5)

    assert job_id == DISPATCHER_JOB_ID
    assert scheduler.get_job(DISPATCHER_JOB_ID) is not None


def test_reminder_text_format(store):
    r = store.add("u1", "tomar agua", now=MONDAY_9AM)
    assert reminder_text(r) == "⏰ Recordatorio: tomar agua"
