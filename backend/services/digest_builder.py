# services/digest_builder.py
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from apscheduler.schedulers.base import BaseScheduler

from config import DEFAULTS, LOCAL_TZ
from services.reminder_store import ReminderStore
from routes.assistant_render import _bullets, _event_start_raw, _event_title
from routes.assistant_time import _event_start_label, _hhmm
from routes.assistant_utils import _mask_identity

logger = logging.getLogger(__name__)

DIGEST_JOB_ID = "daily-digest"

NO_EVENTS = "(Sin eventos en Google Calendar)"
CALENDAR_UNAVAILABLE = "(No se pudo leer Calendar)"
NO_REMINDERS = "(Sin recordatorios locales)"


class DigestBuilder:
    """
    앞으로 24시간의 캘린더 이벤트 + 로컬 리마인더를 한 메시지로 묶는다.
    캘린더 조회가 실패해도 요약은 실패하지 않고 고정 문구로 대체한다.
    """

    def __init__(self, calendar, store: ReminderStore, now_fn: Optional[Callable[[], datetime]] = None):
        self.calendar = calendar
        self.store = store
        self.now_fn = now_fn or (lambda: datetime.now(LOCAL_TZ))

    def _events_section(self, now: datetime, until: datetime) -> str:
        try:
            items = self.calendar.list(now.isoformat(), until.isoformat())
        except Exception as e:
            logger.error("[DIGEST] calendar list failed: %s", e)
            return _bullets([], CALENDAR_UNAVAILABLE)
        lines = [f"{_event_start_label(_event_start_raw(e))} — {_event_title(e)}" for e in items or []]
        return _bullets(lines, NO_EVENTS)

    def _reminders_section(self, identity: str, until: datetime) -> str:
        rems = self.store.pending_for(identity, until)
        return _bullets((f"{_hhmm(r.due_at)} — {r.text}" for r in rems), NO_REMINDERS)

    def digest(self, identity: str, now: Optional[datetime] = None) -> str:
        now = now or self.now_fn()
        until = now + timedelta(hours=DEFAULTS.digest_window_hours)
        events_text = self._events_section(now, until)
        rems_text = self._reminders_section(identity, until)
        return (
            "📋 *Resumen del día*\n\n"
            f"🗓️ *Eventos (próximas {DEFAULTS.digest_window_hours}h)*:\n{events_text}\n\n"
            f"⏰ *Recordatorios locales*:\n{rems_text}"
        )


def send_daily_digests(builder: DigestBuilder, store: ReminderStore, send_fn: Callable[[str, str], bool]) -> Dict[str, bool]:
    """
    알려진 모든 사용자에게 요약을 보낸다. 한 사용자의 실패가 나머지를 막지 않는다.

    :return: identity -> 전송 성공 여부
    :rtype: Dict[str, bool]
    """
    results: Dict[str, bool] = {}
    identities = store.identities()
    logger.info("[DIGEST] sending daily digest to %d user(s)", len(identities))
    for identity in identities:
        try:
            results[identity] = bool(send_fn(identity, builder.digest(identity)))
        except Exception as e:
            logger.error("[DIGEST] failed for %s: %s", _mask_identity(identity), e)
            results[identity] = False
    return results


def register_daily_digest(
    scheduler: BaseScheduler,
    builder: DigestBuilder,
    store: ReminderStore,
    send_fn: Callable[[str, str], bool],
) -> str:
    job = scheduler.add_job(
        send_daily_digests,
        "cron",
        hour=DEFAULTS.digest_hour,
        minute=DEFAULTS.digest_minute,
        timezone=LOCAL_TZ,
        args=[builder, store, send_fn],
        id=DIGEST_JOB_ID,
        replace_existing=True,
        max_instances=1,
    )
    logger.info("Added job '%s' at %02d:%02d local", DIGEST_JOB_ID, DEFAULTS.digest_hour, DEFAULTS.digest_minute)
    return job.id
