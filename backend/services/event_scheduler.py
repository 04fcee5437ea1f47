# services/event_scheduler.py
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from config import DEFAULTS, LOCAL_TZ
from schemas.assistant_schema import CalendarEventRef, Intent
from services.date_normalizer import normalize_datetime, parse_iso, shift_years
from services.errors import InvalidDate, SchedulingError
from services.event_timers import EventReminderTimers
from routes.assistant_render import _pack_g
from routes.assistant_utils import _mask_identity

logger = logging.getLogger(__name__)


def pre_event_text(summary: str) -> str:
    return f'⏰ Recordatorio: "{summary}" en {DEFAULTS.pre_event_notice_minutes} minutos.'


class EventScheduler:
    """
    캘린더 이벤트 생성기.

    1) 시작 시각을 DateNormalizer로 보정(실패 시 SchedulingError)
    2) 종료는 시작이 밀린 만큼 같이 밀어 길이 유지, 없으면 +60분
    3) 그래도 시작이 과거면(이중 확인) 정확히 1년 뒤로 밀고 종료는 +60분으로 재계산
    4) 캘린더 협력자에 insert, 실패 시 SchedulingError(재시도 없음)
    5) 시작 60분 전 1회성 알림 예약(이미 지났으면 예약 안 함)

    :param calendar: insert(summary, description, start_iso, end_iso, attendees) 를 가진 협력자
    :param timers: 이벤트 알림 타이머
    :type timers: EventReminderTimers
    :param now_fn: 현재 시각 공급자
    :param normalize_fn: 날짜 보정 함수(기본 normalize_datetime)
    """

    def __init__(
        self,
        calendar,
        timers: EventReminderTimers,
        now_fn: Optional[Callable[[], datetime]] = None,
        normalize_fn: Callable[..., datetime] = normalize_datetime,
    ):
        self.calendar = calendar
        self.timers = timers
        self.now_fn = now_fn or (lambda: datetime.now(LOCAL_TZ))
        self.normalize_fn = normalize_fn

    def schedule(
        self,
        intent: Intent,
        owner_identity: str,
        original_text: str = "",
        now: Optional[datetime] = None,
    ) -> CalendarEventRef:
        now = now or self.now_fn()
        duration = timedelta(minutes=DEFAULTS.event_duration_minutes)

        raw_start = parse_iso(intent.start_iso)
        try:
            start = self.normalize_fn(intent.start_iso, original_text, now=now)
        except InvalidDate as e:
            raise SchedulingError(f"cannot normalize start {intent.start_iso!r}") from e

        end = None
        raw_end = parse_iso(intent.end_iso)
        if raw_end is not None and raw_start is not None:
            try:
                end = raw_end + (start - raw_start)
            except OverflowError:
                end = None
        if end is None or end <= start:
            end = start + duration

        # failsafe: 보정 후에도 과거면 1년 뒤로(요일/월 의미는 고려하지 않음)
        if start <= now:
            logger.warning("[EVENT] start %s still not after now, shifting %d year(s)",
                           start.isoformat(), DEFAULTS.failsafe_shift_years)
            start = shift_years(start, DEFAULTS.failsafe_shift_years)
            end = start + duration

        summary = intent.summary or DEFAULTS.default_event_summary
        description = intent.description or DEFAULTS.default_event_description
        try:
            created = self.calendar.insert(
                summary=summary,
                description=description,
                start_iso=start.isoformat(),
                end_iso=end.isoformat(),
                attendees=list(intent.attendees or []),
            )
        except Exception as e:
            # 협력자 오류 종류와 무관하게 생성 실패로 통일
            logger.error("[EVENT] calendar insert failed: %s", e)
            raise SchedulingError("calendar insert failed") from e

        ref = _pack_g(created, fallback_start=start, fallback_end=end)
        self._arm_pre_event_notice(ref, summary, start, owner_identity, now)
        return ref

    def _arm_pre_event_notice(
        self,
        ref: CalendarEventRef,
        summary: str,
        start: datetime,
        owner_identity: str,
        now: datetime,
    ) -> None:
        fire_at = start - timedelta(minutes=DEFAULTS.pre_event_notice_minutes)
        if fire_at <= now:
            # 즉시 발사/보충 없음
            logger.info("[EVENT] notice for %s skipped (fire_at %s already past)", ref.id, fire_at.isoformat())
            return
        if not owner_identity:
            return
        event_key = ref.id or f"{summary}@{start.isoformat()}"
        self.timers.arm(event_key, fire_at, owner_identity, pre_event_text(summary))
        logger.info("[EVENT] created %s for %s", event_key, _mask_identity(owner_identity))
