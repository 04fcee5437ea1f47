# services/event_timers.py
# 이벤트 시작 전 1회성 알림 타이머.
# (fire_at, payload)를 이벤트 ID로 키잉해 보관하고, 실제 발사는 APScheduler date 잡이 맡는다.
# 잡 저장소는 메모리라서 프로세스 재시작 시 사라짐(재무장 없음).

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from routes.assistant_utils import _mask_identity

logger = logging.getLogger(__name__)

JOB_PREFIX = "event-reminder:"


@dataclass(order=True)
class ArmedNotification:
    fire_at: datetime
    event_id: str = field(compare=False)
    identity: str = field(compare=False)
    text: str = field(compare=False)


class EventReminderTimers:
    """
    이벤트 ID별 1회성 알림. arm/cancel/pending 제공.

    :param scheduler: APScheduler 스케줄러
    :type scheduler: BaseScheduler
    :param send_fn: (identity, text) -> bool 전송 함수
    :type send_fn: Callable[[str, str], bool]
    """

    def __init__(self, scheduler: BaseScheduler, send_fn: Callable[[str, str], bool]):
        self.scheduler = scheduler
        self.send_fn = send_fn
        self._armed: Dict[str, ArmedNotification] = {}
        self._lock = threading.Lock()

    def arm(self, event_id: str, fire_at: datetime, identity: str, text: str) -> ArmedNotification:
        """
        fire_at에 text를 identity로 보내도록 예약한다. 같은 event_id가 있으면 교체한다.
        """
        item = ArmedNotification(fire_at=fire_at, event_id=event_id, identity=identity, text=text)
        with self._lock:
            self._armed[event_id] = item
        self.scheduler.add_job(
            self._fire,
            "date",
            run_date=fire_at,
            args=[event_id],
            id=JOB_PREFIX + event_id,
            replace_existing=True,
        )
        logger.info("[TIMER] armed %s for %s at %s", event_id, _mask_identity(identity), fire_at.isoformat())
        return item

    def cancel(self, event_id: str) -> bool:
        with self._lock:
            item = self._armed.pop(event_id, None)
        if item is None:
            return False
        try:
            self.scheduler.remove_job(JOB_PREFIX + event_id)
        except JobLookupError:
            pass
        logger.info("[TIMER] cancelled %s", event_id)
        return True

    def pending(self) -> List[ArmedNotification]:
        # 발사 시각 순
        with self._lock:
            return sorted(self._armed.values())

    def get(self, event_id: str) -> Optional[ArmedNotification]:
        with self._lock:
            return self._armed.get(event_id)

    def _fire(self, event_id: str) -> None:
        with self._lock:
            item = self._armed.pop(event_id, None)
        if item is None:
            return
        try:
            ok = self.send_fn(item.identity, item.text)
        except Exception as e:
            logger.error("[TIMER] send error for %s: %s", event_id, e)
            return
        if not ok:
            logger.warning("[TIMER] delivery failed for %s", event_id)
