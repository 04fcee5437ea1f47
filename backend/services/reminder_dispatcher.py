# services/reminder_dispatcher.py
import logging
from datetime import datetime
from typing import Callable, List, Optional

from apscheduler.schedulers.base import BaseScheduler

from config import DEFAULTS, LOCAL_TZ
from schemas.assistant_schema import Reminder
from services.reminder_store import ReminderStore
from routes.assistant_utils import _mask_identity

logger = logging.getLogger(__name__)

DISPATCHER_JOB_ID = "reminder-dispatcher"

SendFn = Callable[[str, str], bool]


def reminder_text(reminder: Reminder) -> str:
    return f"⏰ Recordatorio: {reminder.text}"


class ReminderDispatcher:
    """
    주기적으로 저장소를 훑어 기한이 된 리마인더를 보내고 done 처리한다.

    전달은 최대 1회(at-most-once): 전송이 실패해도 done=True로 바꾸고 다시 큐에 넣지 않는다.
    """

    def __init__(self, store: ReminderStore, send_fn: SendFn, now_fn: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.send_fn = send_fn
        self.now_fn = now_fn or (lambda: datetime.now(LOCAL_TZ))

    def tick(self, now: Optional[datetime] = None) -> List[Reminder]:
        """
        선택 -> 전송 -> done 표시 -> 저장을 하나의 임계 구역으로 수행한다.

        :param now: 기준 시각(없으면 now_fn())
        :type now: Optional[datetime]
        :return: 전송에 성공한 리마인더 목록
        :rtype: List[Reminder]
        """
        now = now or self.now_fn()
        delivered: List[Reminder] = []
        with self.store.lock:
            due = self.store.due(now)
            if not due:
                return delivered
            for r in due:
                try:
                    ok = self.send_fn(r.owner_identity, reminder_text(r))
                except Exception as e:
                    logger.error("[DISPATCH] send error %s -> %s: %s", r.id, _mask_identity(r.owner_identity), e)
                    ok = False
                if ok:
                    delivered.append(r)
                else:
                    logger.warning("[DISPATCH] reminder %s dropped (delivery failed)", r.id)
                self.store.mark_done(r)
            self.store.persist()
        logger.info("[DISPATCH] due=%d delivered=%d", len(due), len(delivered))
        return delivered

    def run_job(self) -> None:
        # 스케줄러 스레드에서 예외가 새지 않게 감쌈
        try:
            self.tick()
        except Exception as exc:
            logger.error("[DISPATCH] sweep error: %s", exc, exc_info=True)

    def register(self, scheduler: BaseScheduler, interval_seconds: Optional[int] = None) -> str:
        """
        interval 잡으로 등록한다. 한 번에 하나의 sweep만 돈다.

        :return: 잡 ID
        :rtype: str
        """
        seconds = interval_seconds or DEFAULTS.dispatcher_interval_seconds
        job = scheduler.add_job(
            self.run_job,
            "interval",
            seconds=seconds,
            id=DISPATCHER_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Added job '%s' every %ss", DISPATCHER_JOB_ID, seconds)
        return job.id
