# runtime.py
# 컴포넌트 조립: 저장소 하나를 필요한 모든 컴포넌트에 참조로 넘김
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import Request

from config import LOCAL_TZ
from database import SessionLocal, init_db
from services.digest_builder import DigestBuilder, register_daily_digest
from services.event_scheduler import EventScheduler
from services.event_timers import EventReminderTimers
from services.intent_resolver import IntentResolver
from services.reminder_dispatcher import ReminderDispatcher
from services.reminder_store import ReminderStore

logger = logging.getLogger(__name__)


@dataclass
class AssistantRuntime:
    store: ReminderStore
    resolver: IntentResolver
    event_scheduler: EventScheduler
    dispatcher: ReminderDispatcher
    digest_builder: DigestBuilder
    timers: EventReminderTimers
    scheduler: BackgroundScheduler
    send_fn: Callable[[str, str], bool]
    chat_fn: Callable[[str], str]

    def start(self) -> None:
        """백그라운드 잡(디스패처/일일 요약) 등록 후 스케줄러 시작"""
        self.dispatcher.register(self.scheduler)
        register_daily_digest(self.scheduler, self.digest_builder, self.store, self.send_fn)
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Job scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Job scheduler shut down")


def make_scheduler() -> BackgroundScheduler:
    return BackgroundScheduler(
        timezone=LOCAL_TZ,
        job_defaults={
            "coalesce": False,
            "max_instances": 1,
            "misfire_grace_time": 300,  # 5 minutes
        },
    )


def build_runtime(
    calendar=None,
    messenger=None,
    classify_fn: Optional[Callable[[str], str]] = None,
    chat_fn: Optional[Callable[[str], str]] = None,
    session_factory=None,
    scheduler: Optional[BackgroundScheduler] = None,
    now_fn=None,
) -> AssistantRuntime:
    """
    실제 협력자(Google Calendar/Twilio/OpenAI)로 런타임을 만든다. 인자로 대체 가능.
    """
    if calendar is None:
        from routes.google_calendar import GoogleCalendar
        calendar = GoogleCalendar()
    if messenger is None:
        from routes.twilio_messaging import TwilioMessenger
        messenger = TwilioMessenger()
    if classify_fn is None or chat_fn is None:
        from routes.openai_client import classify_intent_raw, chitchat_reply
        classify_fn = classify_fn or classify_intent_raw
        chat_fn = chat_fn or chitchat_reply
    if session_factory is None:
        init_db()
        session_factory = SessionLocal

    scheduler = scheduler or make_scheduler()
    send_fn = messenger.send
    store = ReminderStore(session_factory, now_fn=now_fn)
    timers = EventReminderTimers(scheduler, send_fn)
    return AssistantRuntime(
        store=store,
        resolver=IntentResolver(classify_fn),
        event_scheduler=EventScheduler(calendar, timers, now_fn=now_fn),
        dispatcher=ReminderDispatcher(store, send_fn, now_fn=now_fn),
        digest_builder=DigestBuilder(calendar, store, now_fn=now_fn),
        timers=timers,
        scheduler=scheduler,
        send_fn=send_fn,
        chat_fn=chat_fn,
    )


def get_runtime(request: Request) -> AssistantRuntime:
    return request.app.state.runtime
