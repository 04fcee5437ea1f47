# services/reminder_store.py
# 리마인더 목록 + 사용자 맵을 소유하는 저장소.
# - 프로세스 시작 시 한 번 로드, 변경 배치가 끝날 때마다 문서 전체를 다시 씀
# - 리마인더는 삭제하지 않고 done=True 로만 표시(추가 전용 이력)
# - 변경은 모두 self.lock 안에서 일어남. 디스패처는 배치 전체 동안 lock을 잡는다.

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from config import DEFAULTS, LOCAL_TZ
from models.store import StoreSnapshot, STORE_ROW_ID
from schemas.assistant_schema import Reminder, StoreDocument, User
from services.errors import PersistenceFailure
from routes.assistant_utils import _mask_identity

logger = logging.getLogger(__name__)


class ReminderStore:
    """
    사용자/리마인더 문서를 메모리에 들고 있고, SQLAlchemy 세션으로 통째로 저장한다.

    :param session_factory: sessionmaker (database.SessionLocal 또는 테스트용)
    :type session_factory: sessionmaker
    :param now_fn: 현재 시각 공급자(테스트에서 고정 시계 주입)
    :type now_fn: Optional[Callable[[], datetime]]
    """

    def __init__(self, session_factory: sessionmaker, now_fn: Optional[Callable[[], datetime]] = None):
        self._session_factory = session_factory
        self._now = now_fn or (lambda: datetime.now(LOCAL_TZ))
        self.lock = threading.RLock()
        self._doc = self._load()

    # 로드 / 저장
    def _load(self) -> StoreDocument:
        try:
            with self._session_factory() as db:
                row = db.get(StoreSnapshot, STORE_ROW_ID)
                if row is None:
                    logger.info("[STORE] no snapshot yet, starting empty")
                    return StoreDocument()
                doc = StoreDocument.model_validate_json(row.payload)
        except (SQLAlchemyError, ValueError) as e:
            # 읽기 실패 시 빈 문서로 시작(원본 행은 다음 persist 때 덮어씀)
            logger.error("[STORE] load failed, starting empty: %s", e)
            return StoreDocument()
        logger.info("[STORE] loaded users=%d reminders=%d", len(doc.users), len(doc.reminders))
        return doc

    def persist(self) -> bool:
        """
        문서 전체를 한 행에 덮어쓴다. 실패하면 로그만 남기고 메모리 상태를 유지한다.

        :return: 저장 성공 여부
        :rtype: bool
        """
        with self.lock:
            payload = self._doc.model_dump_json(by_alias=True)
            try:
                self._write(payload)
            except PersistenceFailure as e:
                logger.error("[STORE] persist failed (in-memory state kept): %s", e)
                return False
            return True

    def _write(self, payload: str) -> None:
        try:
            with self._session_factory() as db:
                row = db.get(StoreSnapshot, STORE_ROW_ID)
                if row is None:
                    db.add(StoreSnapshot(id=STORE_ROW_ID, payload=payload))
                else:
                    row.payload = payload
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(str(e)) from e

    # 사용자
    def ensure_user(self, identity: str) -> bool:
        """
        처음 보는 식별자면 사용자를 만들고 저장한다.

        :return: 새로 만들었으면 True
        :rtype: bool
        """
        with self.lock:
            if identity in self._doc.users:
                return False
            self._doc.users[identity] = User(identity=identity)
            logger.info("[STORE] new user %s", _mask_identity(identity))
            self.persist()
            return True

    def identities(self) -> List[str]:
        with self.lock:
            return list(self._doc.users.keys())

    # 리마인더
    def _next_id(self, now: datetime) -> str:
        base = f"r_{int(now.timestamp() * 1000)}"
        taken = {r.id for r in self._doc.reminders}
        if base not in taken:
            return base
        n = 1
        while f"{base}_{n}" in taken:
            n += 1
        return f"{base}_{n}"

    def add(
        self,
        owner_identity: str,
        text: str,
        lead_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Reminder:
        """
        now + lead_minutes에 울릴 리마인더를 추가하고 저장한다. 중복 제거는 하지 않음.

        :param owner_identity: 받을 사용자 식별자
        :type owner_identity: str
        :param text: 리마인더 본문
        :type text: str
        :param lead_minutes: 몇 분 뒤에 울릴지(기본 DEFAULTS.reminder_lead_minutes)
        :type lead_minutes: Optional[int]
        :param now: 기준 시각
        :type now: Optional[datetime]
        :return: 생성된 리마인더
        :rtype: Reminder
        """
        if lead_minutes is None:
            lead_minutes = DEFAULTS.reminder_lead_minutes
        if lead_minutes <= 0:
            raise ValueError("lead_minutes must be positive")
        with self.lock:
            now = now or self._now()
            r = Reminder(
                id=self._next_id(now),
                owner_identity=owner_identity,
                text=text,
                due_at=now + timedelta(minutes=lead_minutes),
                done=False,
            )
            self._doc.reminders.append(r)
            logger.info("[STORE] reminder %s for %s due %s", r.id, _mask_identity(owner_identity), r.due_at.isoformat())
            self.persist()
            return r

    def reminders(self) -> List[Reminder]:
        with self.lock:
            return list(self._doc.reminders)

    def get(self, reminder_id: str) -> Optional[Reminder]:
        with self.lock:
            return next((r for r in self._doc.reminders if r.id == reminder_id), None)

    def due(self, now: datetime) -> List[Reminder]:
        """아직 안 보냈고 due_at <= now 인 리마인더"""
        with self.lock:
            return [r for r in self._doc.reminders if not r.done and r.due_at <= now]

    def pending_for(self, identity: str, until: datetime) -> List[Reminder]:
        """해당 사용자의 미완료 리마인더 중 until 이전에 울릴 것(시각순)"""
        with self.lock:
            items = [
                r for r in self._doc.reminders
                if r.owner_identity == identity and not r.done and r.due_at <= until
            ]
        return sorted(items, key=lambda r: r.due_at)

    def mark_done(self, reminder: Reminder) -> None:
        # 저장은 호출자(배치 단위)가 persist()로 한 번에 함
        with self.lock:
            reminder.done = True
