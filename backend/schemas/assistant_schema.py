# schemas/assistant_schema.py
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Dict, Any

from config import DEFAULTS
from routes.assistant_utils import _split_valid_invalid_attendees, _dedupe_emails


class IntentKind(str, Enum):
    CALENDAR_EVENT = "calendar_event"
    LOCAL_REMINDER = "local_reminder"
    CHITCHAT = "chitchat"
    NONE = "none"


class Intent(BaseModel):
    """
    메시지 1건에 대한 분류 결과. 분류기 JSON 키(intent/startISO/endISO)를 그대로 받는다.
    """
    model_config = ConfigDict(populate_by_name=True)

    kind: IntentKind = Field(IntentKind.NONE, alias="intent")
    summary: str = ""
    description: str = ""
    start_iso: Optional[str] = Field(None, alias="startISO")
    end_iso: Optional[str] = Field(None, alias="endISO")
    attendees: List[str] = Field(default_factory=list)

    @field_validator("kind", mode="before")
    @classmethod
    def _known_kind(cls, v):
        if isinstance(v, IntentKind):
            return v
        s = str(v or "").strip().lower()
        try:
            return IntentKind(s)
        except ValueError:
            return IntentKind.NONE

    @field_validator("summary", "description", mode="before")
    @classmethod
    def _text_or_empty(cls, v):
        return str(v).strip() if v is not None else ""

    @field_validator("start_iso", "end_iso", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @field_validator("attendees", mode="before")
    @classmethod
    def _valid_unique_emails(cls, v):
        # 무효 토큰은 버리고 유효 이메일만 중복 없이 남김
        valid, _ = _split_valid_invalid_attendees(v)
        return _dedupe_emails(valid)

    @classmethod
    def empty(cls) -> "Intent":
        return cls(kind=IntentKind(DEFAULTS.default_intent_kind))


class IntentResult(BaseModel):
    """
    분류 결과 타입: ok=True면 intent 사용, ok=False면 failure에 원인이 담긴다.
    """
    ok: bool
    intent: Intent = Field(default_factory=Intent.empty)
    failure: Optional[str] = None


class Reminder(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    owner_identity: str = Field(alias="identity")
    text: str
    due_at: datetime = Field(alias="dueAt")
    done: bool = False


class User(BaseModel):
    identity: str
    # 아직 사용하지 않는 자리 표시자
    preferences: Dict[str, Any] = Field(default_factory=dict)


class StoreDocument(BaseModel):
    users: Dict[str, User] = Field(default_factory=dict)
    reminders: List[Reminder] = Field(default_factory=list)


class CalendarEventRef(BaseModel):
    id: str
    summary: str
    start: datetime
    end: Optional[datetime] = None
    attendees: List[str] = Field(default_factory=list)
    html_link: Optional[str] = None


# 입출력 모델(요청/응답 스키마)
class MessageIn(BaseModel):
    identity: str = Field(min_length=1, max_length=255)
    text: str = ""


class MessageOut(BaseModel):
    reply: str
    intent: Optional[IntentKind] = None
