# 환경 변수 / 기본값 테이블
# - 외부 서비스 키와 엔드포인트는 .env(python-dotenv)에서 읽음
# - 분기마다 흩어져 있던 기본값(기본 길이, 리마인더 리드타임 등)은 DEFAULTS 한 곳에 모음
import os
from datetime import timezone, timedelta

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

load_dotenv()

# 부에노스아이레스 기준(UTC-03:00, 서머타임 없음)
LOCAL_TZ = timezone(timedelta(hours=-3))
LOCAL_TZ_NAME = "America/Argentina/Buenos_Aires"

##############################################
# OPENAI_API_KEY : OpenAI API 인증키            #
# OPENAI_BASE : OpenAI API 엔드포인트 기본 URL    #
# OPENAI_MODEL : 의도 분류/잡담에 쓸 모델 이름      #
##############################################
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE = os.getenv("OPENAI_BASE", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_REFRESH_TOKEN = os.getenv("GOOGLE_REFRESH_TOKEN", "")
GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID", "primary")

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_WHATSAPP_FROM = os.getenv("TWILIO_WHATSAPP_FROM", "")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./assistant.db")
WEB_ORIGIN = os.getenv("WEB_ORIGIN", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def _parse_hhmm_env(value: str, fallback: tuple) -> tuple:
    """
    'HH:MM' 형식의 환경 변수를 (hour, minute)로 읽는다. 형식이 틀리면 fallback.
    """
    try:
        hh, mm = value.strip().split(":")
        hour, minute = int(hh), int(mm)
    except (AttributeError, ValueError):
        return fallback
    if 0 <= hour <= 23 and 0 <= minute <= 59:
        return hour, minute
    return fallback


class AssistantDefaults(BaseModel):
    """
    결정 지점에서 참조하는 이름 붙은 기본값 모음.
    """
    model_config = ConfigDict(frozen=True)

    default_intent_kind: str = "none"
    event_duration_minutes: int = 60
    pre_event_notice_minutes: int = 60
    reminder_lead_minutes: int = 30
    max_year_drift_days: int = 370
    failsafe_shift_years: int = 1
    dispatcher_interval_seconds: int = 5
    digest_window_hours: int = 24
    digest_hour: int = 6
    digest_minute: int = 30
    default_event_summary: str = "Evento"
    default_event_description: str = "Creado por asistente"


_DIGEST_HOUR, _DIGEST_MINUTE = _parse_hhmm_env(os.getenv("DIGEST_TIME", "06:30"), (6, 30))

DEFAULTS = AssistantDefaults(
    dispatcher_interval_seconds=int(os.getenv("DISPATCH_INTERVAL_SECONDS", "5")),
    digest_hour=_DIGEST_HOUR,
    digest_minute=_DIGEST_MINUTE,
)
