# routes/assistant_time.py
# 시간 / 포맷 (사용자 노출용 es-AR 관례: 일/월, 24시간제)

from datetime import datetime, timezone
from typing import Optional

from config import LOCAL_TZ
from services.date_normalizer import parse_iso

def _now_local_iso() -> str:
    """
    현재 시각을 로컬(UTC-03:00) ISO 8601 문자열로 반환한다.

    :return: -03:00 오프셋을 포함한 ISO 문자열
    :rtype: str
    """

    return datetime.now(LOCAL_TZ).replace(microsecond=0).isoformat()

def _to_local(dt: datetime) -> datetime:
    return dt.astimezone(LOCAL_TZ) if dt.tzinfo else dt.replace(tzinfo=LOCAL_TZ)

def _rfc3339(dt: datetime) -> str:
    """
    datetime을 RFC3339 UTC(Z) 문자열로 반환한다. (timeMin/timeMax 용)

    :param dt: 기준 datetime
    :type dt: datetime
    :return: 'Z'로 끝나는 RFC3339 문자열(UTC)
    :rtype: str
    """
    return (
        _to_local(dt).astimezone(timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )

def _friendly_when(dt: datetime) -> str:
    # 확인 메시지용: "05/06/2025 07:00"
    return _to_local(dt).strftime("%d/%m/%Y %H:%M")

def _digest_when(dt: datetime) -> str:
    # 요약 이벤트 줄: "05/06 07:00"
    return _to_local(dt).strftime("%d/%m %H:%M")

def _hhmm(dt: datetime) -> str:
    return _to_local(dt).strftime("%H:%M")

def _event_start_label(raw: Optional[str]) -> str:
    """
    구글 이벤트 start(dateTime 또는 date) 문자열을 요약용 라벨로 바꾼다.
    종일 이벤트(YYYY-MM-DD)는 날짜만 표시한다.

    :param raw: start.dateTime 또는 start.date
    :type raw: Optional[str]
    :return: "dd/mm HH:MM" / "dd/mm" / "(sin hora)"
    :rtype: str
    """

    dt = parse_iso(raw)
    if dt is None:
        return "(sin hora)"
    if len(raw.strip()) == 10:
        return dt.strftime("%d/%m")
    return _digest_when(dt)
