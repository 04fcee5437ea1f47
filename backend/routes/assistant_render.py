# routes/assistant_render.py
# 렌더/ 서식
from datetime import datetime
from typing import Optional

from schemas.assistant_schema import CalendarEventRef
from services.date_normalizer import parse_iso

def _pack_g(e: dict, fallback_start: Optional[datetime] = None, fallback_end: Optional[datetime] = None) -> CalendarEventRef:
    """
    구글 이벤트 객체에서 필요한 최소 필드만 추려 CalendarEventRef로 패킹한다.
    응답에 start/end가 없으면 요청에 보낸 값(fallback)을 쓴다.

    :param e: Google 이벤트 객체
    :type e: dict
    :param fallback_start: 응답에 시작이 없을 때 쓸 값
    :type fallback_start: Optional[datetime]
    :param fallback_end: 응답에 종료가 없을 때 쓸 값
    :type fallback_end: Optional[datetime]
    :return: CalendarEventRef
    :rtype: CalendarEventRef
    """

    e = e or {}
    start = e.get("start") or {}
    end = e.get("end") or {}
    start_dt = parse_iso(start.get("dateTime") or start.get("date")) or fallback_start
    end_dt = parse_iso(end.get("dateTime") or end.get("date")) or fallback_end
    return CalendarEventRef(
        id=str(e.get("id") or ""),
        summary=e.get("summary") or "(Sin título)",
        start=start_dt,
        end=end_dt,
        attendees=[a.get("email") for a in (e.get("attendees") or []) if a.get("email")],
        html_link=e.get("htmlLink"),
    )

def _event_title(e: dict) -> str:
    return (e or {}).get("summary") or "(Sin título)"

def _event_start_raw(e: dict) -> Optional[str]:
    s = (e or {}).get("start") or {}
    if isinstance(s, str):
        return s
    return s.get("dateTime") or s.get("date")

def _bullets(lines, empty_placeholder: str) -> str:
    # 비어 있으면 고정 문구 한 줄
    lines = list(lines)
    if not lines:
        return f"• {empty_placeholder}"
    return "\n".join(f"• {line}" for line in lines)
