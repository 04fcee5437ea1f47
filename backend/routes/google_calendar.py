# Google Calendar API 래퍼 모듈
# - access_token 갱신/헤더 구성
# - 이벤트 생성 / 구간 조회
# - EventScheduler / DigestBuilder 가 GoogleCalendar 객체를 통해 호출함
import logging, requests
from typing import Optional, List, Dict, Any
from fastapi import APIRouter, HTTPException, Query
from urllib.parse import quote

from config import GOOGLE_CALENDAR_ID
from routes.google_oauth import _refresh
from routes.assistant_utils import _split_valid_invalid_attendees
from services.date_normalizer import parse_iso
from routes.assistant_time import _rfc3339
from services.errors import ExternalServiceFailure

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/google/calendar", tags=["google-calendar"])

GCAL_BASE = "https://www.googleapis.com/calendar/v3"


def _auth_header() -> Dict[str, str]:
    """
    토큰을 새로고침하여 Authorization 헤더를 만든다.

    :return: {"Authorization": "Bearer <access_token>"} 형태의 헤더
    :rtype: Dict[str, str]
    :raises ExternalServiceFailure: 미연결 또는 리프레시 실패
    """

    tok = _refresh()
    return {"Authorization": f"Bearer {tok['access_token']}"}


def _normalize_rfc3339(s: Optional[str]) -> Optional[str]:
    """
    시간 문자열을 RFC3339(UTC, Z)로 정규화한다. 오프셋이 없으면 로컬 시각으로 간주한다.

    :param s: 타임존 포함 여부가 불명확한 문자열
    :type s: Optional[str]
    :return: RFC3339 규격 문자열 또는 None(파싱 불가 시 원문)
    :rtype: Optional[str]
    """

    if not s:
        return None
    dt = parse_iso(s)
    return _rfc3339(dt) if dt else s


# 캘린더 ID를 URL 경로 세그먼트로 안전 인코딩
def _cid(s: str) -> str:
    return quote(s, safe='@._-+%')


def _request(method: str, path: str, **kwargs) -> requests.Response:
    # 네트워크 예외는 ExternalServiceFailure로 통일
    try:
        return requests.request(method, f"{GCAL_BASE}{path}", headers=_auth_header(), **kwargs)
    except requests.RequestException as e:
        raise ExternalServiceFailure("gcal", str(e)) from e


def _json_body(r: requests.Response, op: str) -> Dict[str, Any]:
    # 2xx 인데 본문이 JSON 객체가 아니면 협력자 실패로 취급
    try:
        data = r.json()
    except ValueError as e:
        raise ExternalServiceFailure("gcal", f"Google Calendar {op}: invalid JSON body", r.status_code) from e
    if not isinstance(data, dict):
        raise ExternalServiceFailure("gcal", f"Google Calendar {op}: unexpected body", r.status_code)
    return data


def _norm_attendees_for_write(v) -> List[Dict[str, str]]:
    """
    참석자 입력을 Google Calendar API 형식으로 정규화한다. 무효 토큰은 버린다.

    :param v: 문자열 이메일/딕셔너리 혼합 리스트 또는 단일 값
    :type v: Any
    :return: {'email': str} 리스트
    :rtype: List[Dict[str, str]]
    """

    valid, invalid = _split_valid_invalid_attendees(v)
    if invalid:
        logger.warning("[GCAL] dropping invalid attendees: %s", invalid)
    return [{"email": email} for email in valid]


def gcal_insert_event(body: Dict[str, Any], calendar_id: Optional[str] = None) -> Dict[str, Any]:
    """
    새 이벤트를 생성한다.

    :param body: summary/description/start/end(문자열 또는 {"dateTime"})/attendees
    :type body: Dict[str, Any]
    :param calendar_id: 대상 캘린더 ID (기본값 GOOGLE_CALENDAR_ID)
    :type calendar_id: Optional[str]
    :return: 생성된 이벤트
    :rtype: Dict[str, Any]
    :raises ExternalServiceFailure: Google API 오류
    """

    calendar_id = calendar_id or GOOGLE_CALENDAR_ID
    b = dict(body)
    start = b.get("start")
    end = b.get("end")

    # 문자열로 들어온 경우 dateTime으로 래핑
    if isinstance(start, str):
        start = {"dateTime": start}
    if isinstance(end, str):
        end = {"dateTime": end}

    payload: Dict[str, Any] = {
        "summary": b.get("summary") or "(Sin título)",
        "start": {"dateTime": _normalize_rfc3339((start or {}).get("dateTime"))},
        "end":   {"dateTime": _normalize_rfc3339((end   or {}).get("dateTime"))},
        "reminders": {"useDefault": True},
    }
    if b.get("description"):
        payload["description"] = b["description"]
    att = _norm_attendees_for_write(b.get("attendees"))
    if att:
        payload["attendees"] = att

    r = _request("POST", f"/calendars/{_cid(calendar_id)}/events", json=payload, timeout=20)
    if not r.ok:
        logger.error("Insert event failed: %s | %s", r.status_code, r.text)
        raise ExternalServiceFailure("gcal", "Google Calendar insert failed", r.status_code)
    item = _json_body(r, "insert")
    logger.info("[GCAL] inserted %s (%s)", item.get("id"), payload["start"]["dateTime"])
    return item


def gcal_list_events(time_min: str, time_max: str, calendar_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    단일 캘린더의 구간 이벤트를 조회한다. 단일 인스턴스 전개(singleEvents) + 시작시간 정렬

    :param time_min: 하한(포함)
    :type time_min: str
    :param time_max: 상한(제외)
    :type time_max: str
    :param calendar_id: 대상 캘린더 ID (기본값 GOOGLE_CALENDAR_ID)
    :type calendar_id: Optional[str]
    :return: 시작시간 순 이벤트 리스트
    :rtype: List[Dict[str, Any]]
    :raises ExternalServiceFailure: Google API 오류
    """

    calendar_id = calendar_id or GOOGLE_CALENDAR_ID
    params: Dict[str, Any] = {
        "singleEvents": "true",
        "orderBy": "startTime",
        "timeMin": _normalize_rfc3339(time_min),
        "timeMax": _normalize_rfc3339(time_max),
        "maxResults": 250,
    }
    r = _request("GET", f"/calendars/{_cid(calendar_id)}/events", params=params, timeout=25)
    if not r.ok:
        logger.error("List events failed(%s) cid=%s | %s", r.status_code, calendar_id, r.text)
        raise ExternalServiceFailure("gcal", "Google Calendar list failed", r.status_code)
    items = _json_body(r, "list").get("items") or []
    logger.info("[GCAL] list %s..%s -> %d items", params["timeMin"], params["timeMax"], len(items))
    return items


class GoogleCalendar:
    """
    캘린더 협력자 어댑터(insert/list). 서비스 계층은 이 인터페이스만 안다.
    """

    def __init__(self, calendar_id: Optional[str] = None):
        self.calendar_id = calendar_id or GOOGLE_CALENDAR_ID

    def insert(self, summary: str, description: str, start_iso: str, end_iso: str, attendees=None) -> Dict[str, Any]:
        return gcal_insert_event(
            {
                "summary": summary,
                "description": description,
                "start": start_iso,
                "end": end_iso,
                "attendees": list(attendees or []),
            },
            self.calendar_id,
        )

    def list(self, time_min: str, time_max: str) -> List[Dict[str, Any]]:
        return gcal_list_events(time_min, time_max, self.calendar_id)


# (테스트용) REST 핸들러
@router.get("/events")
def list_events(
    timeMin: str = Query(...),
    timeMax: str = Query(...),
):
    """
    (테스트용) REST로 구간 이벤트 목록을 반환한다.

    :param timeMin: 하한(포함, RFC3339)
    :type timeMin: str
    :param timeMax: 상한(제외, RFC3339)
    :type timeMax: str
    :return: {"items": [이벤트...]}
    :rtype: Dict[str, Any]
    """

    try:
        items = gcal_list_events(timeMin, timeMax)
    except ExternalServiceFailure as e:
        raise HTTPException(502, e.detail)
    return {"items": items}
