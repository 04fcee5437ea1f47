# services/date_normalizer.py
# 분류기가 추측한 날짜를 "확실히 미래인" 시각으로 보정한다.
#
# 분류기는 사용자가 일/월만 말했을 때도 그럴듯한 미래 연도를 붙이거나(연도 드리프트),
# 이미 지난 날짜를 돌려주는 경우가 있음. 보정 순서:
# 1) 본문에 4자리 연도(20xx)가 없고 370일 넘게 앞서 있으면 1년씩 당김
# 2) 요일 언급이 있으면 그 요일로 맞춤(0~6일 앞으로)
# 3) 아직 now 이하라면 요일 언급 시 7일 단위, 아니면 1년 단위로 밀어냄

import logging
import re
import unicodedata
from datetime import datetime, timedelta, tzinfo
from typing import Optional

from config import DEFAULTS, LOCAL_TZ
from services.errors import InvalidDate

logger = logging.getLogger(__name__)

YEAR_TOKEN_RE = re.compile(r"(?<!\d)20\d{2}(?!\d)")

# 악센트 제거 후 소문자 기준. 값은 datetime.weekday() (월=0)
WEEKDAY_NAMES = {
    "lunes": 0, "martes": 1, "miercoles": 2, "jueves": 3,
    "viernes": 4, "sabado": 5, "domingo": 6,
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}
WEEKDAY_RE = re.compile(r"\b(" + "|".join(WEEKDAY_NAMES) + r")\b")


def _fold(text: str) -> str:
    # 'miércoles' -> 'miercoles'
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def parse_iso(raw: Optional[str], tz: tzinfo = LOCAL_TZ) -> Optional[datetime]:
    """
    ISO 8601 유사 문자열을 aware datetime으로 파싱한다.

    - 'Z'는 UTC로 해석
    - 오프셋이 없으면 로컬(tz) 벽시계 시각으로 간주
    - 날짜만 있으면(YYYY-MM-DD) 로컬 00:00

    :param raw: 날짜/날짜시간 문자열
    :type raw: Optional[str]
    :param tz: 오프셋이 없을 때 붙일 타임존
    :type tz: tzinfo
    :return: aware datetime 또는 None(파싱 실패)
    :rtype: Optional[datetime]
    """

    if not raw or not isinstance(raw, str):
        return None
    s = raw.strip()
    if not s:
        return None
    try:
        if len(s) == 10:
            return datetime.fromisoformat(s + "T00:00:00").replace(tzinfo=tz)
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=tz)


def has_explicit_year(text: Optional[str]) -> bool:
    return bool(YEAR_TOKEN_RE.search(text or ""))


def mentioned_weekday(text: Optional[str]) -> Optional[int]:
    """
    본문에서 처음 언급된 요일을 찾는다.

    :return: datetime.weekday() 값(월=0) 또는 None
    :rtype: Optional[int]
    """
    m = WEEKDAY_RE.search(_fold(text or ""))
    return WEEKDAY_NAMES[m.group(1)] if m else None


def shift_years(dt: datetime, years: int) -> datetime:
    """
    연도만 years만큼 이동한다. 2/29는 평년이면 2/28로 맞춤.
    """
    try:
        return dt.replace(year=dt.year + years)
    except ValueError:
        return dt.replace(year=dt.year + years, day=28)


def _shift_into_future(
    d: datetime,
    now: datetime,
    window: timedelta,
    weekday: Optional[int],
    explicit_year: bool,
    tz: tzinfo,
) -> datetime:
    if not explicit_year:
        while d - now > window:
            d = shift_years(d, -1)

    if weekday is not None:
        d = d + timedelta(days=(weekday - d.astimezone(tz).weekday()) % 7)
        # 요일 맞춤으로 창을 넘었으면 주 단위로 되돌림(요일 유지)
        while not explicit_year and d - now > window and d - timedelta(weeks=1) > now:
            d = d - timedelta(weeks=1)

    if d <= now:
        if weekday is not None:
            while d <= now:
                d = d + timedelta(weeks=1)
        else:
            while d <= now:
                d = shift_years(d, 1)
    return d


def normalize_datetime(
    raw_iso: Optional[str],
    original_text: Optional[str],
    now: Optional[datetime] = None,
    tz: tzinfo = LOCAL_TZ,
) -> datetime:
    """
    분류기 날짜 + 원문 메시지 -> now보다 엄격히 뒤인 시각.

    :param raw_iso: 분류기가 준 ISO 문자열
    :type raw_iso: Optional[str]
    :param original_text: 사용자 원문(연도/요일 언급 탐지용)
    :type original_text: Optional[str]
    :param now: 기준 시각(없으면 현재 로컬 시각)
    :type now: Optional[datetime]
    :param tz: 오프셋 없는 입력과 요일 계산에 쓰는 타임존
    :type tz: tzinfo
    :return: 보정된 aware datetime
    :rtype: datetime
    :raises InvalidDate: 파싱 실패 또는 날짜 범위 초과
    """

    parsed = parse_iso(raw_iso, tz)
    if parsed is None:
        raise InvalidDate(raw_iso)
    d = parsed

    now = now or datetime.now(tz)
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    window = timedelta(days=DEFAULTS.max_year_drift_days)
    weekday = mentioned_weekday(original_text)

    explicit_year = has_explicit_year(original_text)
    try:
        d = _shift_into_future(d, now, window, weekday, explicit_year, tz)
    except (OverflowError, ValueError) as e:
        # 9999년 근처처럼 날짜 범위를 벗어나는 추측
        raise InvalidDate(raw_iso) from e

    if d != parsed:
        logger.debug("[DATE] normalized %s -> %s (weekday=%s)", raw_iso, d.isoformat(), weekday)
    return d


def normalize(raw_iso: Optional[str], original_text: Optional[str], now: Optional[datetime] = None) -> str:
    """
    normalize_datetime의 문자열 버전. 결과를 ISO 8601 문자열로 반환한다.
    """
    return normalize_datetime(raw_iso, original_text, now=now).isoformat()
