# routes/assistant_utils.py
# 참석자 이메일 정리 / 로그용 식별자 마스킹

import re
from typing import List, Optional, Tuple

EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$")


def _attendee_token(x) -> str:
    # 분류기는 문자열 또는 {"email": ...} 형태로 줄 수 있음
    if isinstance(x, dict):
        return str(x.get("email") or x.get("address") or "").strip()
    return str(x).strip()


def _split_valid_invalid_attendees(v) -> Tuple[List[str], List[str]]:
    """
    분류기가 준 참석자 값을 (유효 이메일, 버릴 토큰)으로 나눈다.

    :param v: 단일 값 또는 리스트
    :type v: Any
    :return: (valid, invalid)
    :rtype: Tuple[List[str], List[str]]
    """
    if v is None:
        return [], []
    items = v if isinstance(v, list) else [v]
    valid: List[str] = []
    invalid: List[str] = []
    for x in items:
        if x in (None, "", {}):
            continue
        token = _attendee_token(x)
        if EMAIL_RE.match(token):
            valid.append(token)
        else:
            invalid.append(token or repr(x))
    return valid, invalid


def _dedupe_emails(emails: Optional[List[str]]) -> List[str]:
    # 소문자 기준 중복 제거, 처음 나온 순서 유지
    seen = set()
    out: List[str] = []
    for e in emails or []:
        key = (e or "").strip().lower()
        if key and key not in seen:
            seen.add(key)
            out.append(key)
    return out


def _mask_identity(identity: Optional[str]) -> str:
    # 로그용: 'whatsapp:+5491122334455' -> 'whatsapp:+549112****55'
    s = identity or ""
    if len(s) <= 6:
        return s
    return s[:-6] + "****" + s[-2:]
