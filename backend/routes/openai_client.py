# routes/openai_client.py
# OpenAI 호출 - 의도 분류(JSON) / 잡담 응답

import logging
import requests
from typing import Dict, List, Any, Optional

from config import OPENAI_API_KEY, OPENAI_BASE, OPENAI_MODEL
from routes.assistant_prompts import CHITCHAT_SYSTEM_PROMPT, intent_system_prompt
from routes.assistant_time import _now_local_iso
from services.errors import ExternalServiceFailure

logger = logging.getLogger(__name__)


def _openai_chat(
    messages: List[Dict[str, Any]],
    temperature: float = 0.2,
    max_tokens: int = 300,
    json_mode: bool = False,
    timeout: int = 30,
) -> str:
    """
    Chat Completions API를 한 번 호출하고 첫 번째 choice의 content를 반환함.

    :param messages: LLM에 전달할 메시지(시스템/유저)
    :type messages: List[Dict[str, Any]]
    :param temperature: 샘플링 온도
    :type temperature: float
    :param max_tokens: 최대 토큰 수
    :type max_tokens: int
    :param json_mode: True면 response_format=json_object
    :type json_mode: bool
    :param timeout: 요청 타임아웃(초)
    :type timeout: int
    :raises ExternalServiceFailure: 키 미설정/네트워크 오류/HTTP 오류
    :return: 모델 응답 텍스트(없으면 빈 문자열)
    :rtype: str
    """
    if not OPENAI_API_KEY:
        raise ExternalServiceFailure("openai", "OPENAI_API_KEY not set")

    _last_user = next((m for m in messages[::-1] if m.get("role") == "user"), {})
    logger.debug("[LLM] req: model=%s json=%s user='%s...'", OPENAI_MODEL, json_mode,
                 str(_last_user.get("content", ""))[:80].replace("\n", " "))

    payload: Dict[str, Any] = {
        "model": OPENAI_MODEL,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "messages": messages,
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    try:
        r = requests.post(
            f"{OPENAI_BASE}/chat/completions",
            headers={
                "Authorization": f"Bearer {OPENAI_API_KEY}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise ExternalServiceFailure("openai", str(e)) from e

    if not r.ok:
        logger.error("OpenAI API error: %s %s", r.status_code, r.text)
        raise ExternalServiceFailure("openai", "LLM call failed", r.status_code)

    try:
        data = r.json()
        content = ((data.get("choices") or [{}])[0].get("message") or {}).get("content") or ""
    except (ValueError, AttributeError, IndexError) as e:
        raise ExternalServiceFailure("openai", f"unexpected response: {e}") from e

    logger.debug("[LLM] res: content='%s...'", content[:80].replace("\n", " "))
    return content


def classify_intent_raw(text: str, now_iso: Optional[str] = None) -> str:
    """
    의도 분류기 협력자: 사용자 문장 -> JSON 문자열(검증 안 된 원문).
    """
    return _openai_chat(
        [
            {"role": "system", "content": intent_system_prompt(now_iso or _now_local_iso())},
            {"role": "user", "content": text},
        ],
        temperature=0,
        max_tokens=300,
        json_mode=True,
    )


def chitchat_reply(text: str) -> str:
    """
    일반 대화 응답. 실패 시 ExternalServiceFailure.
    """
    content = _openai_chat(
        [
            {"role": "system", "content": CHITCHAT_SYSTEM_PROMPT},
            {"role": "user", "content": text},
        ],
        temperature=0.9,
        max_tokens=300,
    )
    return content.strip()
