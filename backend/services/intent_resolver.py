# services/intent_resolver.py
import json
import logging
from typing import Callable

from pydantic import ValidationError

from schemas.assistant_schema import Intent, IntentResult

logger = logging.getLogger(__name__)


def _strip_code_fence(text: str) -> str:
    # ```json ... ``` 로 감싸서 오는 경우 제거
    clean = (text or "").strip()
    if clean.startswith("```json"):
        clean = clean[7:]
    elif clean.startswith("```"):
        clean = clean[3:]
    if clean.endswith("```"):
        clean = clean[:-3]
    return clean.strip()


class IntentResolver:
    """
    분류기 협력자를 고정된 의도 분류(calendar_event/local_reminder/chitchat/none) 뒤에 감싼다.

    :param classify_fn: text -> JSON 문자열. 신뢰하지 않는 출력으로 취급함
    :type classify_fn: Callable[[str], str]
    """

    def __init__(self, classify_fn: Callable[[str], str]):
        self.classify_fn = classify_fn

    def classify(self, text: str) -> IntentResult:
        """
        분류 결과를 명시적 결과 타입으로 반환한다(예외 없음).

        :param text: 사용자 메시지
        :type text: str
        :return: IntentResult(ok, intent, failure)
        :rtype: IntentResult
        """
        try:
            raw = self.classify_fn(text)
        except Exception as e:
            logger.warning("[INTENT] classifier error: %s", e)
            return IntentResult(ok=False, failure=f"classifier_error: {e}")

        if raw is not None and not isinstance(raw, str):
            logger.warning("[INTENT] non-text output: %s", type(raw).__name__)
            return IntentResult(ok=False, failure="parse_failure: not text")

        try:
            data = json.loads(_strip_code_fence(raw))
        except (TypeError, ValueError) as e:
            logger.warning("[INTENT] non-JSON output: %r", (raw or "")[:120])
            return IntentResult(ok=False, failure=f"parse_failure: {e}")

        if not isinstance(data, dict):
            return IntentResult(ok=False, failure="parse_failure: not an object")

        try:
            intent = Intent.model_validate(data)
        except ValidationError as e:
            logger.warning("[INTENT] invalid shape: %s", e)
            return IntentResult(ok=False, failure="parse_failure: invalid shape")

        logger.debug("[INTENT] kind=%s start=%s", intent.kind.value, intent.start_iso)
        return IntentResult(ok=True, intent=intent)

    def resolve(self, text: str) -> Intent:
        """
        실패 시 빈 none 의도로 강등한다. 호출자의 분기가 예외 없이 끝나도록 보장.
        """
        result = self.classify(text)
        return result.intent if result.ok else Intent.empty()
