# services/errors.py
# 스케줄링 서브시스템의 예외 계층
from typing import Optional


class AssistantError(Exception):
    """어시스턴트 도메인 예외의 공통 부모"""


class InvalidDate(AssistantError):
    """
    분류기가 준 날짜 문자열을 해석할 수 없을 때 발생한다.

    :param raw: 원본 날짜 문자열
    :type raw: Optional[str]
    """

    def __init__(self, raw: Optional[str]):
        self.raw = raw
        super().__init__(f"invalid date: {raw!r}")


class SchedulingError(AssistantError):
    """캘린더 이벤트 생성 실패(날짜 정규화 실패 포함)"""


class ExternalServiceFailure(AssistantError):
    """
    외부 협력자(캘린더/분류기/메신저) 호출 실패.

    :param service: 서비스 이름(예: "gcal", "openai", "twilio")
    :type service: str
    :param detail: 실패 설명
    :type detail: str
    :param status_code: HTTP 상태 코드(있으면)
    :type status_code: Optional[int]
    """

    def __init__(self, service: str, detail: str, status_code: Optional[int] = None):
        self.service = service
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{service} failed ({status_code}): {detail}")


class DeliveryFailure(AssistantError):
    """메시지 전송 실패"""


class PersistenceFailure(AssistantError):
    """저장소 문서 쓰기 실패"""
