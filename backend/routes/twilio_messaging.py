# Twilio WhatsApp 메시지 전송 래퍼
# - REST API(Messages.json)를 requests + HTTP Basic 인증으로 직접 호출
# - send_whatsapp 은 실패 시 DeliveryFailure, TwilioMessenger.send 는 bool 로 알려줌
import logging, requests
from typing import Any, Dict, Optional
from requests.auth import HTTPBasicAuth

from config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_WHATSAPP_FROM
from routes.assistant_utils import _mask_identity
from services.errors import DeliveryFailure

logger = logging.getLogger(__name__)

TWILIO_BASE = "https://api.twilio.com/2010-04-01"


def _twilio_request(method: str, path: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Twilio REST API에 인증된 요청을 보낸다.

    :param method: "GET" | "POST"
    :type method: str
    :param path: Accounts/{sid}/ 이후 경로(예: "Messages.json")
    :type path: str
    :param data: form 데이터
    :type data: Optional[Dict[str, Any]]
    :return: 응답 JSON 또는 {"error": ...}
    :rtype: Dict[str, Any]
    """

    if not TWILIO_ACCOUNT_SID or not TWILIO_AUTH_TOKEN:
        return {"error": "missing_credentials"}

    url = f"{TWILIO_BASE}/Accounts/{TWILIO_ACCOUNT_SID}/{path}"
    auth = HTTPBasicAuth(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN)
    try:
        resp = requests.request(method, url, auth=auth, data=data, timeout=15)
    except requests.RequestException as e:
        return {"error": str(e)}

    if resp.status_code in (200, 201, 204):
        try:
            return resp.json()
        except ValueError:
            return {"status": "ok"}
    try:
        error_data = resp.json() if resp.text else {}
    except ValueError:
        error_data = {}
    return {
        "error": f"http_{resp.status_code}",
        "message": error_data.get("message", "Unknown Twilio Error"),
        "code": error_data.get("code", 0),
    }


def send_whatsapp(to: str, body: str, media_url: Optional[str] = None) -> str:
    """
    WhatsApp 메시지 1건을 보낸다.

    :param to: 받는 사람('whatsapp:+54...')
    :type to: str
    :param body: 본문
    :type body: str
    :param media_url: 첨부 미디어 URL(선택)
    :type media_url: Optional[str]
    :return: 메시지 SID
    :rtype: str
    :raises DeliveryFailure: 인증 누락/네트워크 오류/HTTP 오류
    """

    data = {"From": TWILIO_WHATSAPP_FROM, "To": to, "Body": body}
    if media_url:
        data["MediaUrl"] = media_url
    res = _twilio_request("POST", "Messages.json", data=data)
    if res.get("error"):
        raise DeliveryFailure(f"{res.get('error')} {res.get('message', '')}".strip())
    logger.info("[TWILIO] sent %s to %s", res.get("sid"), _mask_identity(to))
    return res.get("sid") or ""


class TwilioMessenger:
    """메시징 협력자: send(identity, text, media_url) -> bool"""

    def send(self, identity: str, text: str, media_url: Optional[str] = None) -> bool:
        try:
            send_whatsapp(identity, text, media_url)
        except DeliveryFailure as e:
            logger.error("[TWILIO] send to %s failed: %s", _mask_identity(identity), e)
            return False
        return True
