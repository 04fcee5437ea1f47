# 어시스턴트 라우터. 들어온 메시지를 의도 분류 -> (이벤트 생성 | 리마인더 저장 | 잡담) 으로 분기함.
# - /webhook/whatsapp: Twilio 웹훅(form) -> TwiML 응답
# - /assistant/messages: 같은 처리를 JSON으로(테스트/다른 채널용)
# - /assistant/digest: 수동 요약
import logging
import re
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, Form, Query
from fastapi.responses import Response

from runtime import AssistantRuntime, get_runtime
from schemas.assistant_schema import IntentKind, MessageIn, MessageOut
from services.errors import SchedulingError
from routes.assistant_time import _friendly_when
from routes.assistant_utils import _mask_identity

logger = logging.getLogger(__name__)
router = APIRouter(tags=["assistant"])

DIGEST_COMMAND_RE = re.compile(r"^resumen", re.IGNORECASE)

# 사용자 노출 문구
REPLY_EVENT_CREATED = "✅ Agendado: *{summary}* el {when}"
REPLY_EVENT_FAILED = "⚠️ No pude crear el evento. Pasame fecha y hora claras (ej: 'jueves 10:00')."
REPLY_REMINDER_SAVED = "📝 Listo, lo guardé como recordatorio. Si querés hora exacta: 'recordame hoy a las 21 ...'."
REPLY_APOLOGY = "⚠️ Perdón, tuve un problema entendiendo tu mensaje."


def handle_message(rt: AssistantRuntime, identity: str, text: str):
    """
    메시지 1건을 처리하고 (응답 문구, 의도 종류)를 반환한다.

    1. 처음 보는 사용자면 등록
    2. "resumen..." 이면 요약을 바로 반환
    3. 의도 분류 후 분기
       - calendar_event + 시작 시각 -> EventScheduler
       - local_reminder + 시작 시각 없음 -> ReminderStore.add (기본 30분 뒤)
       - 그 외 -> 잡담 응답

    :param rt: 런타임(저장소/협력자 묶음)
    :type rt: AssistantRuntime
    :param identity: 보낸 사람 식별자(예: 'whatsapp:+54...')
    :type identity: str
    :param text: 메시지 본문
    :type text: str
    :return: (reply, intent_kind)
    :rtype: Tuple[str, Optional[IntentKind]]
    """

    body = (text or "").strip()
    rt.store.ensure_user(identity)

    if DIGEST_COMMAND_RE.match(body):
        return rt.digest_builder.digest(identity), None

    intent = rt.resolver.resolve(body)
    logger.info("[MSG] %s -> %s", _mask_identity(identity), intent.kind.value)

    if intent.kind == IntentKind.CALENDAR_EVENT and intent.start_iso:
        try:
            ev = rt.event_scheduler.schedule(intent, identity, original_text=body)
        except SchedulingError as e:
            logger.warning("[MSG] scheduling failed: %s", e)
            return REPLY_EVENT_FAILED, intent.kind
        return REPLY_EVENT_CREATED.format(summary=ev.summary, when=_friendly_when(ev.start)), intent.kind

    if intent.kind == IntentKind.LOCAL_REMINDER and not intent.start_iso:
        rt.store.add(identity, intent.summary or body)
        return REPLY_REMINDER_SAVED, intent.kind

    # 잡담(chitchat / none / 시간 없는 calendar_event)
    try:
        reply = rt.chat_fn(body)
    except Exception as e:
        logger.error("[MSG] chitchat failed: %s", e)
        reply = ""
    return (reply or REPLY_APOLOGY), intent.kind


def _safe_handle(rt: AssistantRuntime, identity: str, text: str):
    # 요청 경로는 절대 죽지 않음: 예상 못한 오류도 사과 문구로 응답
    try:
        return handle_message(rt, identity, text)
    except Exception:
        logger.exception("[MSG] unexpected error for %s", _mask_identity(identity))
        return REPLY_APOLOGY, None


def _twiml(message: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Response><Message>{escape(message)}</Message></Response>"
    )


# 라우터 엔드포인트
@router.post("/webhook/whatsapp")
def whatsapp_webhook(
    From: str = Form(...),
    Body: str = Form(""),
    rt: AssistantRuntime = Depends(get_runtime),
):
    """
    Twilio WhatsApp 웹훅. 응답은 TwiML(text/xml) 메시지 1건.
    """
    reply, _ = _safe_handle(rt, From, Body)
    return Response(content=_twiml(reply), media_type="text/xml")


@router.post("/assistant/messages", response_model=MessageOut)
def post_message(input: MessageIn, rt: AssistantRuntime = Depends(get_runtime)):
    """
    웹훅과 같은 처리를 JSON으로 수행한다.

    :param input: identity/text
    :type input: MessageIn
    :return: (reply: 사용자 응답, intent: 분류 결과)
    :rtype: MessageOut
    """
    reply, kind = _safe_handle(rt, input.identity.strip(), input.text)
    return MessageOut(reply=reply, intent=kind)


@router.get("/assistant/digest")
def get_digest(identity: str = Query(...), rt: AssistantRuntime = Depends(get_runtime)):
    return {"identity": identity, "digest": rt.digest_builder.digest(identity)}
