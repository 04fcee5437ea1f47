# Google OAuth 토큰관리 유틸 + 간단한 REST 엔드포인트
# - 서버 계정 1개(GOOGLE_REFRESH_TOKEN)로 캘린더에 접근함
# - /status: 연결 상태 조회

# 내부적으로 TOKENS(메모리)에 access_token 캐시를 저장함
import time, logging, requests, threading
from fastapi import APIRouter

from config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REFRESH_TOKEN, GOOGLE_CALENDAR_ID
from services.errors import ExternalServiceFailure

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth/google", tags=["google-auth"])

# Google OAuth 관련 엔드포인트
OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"

# 캐시 키 -> 토큰
# - 예시
# TOKENS["service"] = {
#   "access_token": "...",
#   "refresh_token": "...",
#   "expires_at": 1735600000.0,
#   "scope": "https://www.googleapis.com/auth/calendar",
# }
TOKENS = {}
SERVICE_KEY = "service"
_TOKEN_LOCK = threading.Lock()

# 환경 변수 로드 결과 간단 로깅 (민감정보 마스킹)
logger.info(
    "[GoogleOAuth] BACKEND CLIENT_ID=%s****** (loaded=%s, refresh_token=%s)",
    GOOGLE_CLIENT_ID[:6],
    bool(GOOGLE_CLIENT_ID),
    bool(GOOGLE_REFRESH_TOKEN),
)


def _refresh(key: str = SERVICE_KEY):
    """
    캐시된 액세스 토큰을 확인하고, 만료 임박/만료 시 refresh_token으로 갱신함.
    routes/google_calendar.py 에서 import 하여 사용함.

    :param key: 토큰 캐시 키
    :type key: str
    :return: 갱신된 토큰 딕셔너리(TOKENS[key])
    :rtype: Dict[str, Any]
    :raises ExternalServiceFailure: 미설정/리프레시 실패
    """

    with _TOKEN_LOCK:
        tok = TOKENS.get(key) or {"refresh_token": GOOGLE_REFRESH_TOKEN}
        now = time.time()
        exp = tok.get("expires_at", 0)

        # 아직 충분히 유효하면(만료 60초 전 이상 남음) 그대로 반환함
        if tok.get("access_token") and exp - 60 > now:
            return tok

        if not tok.get("refresh_token") or not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
            logger.info("[_refresh] key=%s | not configured", key)
            raise ExternalServiceFailure("gcal", "not connected", 401)

        # refresh_token으로 새 access_token 발급
        try:
            r = requests.post(
                OAUTH_TOKEN_URL,
                data={
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "grant_type": "refresh_token",
                    "refresh_token": tok["refresh_token"],
                },
                timeout=20,
            )
        except requests.RequestException as e:
            raise ExternalServiceFailure("gcal", f"refresh failed: {e}") from e
        if r.status_code != 200:
            logger.error("[GoogleOAuth:_refresh] key=%s | refresh failed: %s", key, r.text)
            raise ExternalServiceFailure("gcal", "refresh failed", 401)

        data = r.json()
        tok["access_token"] = data["access_token"]
        # expires_in 누락 시 3600
        tok["expires_at"] = time.time() + data.get("expires_in", 3600)
        tok["scope"] = data.get("scope", tok.get("scope", ""))
        TOKENS[key] = tok
        return tok


# REST 엔드포인트
@router.get("/status")
def status():
    """
    구글 캘린더 연결 설정 여부와 캐시 상태를 반환한다.

    :return: {'configured', 'cached', 'calendar_id'}
    :rtype: Dict[str, Any]
    """

    tok = TOKENS.get(SERVICE_KEY)
    configured = bool(GOOGLE_REFRESH_TOKEN and GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET)
    return {
        "configured": configured,
        "cached": bool(tok and tok.get("access_token") and tok.get("expires_at", 0) > time.time()),
        "calendar_id": GOOGLE_CALENDAR_ID,
    }
