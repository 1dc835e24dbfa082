import base64
import json
import logging
import httpx
from urllib.parse import urlencode

from core.config import Settings
from core.exceptions import OAuthExchangeError
from core.security.session import safe_redirect_path
from schemas.user import GoogleProfile

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"

GOOGLE_SCOPES = "openid email profile"

def encode_state(redirect_path: str = "/") -> str:
    """로그인 후 돌아갈 경로를 base64(JSON) state 값으로 인코딩"""
    raw = json.dumps({"redirectPath": safe_redirect_path(redirect_path)})
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")

def decode_state(state: str | None) -> str:
    """state 값에서 리다이렉트 경로 복원. 형식이 잘못되면 '/'"""
    if not state:
        return "/"

    try:
        padded = state + "=" * (-len(state) % 4)
        data = json.loads(base64.b64decode(padded, altchars=b"-_"))
    except ValueError:
        logger.warning("⚠️ 구글 state 값 디코딩 실패, '/'로 리다이렉트합니다.")
        return "/"

    if not isinstance(data, dict):
        return "/"
    return safe_redirect_path(data.get("redirectPath"))

class GoogleOAuthClient:
    """
    구글 OAuth (Authorization Code) 연동
    1. 인증 URL 생성
    2. code → 구글 Access Token 교환
    3. 구글 사용자 정보 조회
    """
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> "GoogleOAuthClient":
        return cls(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.GOOGLE_REDIRECT_URI,
            timeout=settings.GOOGLE_HTTP_TIMEOUT,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def build_auth_url(self, redirect_path: str = "/") -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": GOOGLE_SCOPES, # openid, email, profile 범위 요청
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
            "state": encode_state(redirect_path),
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> str:
        """
        인증 코드로 구글 Access Token 발급
        """
        token_data = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "code": code,
        }

        async with self._client() as client:
            try:
                token_response = await client.post(GOOGLE_TOKEN_URL, data=token_data)
                token_response.raise_for_status()
                token_json = token_response.json()
            except httpx.HTTPError as e:
                logger.error(f"⛔ 구글 토큰 교환 오류 발생: {e}", exc_info=True)
                raise OAuthExchangeError("구글 토큰 교환 실패") from e
            except ValueError as e:
                logger.error(f"⛔ 구글 토큰 응답 파싱 실패: {e}")
                raise OAuthExchangeError("구글 토큰 응답 형식 오류") from e

        google_access_token = token_json.get("access_token") if isinstance(token_json, dict) else None
        if not google_access_token:
            logger.warning("⚠️ 구글 Access Token 발급 실패 (토큰 값 없음)")
            raise OAuthExchangeError("Google Access Token 발급 실패", code="MISSING_ACCESS_TOKEN")

        return google_access_token

    async def fetch_user_info(self, access_token: str) -> GoogleProfile:
        """
        구글 Access Token으로 사용자 정보 (email, name, picture) 조회
        """
        headers = {"Authorization": f"Bearer {access_token}"}

        async with self._client() as client:
            try:
                user_info_response = await client.get(GOOGLE_USERINFO_URL, headers=headers)
                user_info_response.raise_for_status()
                user_info_json = user_info_response.json()
            except httpx.HTTPError as e:
                logger.error(f"⛔ 구글 사용자 정보 요청 오류: {e}", exc_info=True)
                raise OAuthExchangeError("구글 사용자 정보 조회 실패") from e
            except ValueError as e:
                raise OAuthExchangeError("구글 사용자 정보 응답 형식 오류") from e

        return self._to_profile(user_info_json)

    async def verify_id_token(self, id_token: str) -> GoogleProfile:
        """
        (Google Identity Services 버튼 로그인) ID 토큰 검증
        tokeninfo 엔드포인트 결과의 aud가 우리 client_id와 일치해야 함
        """
        async with self._client() as client:
            try:
                response = await client.get(GOOGLE_TOKENINFO_URL, params={"id_token": id_token})
                response.raise_for_status()
                token_info = response.json()
            except httpx.HTTPError as e:
                logger.warning(f"⚠️ 구글 ID 토큰 검증 실패: {e}")
                raise OAuthExchangeError("Invalid token", code="INVALID_ID_TOKEN") from e
            except ValueError as e:
                raise OAuthExchangeError("Invalid token", code="INVALID_ID_TOKEN") from e

        if not isinstance(token_info, dict) or token_info.get("aud") != self.client_id:
            logger.warning("⚠️ 구글 ID 토큰의 audience 불일치")
            raise OAuthExchangeError("Invalid token", code="INVALID_ID_TOKEN")

        return self._to_profile(token_info)

    def _to_profile(self, data) -> GoogleProfile:
        email = data.get("email") if isinstance(data, dict) else None
        if not email:
            logger.warning("⚠️ 구글 사용자 이메일 조회 실패 (이메일 값 없음)")
            raise OAuthExchangeError("Google 사용자 이메일 조회 실패", code="MISSING_EMAIL")

        return GoogleProfile(email=email, name=data.get("name"), picture=data.get("picture"))
