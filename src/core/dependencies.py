from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from core.exceptions import InvalidToken
from core.security import verify_token
from model.database import get_session
from model.user import User
from service.user_service import Identity, ensure_user

# HTTPBearer:
# - Swagger UI에 "Authorize" 버튼을 자동 생성
# - 요청 헤더에서 "Authorization: Bearer <token>"을 추출
# - auto_error=False로 두고 토큰 누락도 INVALID_TOKEN 형식으로 응답한다
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity:
    """JWT 토큰에서 호출자 신원을 추출한다.

    흐름:
    1. HTTPBearer가 헤더에서 토큰 추출
    2. verify_token으로 서명 검증 + 만료 확인
    3. 업로드 전용 토큰은 거부
    4. payload의 sub/email/name으로 Identity 구성
    """
    if not credentials:
        raise InvalidToken("인증 토큰이 필요합니다")

    payload = verify_token(credentials.credentials)
    if not payload or payload.get("purpose") == "upload":
        raise InvalidToken

    subject: str | None = payload.get("sub")
    if not subject:
        raise InvalidToken("토큰에 subject가 없습니다")

    return Identity(
        subject=subject,
        email=payload.get("email") or "",
        display_name=payload.get("name") or "",
    )


def get_current_user(
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
) -> User:
    """현재 사용자. 처음 보는 신원이면 무료 크레딧과 함께 만든다."""
    return ensure_user(identity, session)
