from datetime import UTC, datetime, timedelta

import jwt

from core.config import settings

# --- JWT 토큰 ---
# 로그인/회원가입은 외부 인증 서비스가 담당한다.
# 이 서버는 토큰 서명만 검증하고 payload의 신원 정보를 신뢰한다.
#
# Payload:   {"sub": "user_2abc", "email": "a@b.com", "name": "Kim", "exp": ...}
#
# 업로드 URL에 들어가는 단기 토큰도 같은 키로 서명한다 (purpose="upload").


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """JWT 토큰을 생성한다.

    Args:
        data: 토큰에 담을 데이터 (보통 {"sub": ..., "email": ..., "name": ...})
        expires_delta: 만료 시간. None이면 설정값 사용.
    """
    payload = data.copy()
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    )
    payload["exp"] = expire
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> dict | None:
    """JWT 토큰을 검증하고 payload를 반환한다.

    유효하지 않거나 만료된 토큰이면 None을 반환.
    """
    try:
        return jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.PyJWTError:
        return None


def create_upload_token(owner_id: str) -> str:
    """업로드 URL용 단기 토큰. 일반 API 토큰으로는 사용할 수 없다."""
    return create_access_token(
        {"sub": owner_id, "purpose": "upload"},
        expires_delta=timedelta(minutes=settings.UPLOAD_TOKEN_MINUTES),
    )


def verify_upload_token(token: str) -> str | None:
    """업로드 토큰이면 owner_id를, 아니면 None을 반환한다."""
    payload = verify_token(token)
    if not payload or payload.get("purpose") != "upload":
        return None
    return payload.get("sub")
