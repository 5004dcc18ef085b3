from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from core.dependencies import get_current_identity, get_current_user
from model.database import get_session
from model.user import User
from service import credit_ledger, user_service
from service.user_service import Identity

router = APIRouter(prefix="/auth", tags=["auth"])


# --- 응답 스키마 ---

class UserResponse(BaseModel):
    user_id: str
    email: str
    display_name: str
    credits: int


def _to_response(user: User) -> UserResponse:
    return UserResponse(
        user_id=user.user_id,
        email=user.email,
        display_name=user.display_name,
        credits=user.credits or 0,
    )


# --- 엔드포인트 ---

@router.post("/sync", response_model=UserResponse)
def sync_user(
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    """로그인 직후 호출: 토큰의 프로필로 사용자를 생성/갱신한다.

    신규 사용자는 무료 크레딧을 받는다.
    """
    return _to_response(user_service.upsert_user(identity, session))


@router.get("/me", response_model=UserResponse)
def get_me(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """현재 로그인한 사용자 정보 + 남은 크레딧. (토큰 필수)"""
    credit_ledger.initialize_if_absent(current_user.user_id, session)
    session.refresh(current_user)
    return _to_response(current_user)
