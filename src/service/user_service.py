from loguru import logger
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from core.config import settings
from model.user import User


class Identity(BaseModel):
    """외부 인증 서비스가 검증해 준 호출자 신원."""

    subject: str
    email: str = ""
    display_name: str = ""


def get_user(subject: str, session: Session) -> User | None:
    return session.exec(select(User).where(User.user_id == subject)).first()


def _create_user(identity: Identity, session: Session) -> User | None:
    """무료 크레딧과 함께 새 사용자를 만든다.

    같은 신원의 첫 요청이 동시에 들어와 다른 쪽이 먼저 만들었으면 None.
    """
    user = User(
        user_id=identity.subject,
        email=identity.email,
        display_name=identity.display_name,
        credits=settings.DEFAULT_FREE_CREDITS,
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.info(f"User {identity.subject} was created concurrently")
        return None
    session.refresh(user)
    logger.info(f"New user {identity.subject} with {settings.DEFAULT_FREE_CREDITS} free credits")
    return user


def _reload(subject: str, session: Session) -> User:
    return session.exec(select(User).where(User.user_id == subject)).one()


def upsert_user(identity: Identity, session: Session) -> User:
    """로그인 직후 호출. 있으면 프로필을 갱신하고, 없으면 무료 크레딧과 함께 만든다."""
    user = get_user(identity.subject, session)
    if user is None:
        created = _create_user(identity, session)
        if created:
            return created
        user = _reload(identity.subject, session)

    user.email = identity.email
    user.display_name = identity.display_name
    if user.credits is None:
        user.credits = 0
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def ensure_user(identity: Identity, session: Session) -> User:
    """프로필은 건드리지 않고, 처음 보는 사용자만 만든다."""
    user = get_user(identity.subject, session)
    if user:
        return user
    return _create_user(identity, session) or _reload(identity.subject, session)
