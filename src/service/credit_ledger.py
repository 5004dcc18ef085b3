from dataclasses import dataclass

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from core.exceptions import InsufficientCredits, InvalidAmount
from model.user import User


@dataclass
class DebitResult:
    applied: bool
    remaining: int


@dataclass
class CreditResult:
    remaining: int


def _find(owner_id: str, session: Session) -> User | None:
    return session.exec(select(User).where(User.user_id == owner_id)).first()


def initialize_if_absent(owner_id: str, session: Session, default_credits: int = 0) -> None:
    """크레딧 필드가 비어 있는 기존 사용자를 default_credits로 채운다."""
    stmt = (
        update(User)
        .where(col(User.user_id) == owner_id, col(User.credits).is_(None))
        .values(credits=default_credits)
        .execution_options(synchronize_session=False)
    )
    result = session.exec(stmt)
    session.commit()
    if result.rowcount:
        logger.info(f"Backfilled credits for {owner_id} with {default_credits}")


def get_balance(owner_id: str, session: Session) -> int:
    """남은 크레딧. 모르는 사용자는 0."""
    user = _find(owner_id, session)
    if not user or user.credits is None:
        return 0
    return user.credits


def require_credits(owner_id: str, session: Session) -> int:
    """업로드 전 사전 확인. 잔액이 없으면 InsufficientCredits."""
    balance = get_balance(owner_id, session)
    if balance <= 0:
        raise InsufficientCredits
    return balance


def debit(owner_id: str, session: Session, amount: int = 1) -> DebitResult:
    """크레딧을 차감한다.

    잔액이 amount 이상일 때만 단일 조건부 UPDATE로 차감하므로
    동시에 차감/충전이 들어와도 잔액이 음수가 되지 않는다.
    """
    if amount <= 0:
        raise InvalidAmount
    initialize_if_absent(owner_id, session)

    stmt = (
        update(User)
        .where(col(User.user_id) == owner_id, col(User.credits) >= amount)
        .values(credits=col(User.credits) - amount)
        .execution_options(synchronize_session=False)
    )
    result = session.exec(stmt)
    session.commit()
    applied = result.rowcount == 1
    remaining = get_balance(owner_id, session)

    if applied:
        logger.info(f"Debited {amount} credit(s) from {owner_id}, remaining: {remaining}")
    else:
        logger.info(f"User {owner_id} has no credits to debit (balance={remaining})")
    return DebitResult(applied=applied, remaining=remaining)


def credit(owner_id: str, amount: int, session: Session) -> CreditResult:
    """구매한 크레딧을 더한다. 사용자가 없으면 0 크레딧으로 만든 뒤 더한다."""
    if amount <= 0:
        raise InvalidAmount

    if not _find(owner_id, session):
        try:
            session.add(User(user_id=owner_id, credits=0))
            session.commit()
            logger.info(f"Created user {owner_id} while crediting purchase")
        except IntegrityError:
            # 동시에 다른 요청이 먼저 만든 경우
            session.rollback()
    initialize_if_absent(owner_id, session)

    stmt = (
        update(User)
        .where(col(User.user_id) == owner_id)
        .values(credits=col(User.credits) + amount)
        .execution_options(synchronize_session=False)
    )
    session.exec(stmt)
    session.commit()
    remaining = get_balance(owner_id, session)
    logger.info(f"Added {amount} credit(s) to {owner_id}, remaining: {remaining}")
    return CreditResult(remaining=remaining)
