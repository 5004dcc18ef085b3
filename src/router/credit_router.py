from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session, col, select

from core.dependencies import get_current_user
from model.database import get_session
from model.transaction import Transaction
from model.user import User
from service import credit_ledger

router = APIRouter(prefix="/api/credits", tags=["credits"])


class BalanceResponse(BaseModel):
    credits: int
    can_generate: bool


class TransactionResponse(BaseModel):
    id: int
    external_payment_id: str
    amount: int
    currency: str
    status: str
    quantity: int
    created_at: datetime


@router.get("/", response_model=BalanceResponse)
def get_balance(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """남은 크레딧. 클라이언트는 업로드 전에 이 값으로 사전 확인한다."""
    credits = credit_ledger.get_balance(current_user.user_id, session)
    return BalanceResponse(credits=credits, can_generate=credits > 0)


@router.get("/transactions", response_model=list[TransactionResponse])
def list_transactions(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """크레딧 구매 내역 (최신순)."""
    return session.exec(
        select(Transaction)
        .where(Transaction.owner_id == current_user.user_id)
        .order_by(col(Transaction.created_at).desc())
    ).all()
