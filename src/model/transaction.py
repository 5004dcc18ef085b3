from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class Transaction(SQLModel, table=True):
    """크레딧 구매 감사 기록. 한 번 기록되면 수정하지 않는다."""

    id: int | None = Field(default=None, primary_key=True)
    owner_id: str = Field(index=True)
    external_payment_id: str = Field(unique=True)  # 결제 서비스의 주문 ID
    external_price_id: str | None = None
    amount: int = 0  # 최소 통화 단위 (센트)
    currency: str = "usd"
    status: str = "paid"
    purchase_type: str = "image_pack"
    quantity: int  # 지급한 크레딧 수
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class WebhookEvent(SQLModel, table=True):
    """수신한 웹훅 이벤트 원본. event_id로 중복 전달을 걸러낸다."""

    id: int | None = Field(default=None, primary_key=True)
    event_id: str = Field(unique=True)
    type: str = Field(index=True)
    payload: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
