"""결제 서비스 웹훅 수신.

서명 방식은 Standard Webhooks:
    signed = f"{webhook-id}.{webhook-timestamp}.{body}"
    webhook-signature: "v1,<base64(HMAC-SHA256(secret, signed))> v1,..."

같은 이벤트가 여러 번 전달될 수 있으므로(at-least-once)
이벤트 원본은 event_id로 한 번만 기록하고, 크레딧 지급은 주문 ID로 중복을 막는다.
"""

import base64
import hashlib
import hmac
import json
import time
from collections.abc import Mapping
from dataclasses import dataclass

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from core.config import settings
from core.exceptions import InvalidWebhookPayload, NotConfigured, WebhookVerificationFailed
from model.transaction import Transaction, WebhookEvent
from service import credit_ledger

PAID_EVENT_TYPES = {"order.paid", "order.updated"}
FAILED_EVENT_TYPES = {"payment.failed", "order.failed"}


@dataclass
class IngestResult:
    status: str  # credited | duplicate | ignored
    owner_id: str | None = None
    quantity: int = 0


def sign(secret: str, event_id: str, timestamp: str, body: bytes) -> str:
    signed = f"{event_id}.{timestamp}.".encode() + body
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


class WebhookIngestor:
    def __init__(self, secret: str, tolerance_seconds: int = 300, default_quantity: int = 10):
        if not secret:
            raise NotConfigured("웹훅 시크릿이 설정되지 않았습니다")
        self.secret = secret
        self.tolerance_seconds = tolerance_seconds
        self.default_quantity = default_quantity

    def verify(self, body: bytes, headers: Mapping[str, str]) -> dict:
        """서명과 타임스탬프를 검증하고 파싱된 이벤트를 반환한다."""
        event_id = headers.get("webhook-id")
        timestamp = headers.get("webhook-timestamp")
        signature_header = headers.get("webhook-signature")
        if not (event_id and timestamp and signature_header):
            raise WebhookVerificationFailed("웹훅 서명 헤더가 없습니다")

        try:
            sent_at = int(timestamp)
        except ValueError:
            raise WebhookVerificationFailed("잘못된 웹훅 타임스탬프입니다")
        if abs(time.time() - sent_at) > self.tolerance_seconds:
            raise WebhookVerificationFailed("웹훅 타임스탬프가 허용 범위를 벗어났습니다")

        expected = sign(self.secret, event_id, timestamp, body)
        candidates = [
            part.split(",", 1)[1]
            for part in signature_header.split()
            if part.startswith("v1,")
        ]
        if not any(hmac.compare_digest(expected, c) for c in candidates):
            raise WebhookVerificationFailed

        try:
            event = json.loads(body)
        except json.JSONDecodeError:
            raise InvalidWebhookPayload("JSON 형식이 아닙니다")
        if not isinstance(event, dict) or "type" not in event:
            raise InvalidWebhookPayload("이벤트 type이 없습니다")
        return event

    def ingest(self, event: dict, event_id: str, session: Session) -> IngestResult:
        """검증된 이벤트를 기록하고, 결제 완료면 크레딧을 지급한다."""
        event_type = event["type"]
        data = event.get("data") or {}

        try:
            session.add(WebhookEvent(event_id=event_id, type=event_type, payload=json.dumps(data)))
            session.commit()
        except IntegrityError:
            # 재전달. 크레딧 중복 지급은 주문 ID로 막으므로 처리는 계속한다.
            session.rollback()
            logger.info(f"Duplicate webhook delivery {event_id} ({event_type})")

        if event_type in FAILED_EVENT_TYPES:
            logger.warning(f"Payment failed: {data.get('id')}")
            return IngestResult(status="ignored")

        if event_type not in PAID_EVENT_TYPES:
            logger.debug(f"Ignoring webhook event type {event_type}")
            return IngestResult(status="ignored")

        if event_type == "order.updated" and data.get("status") != "paid":
            logger.debug(f"Order {data.get('id')} updated with status {data.get('status')}, ignoring")
            return IngestResult(status="ignored")

        return self._apply_payment(data, session)

    def _apply_payment(self, data: dict, session: Session) -> IngestResult:
        metadata = data.get("metadata") or {}
        owner_id = metadata.get("userId") or metadata.get("user_id")
        payment_id = data.get("id")
        if not owner_id or not payment_id:
            logger.error(f"Missing user or order id in paid order metadata: {payment_id}")
            return IngestResult(status="ignored")

        try:
            quantity = int(metadata.get("quantity") or self.default_quantity)
        except (TypeError, ValueError):
            quantity = self.default_quantity
        if quantity <= 0:
            logger.error(f"Order {payment_id} has non-positive quantity {quantity}")
            return IngestResult(status="ignored")

        exists = session.exec(
            select(Transaction).where(col(Transaction.external_payment_id) == payment_id)
        ).first()
        if exists:
            logger.info(f"Order {payment_id} already recorded, skipping credit")
            return IngestResult(status="duplicate", owner_id=owner_id)

        price = data.get("product_price") or {}
        try:
            session.add(
                Transaction(
                    owner_id=owner_id,
                    external_payment_id=payment_id,
                    external_price_id=price.get("id") or data.get("product_price_id"),
                    amount=int(data.get("amount") or data.get("total_amount") or 0),
                    currency=data.get("currency") or "usd",
                    status=data.get("status") or "paid",
                    quantity=quantity,
                )
            )
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.info(f"Order {payment_id} recorded concurrently, skipping credit")
            return IngestResult(status="duplicate", owner_id=owner_id)

        # 거래 기록이 정산 기준이다. 잔액 갱신 실패는 로그만 남긴다.
        try:
            credit_ledger.credit(owner_id, quantity, session)
        except Exception:
            logger.exception(f"Failed to credit {quantity} to {owner_id} for order {payment_id}")
            session.rollback()

        return IngestResult(status="credited", owner_id=owner_id, quantity=quantity)


def get_webhook_ingestor() -> WebhookIngestor:
    """FastAPI 의존성. 시크릿이 없으면 NotConfigured(503)."""
    return WebhookIngestor(
        secret=settings.WEBHOOK_SECRET,
        tolerance_seconds=settings.WEBHOOK_TOLERANCE_SECONDS,
        default_quantity=settings.CREDITS_PER_PACK,
    )
