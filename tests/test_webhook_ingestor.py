"""웹훅 서명 검증 + 이벤트 반영 단위 테스트."""

import json
import time

import pytest
from sqlmodel import select

from conftest import WEBHOOK_SECRET
from core.exceptions import InvalidWebhookPayload, NotConfigured, WebhookVerificationFailed
from model.transaction import Transaction, WebhookEvent
from model.user import User
from service import credit_ledger
from service.webhook_ingestor import WebhookIngestor, sign


def paid_order(order_id="order_1", user_id="user_1", quantity="10", event_type="order.paid", status="paid"):
    return {
        "type": event_type,
        "data": {
            "id": order_id,
            "status": status,
            "amount": 300,
            "currency": "usd",
            "product_price": {"id": "price_1", "product_id": "prod_1"},
            "metadata": {"userId": user_id, "purchaseType": "image_pack", "quantity": quantity},
        },
    }


def signed_headers(body: bytes, event_id="evt_1", secret=WEBHOOK_SECRET, timestamp=None) -> dict:
    ts = str(int(timestamp if timestamp is not None else time.time()))
    return {
        "webhook-id": event_id,
        "webhook-timestamp": ts,
        "webhook-signature": f"v1,{sign(secret, event_id, ts, body)}",
    }


class TestVerify:
    def test_valid_signature(self, ingestor):
        body = json.dumps(paid_order()).encode()
        event = ingestor.verify(body, signed_headers(body))
        assert event["type"] == "order.paid"

    def test_any_of_multiple_signatures(self, ingestor):
        body = json.dumps(paid_order()).encode()
        headers = signed_headers(body)
        headers["webhook-signature"] = "v1,bm90LXJpZ2h0 " + headers["webhook-signature"]
        assert ingestor.verify(body, headers)["type"] == "order.paid"

    def test_wrong_secret(self, ingestor):
        body = json.dumps(paid_order()).encode()
        with pytest.raises(WebhookVerificationFailed):
            ingestor.verify(body, signed_headers(body, secret="other"))

    def test_tampered_body(self, ingestor):
        body = json.dumps(paid_order()).encode()
        headers = signed_headers(body)
        with pytest.raises(WebhookVerificationFailed):
            ingestor.verify(json.dumps(paid_order(quantity="1000")).encode(), headers)

    def test_old_timestamp(self, ingestor):
        body = json.dumps(paid_order()).encode()
        with pytest.raises(WebhookVerificationFailed):
            ingestor.verify(body, signed_headers(body, timestamp=time.time() - 3600))

    def test_missing_headers(self, ingestor):
        with pytest.raises(WebhookVerificationFailed):
            ingestor.verify(b"{}", {})

    def test_signed_non_json(self, ingestor):
        body = b"not json"
        with pytest.raises(InvalidWebhookPayload):
            ingestor.verify(body, signed_headers(body))

    def test_missing_secret_is_not_configured(self):
        with pytest.raises(NotConfigured):
            WebhookIngestor(secret="")


class TestIngest:
    def test_paid_order_credits_and_records(self, ingestor, session):
        session.add(User(user_id="user_1", credits=3))
        session.commit()

        result = ingestor.ingest(paid_order(), "evt_1", session)
        assert result.status == "credited"
        assert result.quantity == 10
        assert credit_ledger.get_balance("user_1", session) == 13

        tx = session.exec(select(Transaction)).one()
        assert tx.external_payment_id == "order_1"
        assert tx.external_price_id == "price_1"
        assert tx.amount == 300
        assert tx.quantity == 10
        assert session.exec(select(WebhookEvent)).one().event_id == "evt_1"

    def test_duplicate_delivery_credits_once(self, ingestor, session):
        """같은 주문이 다시 전달돼도 크레딧은 한 번만."""
        first = ingestor.ingest(paid_order(), "evt_1", session)
        again = ingestor.ingest(paid_order(), "evt_1", session)
        other_event = ingestor.ingest(paid_order(event_type="order.updated"), "evt_2", session)

        assert first.status == "credited"
        assert again.status == "duplicate"
        assert other_event.status == "duplicate"
        assert credit_ledger.get_balance("user_1", session) == 10
        assert len(session.exec(select(Transaction)).all()) == 1

    def test_unknown_user_is_created(self, ingestor, session):
        ingestor.ingest(paid_order(user_id="fresh"), "evt_1", session)
        assert credit_ledger.get_balance("fresh", session) == 10

    def test_default_quantity(self, ingestor, session):
        order = paid_order()
        del order["data"]["metadata"]["quantity"]
        assert ingestor.ingest(order, "evt_1", session).quantity == 10

    @pytest.mark.parametrize(
        "event",
        [
            {"type": "checkout.created", "data": {"id": "c1"}},
            {"type": "payment.failed", "data": {"id": "p1"}},
            paid_order(event_type="order.updated", status="pending"),
            paid_order(user_id=""),
        ],
    )
    def test_ignored_events_do_not_credit(self, ingestor, session, event):
        assert ingestor.ingest(event, "evt_x", session).status == "ignored"
        assert session.exec(select(Transaction)).all() == []
