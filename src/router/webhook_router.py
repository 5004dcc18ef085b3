from fastapi import APIRouter, Depends, Request
from loguru import logger
from sqlmodel import Session

from core.exceptions import AppException, InvalidWebhookPayload
from model.database import get_session
from service.webhook_ingestor import WebhookIngestor, get_webhook_ingestor

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    ingestor: WebhookIngestor = Depends(get_webhook_ingestor),
    session: Session = Depends(get_session),
):
    """결제 서비스 웹훅.

    - 서명 불일치 → 403 WEBHOOK_VERIFICATION_FAILED (상태 변경 없음)
    - 처리할 수 없는 페이로드/처리 중 오류 → 400
    - 모르는 이벤트 타입 → 200 (무시)
    """
    body = await request.body()
    try:
        event = ingestor.verify(body, request.headers)
        result = ingestor.ingest(event, request.headers["webhook-id"], session)
    except AppException as e:
        logger.warning(f"Webhook rejected: {e.error_code} {e.message}")
        raise
    except Exception as e:
        logger.exception(f"Webhook failed: {e}")
        session.rollback()
        raise InvalidWebhookPayload

    return {"message": "Webhook received!", "result": result.status}
