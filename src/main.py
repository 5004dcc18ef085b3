import uvicorn
from fastapi import FastAPI

from core.config import settings
from core.error_handlers import app_exception_handler, unhandled_exception_handler
from core.exceptions import AppException
from core.lifespan import lifespan
from core.middleware import RequestLoggingMiddleware
from router.auth_router import router as auth_router
from router.credit_router import router as credit_router
from router.job_router import router as job_router
from router.storage_router import router as storage_router
from router.webhook_router import router as webhook_router
import model.user  # noqa: F401 — 테이블 등록
import model.job  # noqa: F401 — 테이블 등록
import model.transaction  # noqa: F401 — 테이블 등록
import model.stored_object  # noqa: F401 — 테이블 등록

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="사진을 카툰 스타일로 변환하는 크레딧 기반 이미지 생성 API",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(auth_router)
app.include_router(storage_router)
app.include_router(job_router)
app.include_router(credit_router)
app.include_router(webhook_router)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "version": settings.APP_VERSION,
        "provider_configured": bool(settings.PROVIDER_API_TOKEN),
        "webhook_configured": bool(settings.WEBHOOK_SECRET),
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        access_log=False,
    )
