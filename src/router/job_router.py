from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, status
from pydantic import BaseModel, Field
from sqlmodel import Session

from core.dependencies import get_current_user
from model.database import get_session
from model.user import User
from service import credit_ledger, job_store
from service.orchestrator import GenerationOrchestrator, get_orchestrator
from service.storage_service import LocalStorage, get_storage, resolve_owned_source

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


# --- 요청/응답 스키마 ---

class RegisterUploadRequest(BaseModel):
    source_ref: str
    style: str | None = Field(default=None, max_length=64)


class RegisterUploadResponse(BaseModel):
    job_id: str
    status: str


class GenerateRequest(BaseModel):
    style: str | None = Field(default=None, max_length=64)


class GenerateResponse(BaseModel):
    job_id: str
    status: str
    result_url: str | None = None
    started: bool


class JobResponse(BaseModel):
    id: str
    owner_id: str
    source_ref: str
    source_url: str
    style: str | None
    status: str
    result_ref: str | None
    result_url: str | None
    attempts: int
    created_at: datetime
    updated_at: datetime


# --- 엔드포인트 ---

@router.post("/", response_model=RegisterUploadResponse, status_code=status.HTTP_201_CREATED)
def register_upload(
    req: RegisterUploadRequest,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    storage: LocalStorage = Depends(get_storage),
):
    """업로드된 원본을 작업으로 등록한다 (status=pending).

    - 크레딧이 없으면 402 INSUFFICIENT_CREDITS
    - 본인이 올린 원본이 아니면 403 FORBIDDEN
    """
    credit_ledger.require_credits(current_user.user_id, session)
    source_url = resolve_owned_source(storage, req.source_ref, current_user.user_id, session)

    job = job_store.create_job(
        current_user.user_id, req.source_ref, source_url, session, style=req.style
    )
    return RegisterUploadResponse(job_id=job.id, status=job.status)


@router.get("/", response_model=list[JobResponse])
def list_jobs(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return job_store.list_jobs(current_user.user_id, session)


@router.get("/in-flight", response_model=list[JobResponse])
def list_in_flight(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """생성 중인 작업. 클라이언트는 이 목록이 비어 있을 때만 새 생성을 허용한다."""
    return job_store.list_processing(current_user.user_id, session)


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return job_store.get_owned_job(job_id, current_user.user_id, session)


@router.post("/{job_id}/generate", response_model=GenerateResponse)
def request_generation(
    job_id: str,
    req: GenerateRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """생성 요청.

    - pending/error → processing으로 선점하고 백그라운드에서 생성
    - processing/completed → 아무것도 하지 않고 현재 상태를 반환
    클라이언트는 GET /api/jobs/{job_id}로 상태를 폴링한다.
    """
    ticket = orchestrator.request_generation(job_id, current_user.user_id, req.style)
    if ticket.started:
        background_tasks.add_task(orchestrator.run_attempt, job_id, ticket.attempt)

    return GenerateResponse(
        job_id=ticket.job.id,
        status=ticket.job.status,
        result_url=ticket.job.result_url,
        started=ticket.started,
    )
