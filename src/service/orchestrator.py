"""이미지 생성 작업 오케스트레이터.

상태 머신:
    pending ──▶ processing ──▶ completed
                    │  ▲
                    ▼  │ (재요청)
                  error

- 요청 단계(request_generation)는 조건부 UPDATE로 작업을 선점만 한다.
  선점할 때마다 attempts가 1 늘고, 그 값이 시도 번호가 된다.
- 실행 단계(run_attempt)는 프로바이더를 한 번 호출하고, 결과 이미지를
  저장소로 옮긴 뒤 기록한다. 기록은 자기 시도 번호가 아직 현재일 때만 적용되므로
  stale 판정으로 다시 선점된 작업에 이전 시도가 늦게 써도 무시된다.
  실패는 모두 status=error로 바뀌고 호출자에게 다시 던지지 않는다.
- 크레딧 차감은 completed 기록 뒤에 따로 시도한다. 차감이 실패해도
  생성 결과는 유지된다.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import Depends
from loguru import logger
from sqlmodel import Session

from core.config import settings
from model.database import new_session
from model.job import Job, JobStatus
from model.stored_object import ObjectKind
from processor.provider_response import normalize_output
from processor.styles import build_instruction
from service import credit_ledger, job_store
from service.generation_provider import GenerationProvider, ReplicateProvider
from service.storage_service import LocalStorage, get_storage, record_owner
from utility.timer import timer


@dataclass
class GenerationTicket:
    job: Job
    started: bool
    attempt: int


def _as_utc(dt: datetime) -> datetime:
    # SQLite는 tzinfo 없이 돌려준다
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


class GenerationOrchestrator:
    def __init__(
        self,
        provider: GenerationProvider,
        storage: LocalStorage,
        session_factory: Callable[[], Session] = new_session,
        debit: Callable[..., credit_ledger.DebitResult] = credit_ledger.debit,
        stale_after: timedelta = timedelta(minutes=15),
    ):
        self.provider = provider
        self.storage = storage
        self.session_factory = session_factory
        self.debit = debit
        self.stale_after = stale_after

    def is_stale(self, job: Job) -> bool:
        return datetime.now(UTC) - _as_utc(job.updated_at) > self.stale_after

    def request_generation(
        self, job_id: str, owner_id: str, style: str | None = None
    ) -> GenerationTicket:
        """생성 요청. 선점에 성공했을 때만 started=True."""
        with self.session_factory() as session:
            job = job_store.get_owned_job(job_id, owner_id, session)

            if job.status == JobStatus.COMPLETED:
                logger.info(f"Job {job_id} already completed, skipping")
                return GenerationTicket(job=job, started=False, attempt=job.attempts)

            if job.status == JobStatus.PROCESSING and not self.is_stale(job):
                logger.info(f"Job {job_id} is already being processed, skipping")
                return GenerationTicket(job=job, started=False, attempt=job.attempts)

            if job.status == JobStatus.PROCESSING:
                logger.warning(f"Job {job_id} stuck in processing since {job.updated_at}, retrying")

            started = job_store.claim_for_generation(job, style, session)
            return GenerationTicket(job=job, started=started, attempt=job.attempts)

    def run_attempt(self, job_id: str, attempt: int | None = None) -> Job:
        """선점된 시도 하나를 실행한다. 백그라운드 작업으로 호출된다.

        attempt는 선점 때 받은 시도 번호. 생략하면 현재 시도로 본다.
        """
        with self.session_factory() as session:
            job = job_store.get_job(job_id, session)
            if attempt is None:
                attempt = job.attempts
            if job.status != JobStatus.PROCESSING or job.attempts != attempt:
                logger.warning(
                    f"Job {job_id} is {job.status} at attempt {job.attempts}, "
                    f"not running attempt {attempt}"
                )
                return job

            try:
                instruction = build_instruction(job.style)
                with timer(f"generate {job_id}"):
                    raw = self.provider.generate(
                        job.source_url,
                        instruction,
                        aspect_ratio="match_input_image",
                        correlation_id=job.id,
                    )
                delivery_url = normalize_output(raw)
                result_ref = self.storage.save_from_url(delivery_url)
            except Exception as e:
                logger.exception(f"Generation failed for job {job_id} (attempt {attempt}): {e}")
                session.rollback()
                job_store.finish_attempt(job_id, attempt, JobStatus.ERROR, session)
                session.refresh(job)
                return job

            completed = job_store.finish_attempt(
                job_id,
                attempt,
                JobStatus.COMPLETED,
                session,
                result_ref=result_ref,
                result_url=self.storage.resolve_url(result_ref),
            )
            if completed:
                record_owner(result_ref, job.owner_id, session, kind=ObjectKind.RESULT)
                session.commit()
                self._debit_owner(job, session)
            else:
                self.storage.discard(result_ref)
            session.refresh(job)
            return job

    def _debit_owner(self, job: Job, session: Session) -> None:
        try:
            result = self.debit(job.owner_id, session)
            if not result.applied:
                logger.warning(f"Job {job.id} completed but {job.owner_id} had no credits")
        except Exception:
            logger.exception(f"Credit debit failed for {job.owner_id} (job {job.id})")
            session.rollback()


def get_orchestrator(storage: LocalStorage = Depends(get_storage)) -> GenerationOrchestrator:
    """FastAPI 의존성. API 토큰이 없으면 NotConfigured(503)."""
    return GenerationOrchestrator(
        provider=ReplicateProvider.from_settings(settings),
        storage=storage,
        stale_after=timedelta(minutes=settings.PROCESSING_STALE_MINUTES),
    )
