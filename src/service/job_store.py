from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import update
from sqlmodel import Session, col, select

from core.exceptions import Forbidden, InvalidJobState, JobNotFound
from model.job import Job, JobStatus


def create_job(
    owner_id: str,
    source_ref: str,
    source_url: str,
    session: Session,
    style: str | None = None,
) -> Job:
    """업로드된 원본을 작업으로 등록한다. 상태는 pending."""
    job = Job(
        owner_id=owner_id,
        source_ref=source_ref,
        source_url=source_url,
        style=style,
    )
    session.add(job)
    session.commit()
    session.refresh(job)
    logger.info(f"Job {job.id} created for {owner_id} (source={source_ref})")
    return job


def find_by_source_ref(source_ref: str, session: Session) -> Job | None:
    """원본 참조로 작업을 찾는다. 중복이 있으면 가장 최근 작업."""
    return session.exec(
        select(Job)
        .where(Job.source_ref == source_ref)
        .order_by(col(Job.created_at).desc())
    ).first()


def get_job(job_id: str, session: Session) -> Job:
    job = session.get(Job, job_id)
    if not job:
        raise JobNotFound
    return job


def get_owned_job(job_id: str, owner_id: str, session: Session) -> Job:
    """ID로 작업을 조회하고, 소유권을 검증한다."""
    job = get_job(job_id, session)
    if job.owner_id != owner_id:
        raise Forbidden
    return job


def list_jobs(owner_id: str, session: Session) -> list[Job]:
    """해당 사용자의 작업 목록 (최신순)."""
    return list(
        session.exec(
            select(Job)
            .where(Job.owner_id == owner_id)
            .order_by(col(Job.created_at).desc())
        ).all()
    )


def list_processing(owner_id: str, session: Session) -> list[Job]:
    """생성 중인 작업만 반환한다. 동시 생성 방지 UI가 사용."""
    return list(
        session.exec(
            select(Job)
            .where(Job.owner_id == owner_id, Job.status == JobStatus.PROCESSING)
            .order_by(col(Job.created_at).desc())
        ).all()
    )


def update_status(
    job_id: str,
    status: JobStatus,
    session: Session,
    result_ref: str | None = None,
    result_url: str | None = None,
) -> Job:
    """작업 상태를 바꾸고 updated_at을 갱신한다.

    - 같은 상태로 다시 호출하면 아무것도 바꾸지 않는다.
    - completed는 결과 참조가 있어야 한다.
    - 결과는 한 번만 기록된다. 다른 결과로 덮어쓰려 하면 InvalidJobState.
    """
    job = get_job(job_id, session)

    if job.result_ref and result_ref and result_ref != job.result_ref:
        raise InvalidJobState(f"작업 {job_id}의 결과는 이미 기록되었습니다")
    if status == JobStatus.COMPLETED and not (result_ref or job.result_ref):
        raise InvalidJobState("결과 없이 completed로 바꿀 수 없습니다")
    if status != JobStatus.COMPLETED and (result_ref or job.result_ref):
        raise InvalidJobState(f"작업 {job_id}는 이미 완료되었습니다")

    if job.status == status and result_ref in (None, job.result_ref):
        return job

    job.status = status
    if result_ref:
        job.result_ref = result_ref
        job.result_url = result_url or result_ref
    job.updated_at = datetime.now(UTC)
    session.add(job)
    session.commit()
    session.refresh(job)
    logger.info(f"Job {job_id} -> {status}")
    return job


def claim_for_generation(job: Job, style: str | None, session: Session) -> bool:
    """작업을 processing으로 선점한다.

    읽어 온 시점의 status/attempts가 그대로일 때만 UPDATE가 적용된다.
    동시에 들어온 중복 요청 중 정확히 하나만 True를 받는다.
    """
    stmt = (
        update(Job)
        .where(
            col(Job.id) == job.id,
            col(Job.status) == job.status,
            col(Job.attempts) == job.attempts,
        )
        .values(
            status=JobStatus.PROCESSING,
            style=style or job.style,
            attempts=col(Job.attempts) + 1,
            updated_at=datetime.now(UTC),
        )
        .execution_options(synchronize_session=False)
    )
    result = session.exec(stmt)
    session.commit()
    claimed = result.rowcount == 1
    session.refresh(job)
    if claimed:
        logger.info(f"Job {job.id} claimed (attempt {job.attempts}, style={job.style})")
    else:
        logger.info(f"Job {job.id} claim lost, current status={job.status}")
    return claimed


def finish_attempt(
    job_id: str,
    attempt: int,
    status: JobStatus,
    session: Session,
    result_ref: str | None = None,
    result_url: str | None = None,
) -> bool:
    """processing 중인 시도 하나의 결과(completed/error)를 기록한다.

    작업이 아직 같은 시도 번호(attempts)로 processing일 때만 적용된다.
    stale 판정 뒤 다시 선점된 작업에 이전 시도가 늦게 쓰려 하면 False.
    """
    if status not in (JobStatus.COMPLETED, JobStatus.ERROR):
        raise InvalidJobState(f"시도 결과로 {status} 상태를 기록할 수 없습니다")
    if status == JobStatus.COMPLETED and not result_ref:
        raise InvalidJobState("결과 없이 completed로 바꿀 수 없습니다")

    values = {"status": status, "updated_at": datetime.now(UTC)}
    if status == JobStatus.COMPLETED:
        values["result_ref"] = result_ref
        values["result_url"] = result_url or result_ref

    stmt = (
        update(Job)
        .where(
            col(Job.id) == job_id,
            col(Job.status) == JobStatus.PROCESSING,
            col(Job.attempts) == attempt,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = session.exec(stmt)
    session.commit()
    if result.rowcount != 1:
        logger.warning(f"Job {job_id} attempt {attempt} is no longer current, dropping {status}")
        return False
    logger.info(f"Job {job_id} -> {status} (attempt {attempt})")
    return True


def list_stale_processing(older_than: datetime, session: Session) -> list[Job]:
    """older_than 이전부터 processing에 머물러 있는 작업."""
    return list(
        session.exec(
            select(Job)
            .where(Job.status == JobStatus.PROCESSING, col(Job.updated_at) < older_than)
            .order_by(col(Job.updated_at))
        ).all()
    )


def force_status(
    job_id: str,
    status: JobStatus,
    session: Session,
    result_ref: str | None = None,
    result_url: str | None = None,
) -> Job:
    """관리자용 강제 상태 변경. 멈춘 processing 작업 복구에 쓴다."""
    job = get_job(job_id, session)
    if status == JobStatus.COMPLETED and not (result_ref or job.result_ref):
        raise InvalidJobState("결과 없이 completed로 바꿀 수 없습니다")

    job.status = status
    if status == JobStatus.COMPLETED:
        job.result_ref = result_ref or job.result_ref
        job.result_url = result_url or job.result_url or job.result_ref
    else:
        job.result_ref = None
        job.result_url = None
    job.updated_at = datetime.now(UTC)
    session.add(job)
    session.commit()
    session.refresh(job)
    logger.warning(f"Job {job_id} forced to {status}")
    return job
