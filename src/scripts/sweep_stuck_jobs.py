"""
processing에 멈춘 작업 정리 스크립트.

생성 도중 프로세스가 죽으면 작업이 processing에 남는다.
N분 이상 갱신이 없는 작업을 error로 바꿔 사용자가 다시 요청할 수 있게 한다.
(요청 시점에도 stale 판정으로 재시도를 허용하지만, 목록/폴링 화면을 위해 정리한다)

사용법:
    cd src && python -m scripts.sweep_stuck_jobs --older-than 15
    cd src && python -m scripts.sweep_stuck_jobs --older-than 15 --dry-run
"""

import argparse
from datetime import UTC, datetime, timedelta

from loguru import logger
from sqlmodel import Session

from core.config import settings
from model.database import create_db_and_tables, new_session
from model.job import Job, JobStatus
from service import job_store
from utility.logger import setup_logger


def sweep(session: Session, older_than: timedelta, dry_run: bool = False) -> list[Job]:
    """기준 시간보다 오래된 processing 작업을 error로 바꾸고 목록을 반환한다."""
    cutoff = datetime.now(UTC) - older_than
    stale = job_store.list_stale_processing(cutoff, session)
    for job in stale:
        if dry_run:
            logger.info(f"[dry-run] would reset {job.id} (owner={job.owner_id}, since {job.updated_at})")
            continue
        job_store.force_status(job.id, JobStatus.ERROR, session)
    return stale


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reset jobs stuck in processing")
    parser.add_argument(
        "--older-than",
        type=int,
        default=settings.PROCESSING_STALE_MINUTES,
        help="minutes without update before a processing job is considered stuck",
    )
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    setup_logger(settings.LOG_LEVEL, serialize=settings.LOG_JSON)
    create_db_and_tables()
    with new_session() as session:
        stale = sweep(session, timedelta(minutes=args.older_than), args.dry_run)
    logger.info(f"{len(stale)} stuck job(s) {'found' if args.dry_run else 'reset'}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
