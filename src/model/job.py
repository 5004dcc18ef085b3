import uuid
from datetime import UTC, datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel


class JobStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class Job(SQLModel, table=True):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    owner_id: str = Field(index=True)
    source_ref: str = Field(index=True)
    source_url: str
    style: str | None = None
    status: str = Field(default=JobStatus.PENDING, index=True)
    result_ref: str | None = None
    result_url: str | None = None
    attempts: int = 0  # 생성 시도 횟수. 낙관적 동시성 체크의 버전으로도 쓴다.
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
