from datetime import UTC, datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel


class ObjectKind(StrEnum):
    SOURCE = "source"
    RESULT = "result"


class StoredObject(SQLModel, table=True):
    """저장소에 올라간 blob의 소유자 기록. 파일 자체는 LocalStorage가 관리한다."""

    storage_ref: str = Field(primary_key=True)
    owner_id: str = Field(index=True)
    kind: str = ObjectKind.SOURCE
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
