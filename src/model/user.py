from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, unique=True)  # 외부 인증 서비스의 subject
    email: str = ""
    display_name: str = ""
    # None = 크레딧 기능 도입 전에 생성된 사용자. 첫 조회/차감 시 0으로 채운다.
    credits: int | None = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
