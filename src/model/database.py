from collections.abc import Iterator

from sqlmodel import Session, SQLModel, create_engine

from core.config import settings

# SQLite는 요청 스레드와 백그라운드 작업 스레드가 같은 DB를 쓰므로 스레드 체크를 끈다
_connect_args = (
    {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
)

engine = create_engine(settings.DATABASE_URL, connect_args=_connect_args)


def create_db_and_tables():
    SQLModel.metadata.create_all(engine)


def new_session() -> Session:
    """요청 밖(백그라운드 작업, 스크립트)에서 쓰는 세션 팩토리."""
    return Session(engine)


def get_session() -> Iterator[Session]:
    """FastAPI 의존성: 요청마다 세션을 열고 닫는다."""
    with Session(engine) as session:
        yield session
