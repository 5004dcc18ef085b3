"""pytest 공용 fixture.

모든 API 테스트는 in-memory SQLite DB를 사용하여 격리된다.
- client: TestClient (세션/저장소/프로바이더/웹훅 의존성 오버라이드)
- auth_headers: 첫 번째 유저의 Authorization 헤더
- second_user_headers: 소유권 테스트용 두 번째 유저 헤더
- provider: 호출을 기록하는 가짜 이미지 생성 프로바이더
- storage: 임시 디렉토리 저장소. 결과 URL 다운로드는 MockTransport(cdn_handler)가 받는다
"""

import io
import os
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# src/ 디렉토리를 import path에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))
# lifespan이 디스크에 DB 파일을 만들지 않도록
os.environ.setdefault("DATABASE_URL", "sqlite://")

from core.security import create_access_token
from main import app
from model.database import get_session
from service.orchestrator import GenerationOrchestrator, get_orchestrator
from service.storage_service import LocalStorage, get_storage
from service.webhook_ingestor import WebhookIngestor, get_webhook_ingestor

WEBHOOK_SECRET = "whsec_test_secret"
RESULT_URL = "https://cdn/out.png"
STORED_URL_PREFIX = "http://testserver/api/storage/"


class FakeProvider:
    """generate() 호출을 기록하고 정해진 결과를 돌려준다."""

    def __init__(self, result=RESULT_URL, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[dict] = []

    def generate(self, source_url, instruction, aspect_ratio="match_input_image", correlation_id=None):
        self.calls.append(
            {
                "source_url": source_url,
                "instruction": instruction,
                "aspect_ratio": aspect_ratio,
                "correlation_id": correlation_id,
            }
        )
        if self.error:
            raise self.error
        return self.result


def cdn_handler(request: httpx.Request) -> httpx.Response:
    """프로바이더 결과 URL을 흉내 낸다. RESULT_URL만 이미지를 돌려준다."""
    if str(request.url) == RESULT_URL:
        return httpx.Response(200, content=make_png("orange"), headers={"content-type": "image/png"})
    return httpx.Response(404)


@pytest.fixture()
def engine():
    """테스트마다 새 in-memory SQLite DB를 생성한다.

    StaticPool을 사용해야 모든 커넥션이 같은 in-memory DB를 공유한다.
    (기본값은 커넥션마다 별도 DB가 생성되어 테이블이 안 보임)
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture()
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture()
def session_factory(engine):
    return lambda: Session(engine)


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture()
def orchestrator(provider, storage, session_factory):
    return GenerationOrchestrator(provider=provider, storage=storage, session_factory=session_factory)


@pytest.fixture()
def storage(tmp_path):
    return LocalStorage(
        str(tmp_path / "storage"),
        "http://testserver",
        1024 * 1024,
        transport=httpx.MockTransport(cdn_handler),
    )


@pytest.fixture()
def ingestor():
    return WebhookIngestor(secret=WEBHOOK_SECRET, default_quantity=10)


@pytest.fixture()
def client(engine, orchestrator, storage, ingestor):
    """의존성을 테스트용으로 오버라이드한 TestClient.

    요청마다 새 세션을 열어 백그라운드 생성 작업이 쓴 결과가 바로 보이게 한다.
    """

    def _override_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_webhook_ingestor] = lambda: ingestor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_png(color: str = "blue") -> bytes:
    """테스트용 PNG 이미지를 메모리에서 생성한다."""
    buf = io.BytesIO()
    Image.new("RGB", (64, 64), color=color).save(buf, format="PNG")
    return buf.getvalue()


def headers_for(subject: str, email: str = "", name: str = "") -> dict:
    token = create_access_token({"sub": subject, "email": email, "name": name})
    return {"Authorization": f"Bearer {token}"}


def upload_image(client: TestClient, headers: dict) -> str:
    """업로드 URL 발급 → 원본 업로드 → storage_ref 반환."""
    target = client.post("/api/storage/upload-url", headers=headers).json()
    resp = client.post(
        target["upload_url"],
        files={"file": ("photo.png", make_png(), "image/png")},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["storage_ref"]


def register_job(client: TestClient, headers: dict, style: str | None = None) -> str:
    source_ref = upload_image(client, headers)
    resp = client.post(
        "/api/jobs/", headers=headers, json={"source_ref": source_ref, "style": style}
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["job_id"]


@pytest.fixture()
def auth_headers():
    """첫 번째 테스트 유저의 인증 헤더."""
    return headers_for("user_1", "user1@test.com", "User One")


@pytest.fixture()
def second_user_headers():
    """두 번째 테스트 유저의 인증 헤더 (소유권 테스트용)."""
    return headers_for("user_2", "user2@test.com", "User Two")
