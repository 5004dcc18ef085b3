import io
import re
import uuid
from pathlib import Path

import httpx
from loguru import logger
from PIL import Image, UnidentifiedImageError
from sqlmodel import Session

from core.config import settings
from core.exceptions import Forbidden, InvalidUpload, StorageObjectNotFound
from core.security import create_upload_token
from model.stored_object import ObjectKind, StoredObject

# Pillow 포맷 이름 → 저장 확장자
EXTENSIONS = {
    "PNG": ".png",
    "JPEG": ".jpg",
    "WEBP": ".webp",
    "GIF": ".gif",
}

_REF_PATTERN = re.compile(r"^[0-9a-f]{32}\.[a-z]+$")


class LocalStorage:
    """디스크 기반 blob 저장소.

    클라이언트는 generate_upload_target()으로 받은 URL에 원본을 직접 올리고,
    돌려받은 storage_ref로 작업을 등록한다. 생성 결과도 프로바이더의
    임시 URL에서 내려받아 같은 저장소에 보관한다.
    """

    def __init__(
        self,
        root: str,
        public_base_url: str,
        max_bytes: int,
        download_timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.max_bytes = max_bytes
        self.download_timeout = download_timeout
        self.transport = transport

    def generate_upload_target(self, owner_id: str) -> dict:
        token = create_upload_token(owner_id)
        return {"upload_url": f"{self.public_base_url}/api/storage/upload?token={token}"}

    def save(self, data: bytes) -> str:
        """이미지 바이트를 검증하고 저장한 뒤 storage_ref를 반환한다."""
        if not data or len(data) > self.max_bytes:
            raise InvalidUpload

        try:
            with Image.open(io.BytesIO(data)) as img:
                fmt = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError):
            raise InvalidUpload

        ext = EXTENSIONS.get(fmt or "")
        if not ext:
            raise InvalidUpload(f"지원하지 않는 이미지 형식: {fmt}")

        self.root.mkdir(parents=True, exist_ok=True)
        ref = f"{uuid.uuid4().hex}{ext}"
        (self.root / ref).write_bytes(data)
        logger.info(f"Stored object {ref} ({len(data)} bytes, {fmt})")
        return ref

    def save_from_url(self, url: str) -> str:
        """원격 이미지를 내려받아 저장한다. 네트워크 오류는 httpx.HTTPError 그대로."""
        with httpx.Client(
            timeout=self.download_timeout, transport=self.transport, follow_redirects=True
        ) as client:
            resp = client.get(url)
            resp.raise_for_status()
        return self.save(resp.content)

    def discard(self, storage_ref: str) -> None:
        path = self.path_for(storage_ref)
        if path:
            path.unlink(missing_ok=True)
            logger.info(f"Discarded object {storage_ref}")

    def path_for(self, storage_ref: str) -> Path | None:
        if not _REF_PATTERN.match(storage_ref):
            return None
        path = self.root / storage_ref
        return path if path.is_file() else None

    def resolve_url(self, storage_ref: str) -> str | None:
        if not self.path_for(storage_ref):
            return None
        return f"{self.public_base_url}/api/storage/{storage_ref}"


def record_owner(
    storage_ref: str, owner_id: str, session: Session, kind: ObjectKind = ObjectKind.SOURCE
) -> StoredObject:
    """blob 소유자를 기록한다. 커밋은 호출자가 한다."""
    obj = StoredObject(storage_ref=storage_ref, owner_id=owner_id, kind=kind)
    session.add(obj)
    return obj


def resolve_owned_source(
    storage: LocalStorage, storage_ref: str, owner_id: str, session: Session
) -> str:
    """작업 등록용: 호출자가 올린 원본인지 확인하고 공개 URL을 반환한다.

    - 파일이나 소유 기록이 없으면 StorageObjectNotFound
    - 다른 사용자가 올린 원본이면 Forbidden
    """
    url = storage.resolve_url(storage_ref)
    obj = session.get(StoredObject, storage_ref)
    if not url or obj is None:
        raise StorageObjectNotFound
    if obj.owner_id != owner_id:
        raise Forbidden
    return url


def get_storage() -> LocalStorage:
    """FastAPI 의존성. 테스트에서는 임시 디렉토리 저장소로 오버라이드한다."""
    return LocalStorage(
        settings.STORAGE_DIR,
        settings.PUBLIC_BASE_URL,
        settings.MAX_UPLOAD_BYTES,
        download_timeout=settings.RESULT_DOWNLOAD_TIMEOUT_SECONDS,
    )
