from fastapi import APIRouter, Depends, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlmodel import Session

from core.dependencies import get_current_user
from core.exceptions import InvalidToken, StorageObjectNotFound
from core.security import verify_upload_token
from model.database import get_session
from model.user import User
from service.storage_service import LocalStorage, get_storage, record_owner

router = APIRouter(prefix="/api/storage", tags=["storage"])


class UploadTargetResponse(BaseModel):
    upload_url: str


class UploadResponse(BaseModel):
    storage_ref: str
    url: str


@router.post("/upload-url", response_model=UploadTargetResponse)
def generate_upload_url(
    current_user: User = Depends(get_current_user),
    storage: LocalStorage = Depends(get_storage),
):
    """원본 업로드용 단기 URL을 발급한다."""
    return storage.generate_upload_target(current_user.user_id)


@router.post("/upload", response_model=UploadResponse)
def upload(
    token: str,
    file: UploadFile,
    storage: LocalStorage = Depends(get_storage),
    session: Session = Depends(get_session),
):
    """업로드 URL로 원본을 올린다. 인증은 URL의 업로드 토큰으로 대신한다.

    토큰에 담긴 사용자를 원본 소유자로 기록한다.
    """
    owner_id = verify_upload_token(token)
    if not owner_id:
        raise InvalidToken("업로드 토큰이 유효하지 않습니다")

    ref = storage.save(file.file.read())
    record_owner(ref, owner_id, session)
    session.commit()
    return UploadResponse(storage_ref=ref, url=storage.resolve_url(ref))


@router.get("/{storage_ref}")
def download(storage_ref: str, storage: LocalStorage = Depends(get_storage)):
    path = storage.path_for(storage_ref)
    if not path:
        raise StorageObjectNotFound
    return FileResponse(path)
