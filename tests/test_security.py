"""JWT 토큰 단위 테스트."""

from datetime import timedelta

from core.security import (
    create_access_token,
    create_upload_token,
    verify_token,
    verify_upload_token,
)


def test_create_and_verify_token():
    """JWT 생성 → 디코딩 → sub 값이 일치한다."""
    token = create_access_token({"sub": "user_1", "email": "a@test.com"})
    payload = verify_token(token)

    assert payload is not None
    assert payload["sub"] == "user_1"
    assert payload["email"] == "a@test.com"
    assert "exp" in payload


def test_expired_token():
    """만료된 토큰은 verify_token이 None을 반환한다."""
    token = create_access_token(
        {"sub": "user_1"},
        expires_delta=timedelta(seconds=-1),
    )
    assert verify_token(token) is None


def test_upload_token_is_scoped():
    """업로드 토큰만 verify_upload_token을 통과한다."""
    assert verify_upload_token(create_upload_token("user_1")) == "user_1"
    assert verify_upload_token(create_access_token({"sub": "user_1"})) is None
    assert verify_upload_token("garbage") is None
