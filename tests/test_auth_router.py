"""인증 API (sync, me) 테스트."""

from sqlmodel import Session

from conftest import headers_for
from model.user import User


class TestSync:
    def test_new_user_gets_free_credits(self, client, auth_headers):
        """처음 로그인한 사용자 → 무료 크레딧 3."""
        resp = client.post("/auth/sync", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["user_id"] == "user_1"
        assert data["email"] == "user1@test.com"
        assert data["display_name"] == "User One"
        assert data["credits"] == 3

    def test_existing_user_profile_is_updated(self, client, auth_headers):
        client.post("/auth/sync", headers=auth_headers)
        renamed = headers_for("user_1", "new@test.com", "Renamed")

        data = client.post("/auth/sync", headers=renamed).json()
        assert data["email"] == "new@test.com"
        assert data["display_name"] == "Renamed"
        assert data["credits"] == 3

    def test_legacy_user_is_backfilled_with_zero(self, client, engine, auth_headers):
        with Session(engine) as s:
            s.add(User(user_id="user_1", email="old@test.com"))
            s.commit()

        data = client.post("/auth/sync", headers=auth_headers).json()
        assert data["credits"] == 0


class TestMe:
    def test_me_with_valid_token(self, client, auth_headers):
        resp = client.get("/auth/me", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["user_id"] == "user_1"
        assert resp.json()["credits"] == 3

    def test_me_without_token(self, client):
        """토큰 없이 /me → 401."""
        resp = client.get("/auth/me")
        assert resp.status_code == 401

    def test_upload_token_is_not_an_access_token(self, client, storage):
        target = storage.generate_upload_target("user_1")["upload_url"]
        token = target.split("token=", 1)[1]
        resp = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
