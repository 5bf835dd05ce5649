"""
Unit tests for AuthService.
"""
import pytest
from fastapi import HTTPException

from trave_social.core.security import SecurityException, create_access_token, decode_token
from trave_social.services.auth_service import AuthService


class TestEmailAuth:

    async def test_register_then_login(self, db_session):
        service = AuthService(db_session)

        registered = await service.register("New.User@Example.com", "secret123")
        assert registered["user"]["email"] == "new.user@example.com"
        assert registered["user"]["display_name"] == "new.user"

        logged_in = await service.login("new.user@example.com", "secret123")
        assert logged_in["user"]["id"] == registered["user"]["id"]
        assert decode_token(logged_in["token"])["sub"] == registered["user"]["id"]

    async def test_duplicate_email_is_conflict(self, db_session, alice):
        with pytest.raises(HTTPException) as exc_info:
            await AuthService(db_session).register("ALICE@example.com", "whatever1")

        assert exc_info.value.status_code == 409

    @pytest.mark.parametrize("email,password", [
        ("alice@example.com", "wrong-password"),
        ("nobody@example.com", "alice-password"),
        ("bob@example.com", "anything"),
    ])
    async def test_bad_credentials_are_401(self, db_session, alice, bob, email, password):
        with pytest.raises(SecurityException) as exc_info:
            await AuthService(db_session).login(email, password)

        assert exc_info.value.status_code == 401


class TestFirebaseLogin:

    async def test_existing_uid_logs_in(self, db_session, bob):
        result = await AuthService(db_session).login_firebase("extB", "bob@example.com")

        assert result["user"]["id"] == "u2"

    async def test_links_uid_to_existing_email(self, db_session, carol):
        result = await AuthService(db_session).login_firebase("extC", "Carol@example.com", display_name="Carol")

        assert result["user"]["id"] == "u3"
        assert result["user"]["firebase_uid"] == "extC"
        assert result["user"]["display_name"] == "Carol"

    async def test_creates_new_user(self, db_session):
        result = await AuthService(db_session).login_firebase("extNew", "new@example.com")

        user = result["user"]
        assert user["firebase_uid"] == "extNew"
        assert user["display_name"] == "new"
        assert decode_token(result["token"])["firebase_uid"] == "extNew"

    async def test_email_linked_to_other_uid_is_conflict(self, db_session, bob):
        with pytest.raises(HTTPException) as exc_info:
            await AuthService(db_session).login_firebase("extOther", "bob@example.com")

        assert exc_info.value.status_code == 409


class TestVerify:

    async def test_token_subject_in_any_variant(self, db_session, bob):
        token = create_access_token({"sub": "extB"})

        assert await AuthService(db_session).verify(token) == {"valid": True, "user_id": "u2"}

    async def test_invalid_token(self, db_session):
        assert await AuthService(db_session).verify("garbage") == {"valid": False, "user_id": None}

    async def test_unknown_subject(self, db_session):
        token = create_access_token({"sub": "ghost"})

        assert await AuthService(db_session).verify(token) == {"valid": False, "user_id": None}
