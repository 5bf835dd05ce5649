"""
Unit tests for UserService.
"""
import pytest
from fastapi import HTTPException

from trave_social.core.events import EventType
from trave_social.services.user_service import UserService


class TestProfiles:

    async def test_get_profile_by_any_variant(self, db_session, bob):
        service = UserService(db_session)

        by_id = await service.get_profile("u2")
        by_uid = await service.get_profile("legacyB")

        assert by_id == by_uid
        assert by_id["display_name"] == "Bob"
        assert by_id["followers_count"] == 0
        assert "is_following" not in by_id

    async def test_default_display_name(self, db_session, carol):
        profile = await UserService(db_session).get_profile("u3")

        assert profile["display_name"] == "User_u3"

    async def test_unknown_user_is_404(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            await UserService(db_session).get_profile("ghost")

        assert exc_info.value.status_code == 404

    async def test_update_profile_ignores_unknown_fields(self, db_session, alice):
        profile = await UserService(db_session).update_profile(
            "extA", bio="Traveller", website=None, email="evil@example.com"
        )

        assert profile["bio"] == "Traveller"
        assert alice.email == "alice@example.com"

    async def test_set_push_token(self, db_session, alice):
        service = UserService(db_session)

        assert await service.set_push_token("u1", "ExponentPushToken[abc123]") == {"success": True}
        await db_session.refresh(alice)
        assert alice.push_token == "ExponentPushToken[abc123]"

        with pytest.raises(HTTPException) as exc_info:
            await service.set_push_token("u1", "not-a-token")
        assert exc_info.value.status_code == 400


class TestFollows:

    async def test_follow_is_idempotent_and_notifies_once(self, db_session, alice, bob, published, events_named):
        service = UserService(db_session)

        first = await service.follow("u1", "extB")
        second = await service.follow("extA", "u2")

        assert first == {"following": True, "followers_count": 1}
        assert second == {"following": True, "followers_count": 1}
        notifications = events_named(published, EventType.NOTIFICATION_CREATED)
        assert len(notifications) == 1
        assert notifications[0]["type"] == "follow"
        assert notifications[0]["recipient_id"] == "u2"

    async def test_cannot_follow_self(self, db_session, alice):
        with pytest.raises(HTTPException) as exc_info:
            await UserService(db_session).follow("u1", "extA")

        assert exc_info.value.status_code == 400

    async def test_unfollow_and_lists(self, db_session, alice, bob, carol):
        service = UserService(db_session)
        await service.follow("u1", "u2")
        await service.follow("u3", "u2")

        followers = await service.get_followers("extB")
        assert sorted(user["id"] for user in followers) == ["u1", "u3"]
        assert [user["id"] for user in await service.get_following("u1")] == ["u2"]

        profile = await service.get_profile("u2", viewer_id="extA")
        assert profile["is_following"] is True
        assert profile["followers_count"] == 2

        assert await service.unfollow("u1", "u2") == {"following": False, "followers_count": 1}
        assert await service.unfollow("u1", "u2") == {"following": False, "followers_count": 1}
        assert (await service.get_profile("u2", viewer_id="u1"))["is_following"] is False
