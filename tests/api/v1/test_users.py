"""
Integration tests for User API endpoints.
"""
from trave_social.core.events import EventType

BASE = "/api/v1/users"


class TestProfileAPI:

    async def test_get_profile_by_any_identifier(self, client, bob):
        for identifier in ("u2", "extB", "legacyB"):
            response = await client.get(f"{BASE}/{identifier}")

            assert response.status_code == 200, identifier
            assert response.json()["id"] == "u2"
            assert response.json()["is_following"] is False

    async def test_unknown_user(self, client):
        response = await client.get(f"{BASE}/ghost")

        assert response.status_code == 404

    async def test_update_me_only_touches_sent_fields(self, client):
        response = await client.patch(f"{BASE}/me", json={"bio": "Always packing"})

        assert response.status_code == 200
        data = response.json()
        assert data["bio"] == "Always packing"
        assert data["display_name"] == "Alice"

    async def test_push_token(self, client):
        ok = await client.put(f"{BASE}/me/push-token", json={"push_token": "ExponentPushToken[alice]"})
        bad = await client.put(f"{BASE}/me/push-token", json={"push_token": "not-a-token"})

        assert ok.json() == {"success": True}
        assert bad.status_code == 400


class TestFollowAPI:

    async def test_follow_and_unfollow(self, client, bob, published, events_named):
        followed = await client.post(f"{BASE}/extB/follow")
        again = await client.post(f"{BASE}/u2/follow")
        followers = await client.get(f"{BASE}/u2/followers")
        following = await client.get(f"{BASE}/u1/following")
        unfollowed = await client.delete(f"{BASE}/u2/follow")

        assert followed.json() == {"following": True, "followers_count": 1}
        assert again.json() == {"following": True, "followers_count": 1}
        assert [u["id"] for u in followers.json()] == ["u1"]
        assert [u["id"] for u in following.json()] == ["u2"]
        assert unfollowed.json() == {"following": False, "followers_count": 0}

        # Only the first follow notifies
        [event] = events_named(published, EventType.NOTIFICATION_CREATED)
        assert event["recipient_id"] == "u2"
        assert event["type"] == "follow"

    async def test_cannot_follow_self(self, client):
        response = await client.post(f"{BASE}/extA/follow")

        assert response.status_code == 400
