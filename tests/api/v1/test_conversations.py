"""
Integration tests for Conversation API endpoints.
Tests routing, identifier resolution in paths, and status codes.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from trave_social import main
from trave_social.core.events import EventType

BASE = "/api/v1/conversations"


@pytest.fixture
async def legacy_thread(make_conversation, message_factory, alice, bob):
    """One logical thread split over an unkeyed legacy document and a keyed one."""
    legacy = await make_conversation("extB", "u1", messages=[
        message_factory("m1", "extB", "u1", "hi alice", "2025-01-01T10:01:00Z"),
        message_factory("m2", "u1", None, "hey bob", "2025-01-01T10:02:00Z"),
    ])
    keyed = await make_conversation("u1", "u2", key="u1_u2", messages=[
        message_factory("m3", "u2", "u1", "coffee?", "2025-01-01T10:03:00Z"),
        message_factory("m1", "extB", "u1", "hi alice", "2025-01-01T10:01:00Z"),
    ])
    return legacy, keyed


class TestGetOrCreateAPI:
    """Test POST /conversations/."""

    async def test_creates_once_for_any_identifier_form(self, client, bob):
        """Creating with the auth-provider id and then the internal id yields one document."""
        first = await client.post(f"{BASE}/", json={"participant_id": "extB"})
        second = await client.post(f"{BASE}/", json={"participant_id": "u2"})

        assert first.status_code == 200
        data = first.json()
        assert data["id"] == "u1_u2"
        assert data["participants"] == ["u1", "u2"]
        assert data["other_user"] == {
            "id": "u2",
            "display_name": "Bob",
            "avatar": "https://cdn.example.com/bob.jpg",
        }
        assert data["last_message"] is None
        assert second.json()["document_id"] == data["document_id"]

    async def test_conversation_with_self_is_rejected(self, client):
        response = await client.post(f"{BASE}/", json={"participant_id": "extA"})

        assert response.status_code == 400

    async def test_unknown_participant(self, client):
        response = await client.post(f"{BASE}/", json={"participant_id": "ghost"})

        assert response.status_code == 404

    async def test_requires_authentication(self, unauth_client):
        response = await unauth_client.post(f"{BASE}/", json={"participant_id": "u2"})

        assert response.status_code == 401


class TestSendMessageAPI:
    """Test POST /conversations/{reference}/messages."""

    async def test_send_by_pair_reference(self, client, bob, published, events_named):
        """Recipient is inferred from an "a_b" reference in any identifier form."""
        response = await client.post(f"{BASE}/u1_extB/messages", json={"text": "  hello  "})

        assert response.status_code == 201
        data = response.json()
        assert data["conversation_id"] == "u1_u2"
        assert data["sender_id"] == "u1"
        assert data["recipient_id"] == "u2"
        assert data["text"] == "hello"
        assert data["timestamp"].endswith("Z")

        [event] = events_named(published, EventType.MESSAGE_CREATED)
        assert event["message"]["id"] == data["id"]
        assert event["participant_ids"] == ["u1", "u2"]

    async def test_explicit_recipient(self, client, bob):
        response = await client.post(f"{BASE}/anything/messages", json={"text": "hi", "recipient_id": "legacyB"})

        assert response.status_code == 201
        assert response.json()["conversation_id"] == "u1_u2"

    async def test_explicit_recipient_must_match_path_thread(self, client, bob, carol):
        redirected = await client.post(f"{BASE}/u1_u2/messages", json={"text": "hi", "recipient_id": "u3"})
        matching = await client.post(f"{BASE}/u1_u2/messages", json={"text": "hi", "recipient_id": "extB"})
        thread = await client.get(f"{BASE}/u1_u2/messages")

        assert redirected.status_code == 400
        assert matching.status_code == 201
        assert matching.json()["conversation_id"] == "u1_u2"
        assert matching.json()["recipient_id"] == "u2"
        assert [m["recipient_id"] for m in thread.json()["messages"]] == ["u2"]

    async def test_sender_in_body_is_ignored(self, client, bob):
        response = await client.post(
            f"{BASE}/u1_u2/messages", json={"text": "hi", "sender_id": "u2"}
        )

        assert response.status_code == 201
        assert response.json()["sender_id"] == "u1"

    @pytest.mark.parametrize("body", [{"text": "   "}, {}])
    async def test_blank_text_is_bad_request(self, client, bob, body):
        response = await client.post(f"{BASE}/u1_u2/messages", json=body)

        assert response.status_code == 400

    async def test_unresolvable_recipient_is_bad_request(self, client):
        response = await client.post(f"{BASE}/not-a-pair/messages", json={"text": "hi"})

        assert response.status_code == 400

    async def test_reply_to_message(self, client, legacy_thread):
        response = await client.post(f"{BASE}/u1_u2/messages/m3/replies", json={"text": "yes please"})

        assert response.status_code == 201
        data = response.json()
        assert data["reply_to"] == "m3"
        assert data["recipient_id"] == "u2"

    async def test_reply_to_unknown_message(self, client, legacy_thread):
        response = await client.post(f"{BASE}/u1_u2/messages/nope/replies", json={"text": "?"})

        assert response.status_code == 404


class TestReadMessagesAPI:
    """Test GET endpoints over a thread split across documents."""

    async def test_every_reference_form_reads_the_same_timeline(self, client, legacy_thread):
        legacy, keyed = legacy_thread

        for reference in ("u1_u2", "u1_extB", "extB_u1", legacy.id, keyed.id):
            response = await client.get(f"{BASE}/{reference}/messages")

            assert response.status_code == 200, reference
            data = response.json()
            assert data["conversation_id"] == "u1_u2"
            assert [m["id"] for m in data["messages"]] == ["m1", "m2", "m3"]

    async def test_limit_keeps_most_recent(self, client, legacy_thread):
        response = await client.get(f"{BASE}/u1_u2/messages", params={"limit": 2})

        data = response.json()
        assert [m["id"] for m in data["messages"]] == ["m2", "m3"]
        assert data["has_more"] is True

    async def test_get_single_message(self, client, legacy_thread):
        response = await client.get(f"{BASE}/u1_u2/messages/m1")

        assert response.status_code == 200
        assert response.json()["text"] == "hi alice"

    async def test_non_participant_is_forbidden(self, client, legacy_thread, carol, current_user_as):
        current_user_as(carol)

        response = await client.get(f"{BASE}/u1_u2/messages")

        assert response.status_code == 403

    async def test_unknown_reference(self, client):
        response = await client.get(f"{BASE}/does-not-exist/messages")

        assert response.status_code == 404

    async def test_list_groups_duplicates(self, client, legacy_thread):
        response = await client.get(f"{BASE}/")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        [conversation] = data["data"]
        assert conversation["id"] == "u1_u2"
        assert conversation["last_message"]["id"] == "m3"
        assert conversation["unread_count"] == 2


class TestMessageActionsAPI:
    """Test reactions, edits, deletes and read receipts."""

    async def test_reaction_toggles(self, client, legacy_thread):
        added = await client.post(f"{BASE}/u1_u2/messages/m1/reactions", json={"reaction": "👍"})
        removed = await client.post(f"{BASE}/u1_u2/messages/m1/reactions", json={"reaction": "👍"})

        assert added.status_code == 200
        assert added.json()["added"] is True
        assert added.json()["reactions"] == {"👍": ["u1"]}
        assert removed.json()["added"] is False
        assert removed.json()["reactions"] == {}

    async def test_edit_own_message(self, client, legacy_thread):
        response = await client.patch(f"{BASE}/u1_u2/messages/m2", json={"text": "hey bob!"})

        assert response.status_code == 200
        data = response.json()
        assert data["text"] == "hey bob!"
        assert data["edited_at"] is not None

    async def test_cannot_edit_others_message(self, client, legacy_thread):
        response = await client.patch(f"{BASE}/u1_u2/messages/m3", json={"text": "tea?"})

        assert response.status_code == 403

    async def test_deleted_message_disappears(self, client, legacy_thread):
        deleted = await client.delete(f"{BASE}/u1_u2/messages/m2")
        fetched = await client.get(f"{BASE}/u1_u2/messages/m2")
        timeline = await client.get(f"{BASE}/u1_u2/messages")

        assert deleted.status_code == 200
        assert deleted.json() == {"conversation_id": "u1_u2", "message_id": "m2", "deleted": True}
        assert fetched.status_code == 404
        assert [m["id"] for m in timeline.json()["messages"]] == ["m1", "m3"]

    async def test_cannot_delete_others_message(self, client, legacy_thread):
        response = await client.delete(f"{BASE}/u1_u2/messages/m3")

        assert response.status_code == 403

    async def test_mark_read(self, client, legacy_thread):
        response = await client.patch(f"{BASE}/u1_extB/read")
        listing = await client.get(f"{BASE}/")

        assert response.status_code == 200
        assert response.json()["conversation_id"] == "u1_u2"
        # m1 is stored in both documents
        assert response.json()["updated_count"] == 3
        assert listing.json()["data"][0]["unread_count"] == 0


class TestConversationStateAPI:
    """Test archive, unarchive and per-user delete."""

    async def test_archive_moves_thread_out_of_inbox(self, client, legacy_thread):
        response = await client.post(f"{BASE}/u1_u2/archive")
        inbox = await client.get(f"{BASE}/")
        archived = await client.get(f"{BASE}/", params={"archived": True})

        assert response.status_code == 200
        assert response.json() == {"conversation_id": "u1_u2", "archived": True, "deleted": False}
        assert inbox.json()["total"] == 0
        assert [c["id"] for c in archived.json()["data"]] == ["u1_u2"]
        assert archived.json()["data"][0]["archived"] is True

    async def test_unarchive(self, client, legacy_thread):
        await client.post(f"{BASE}/u1_u2/archive")
        response = await client.delete(f"{BASE}/u1_u2/archive")
        inbox = await client.get(f"{BASE}/")

        assert response.json()["archived"] is False
        assert inbox.json()["total"] == 1

    async def test_delete_hides_only_for_caller(self, client, legacy_thread, bob, current_user_as):
        response = await client.delete(f"{BASE}/u1_u2")
        alice_inbox = await client.get(f"{BASE}/")

        current_user_as(bob)
        bob_inbox = await client.get(f"{BASE}/")

        assert response.json() == {"conversation_id": "u1_u2", "archived": False, "deleted": True}
        assert alice_inbox.json()["total"] == 0
        assert bob_inbox.json()["total"] == 1

    async def test_new_message_resurfaces_deleted_thread(
        self, client, legacy_thread, alice, bob, current_user_as
    ):
        await client.delete(f"{BASE}/u1_u2")

        current_user_as(bob)
        sent = await client.post(f"{BASE}/u1_u2/messages", json={"text": "you there?"})

        current_user_as(alice)
        inbox = await client.get(f"{BASE}/")

        assert sent.status_code == 201

        assert [c["id"] for c in inbox.json()["data"]] == ["u1_u2"]


class TestHealthAPI:

    async def test_health(self, unauth_client):
        response = await unauth_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_root(self, unauth_client):
        response = await unauth_client.get("/")

        assert response.status_code == 200
        assert response.json()["version"] == "1.0.0"

    async def test_root_through_socket_wrapper(self):
        """The Socket.IO wrapper forwards plain HTTP to the API."""
        async with AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as ac:
            response = await ac.get("/")

        assert response.status_code == 200
        assert response.json()["version"] == main.fastapi_app.version
