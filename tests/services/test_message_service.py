"""
Unit tests for MessageService.
Tests business logic and service layer operations.
"""
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException

from trave_social.core.events import EventType
from trave_social.services.conversation_service import ConversationService
from trave_social.services.message_service import MessageService


def ts(minute: int) -> str:
    return f"2025-01-01T10:{minute:02d}:00Z"


@pytest.fixture
async def legacy_thread(alice, bob, make_conversation, message_factory):
    """A thread split across a legacy document and the keyed document."""
    legacy = await make_conversation("extB", "u1", messages=[
        message_factory("m1", "extB", "u1", "hey alice", ts(1)),
        message_factory("m2", "u1", None, "hey bob", ts(2)),
    ])
    keyed = await make_conversation("u1", "u2", key="u1_u2", messages=[
        message_factory("m3", "u2", "u1", "how are you?", ts(3)),
        message_factory("m1", "extB", "u1", "hey alice", ts(1)),
    ])
    return legacy, keyed


class TestSendMessage:
    """Test sending messages."""

    async def test_send_creates_thread_and_appends(self, db_session, alice, bob, published, events_named):
        service = MessageService(db_session)

        message = await service.send_message(sender_id="extA", recipient_id="legacyB", text="  Hello!  ")

        assert message["conversation_id"] == "u1_u2"
        assert message["sender_id"] == "u1"
        assert message["recipient_id"] == "u2"
        assert message["text"] == "Hello!"
        assert message["read"] is False
        assert message["reactions"] == {}
        assert message["timestamp"].endswith("Z")

        thread = await ConversationService(db_session).resolve_conversation("u1", "u2")
        assert [m["id"] for m in thread.primary.messages] == [message["id"]]
        assert thread.primary.last_message == "Hello!"

        created = events_named(published, EventType.MESSAGE_CREATED)
        assert len(created) == 1
        assert created[0]["recipient_id"] == "u2"
        assert created[0]["sender_name"] == "Alice"
        assert created[0]["participant_ids"] == ["u1", "u2"]
        assert created[0]["message"] == message

    async def test_send_appends_to_primary_document(self, db_session, legacy_thread):
        legacy, keyed = legacy_thread

        await MessageService(db_session).send_message("u1", "u2", "new one")

        assert len(keyed.messages) == 3
        assert len(legacy.messages) == 2

    @pytest.mark.parametrize("text", [None, "", "   "])
    async def test_blank_text_is_rejected(self, db_session, alice, bob, text):
        with pytest.raises(HTTPException) as exc_info:
            await MessageService(db_session).send_message("u1", "u2", text)

        assert exc_info.value.status_code == 400

    async def test_missing_recipient_is_rejected(self, db_session, alice):
        with pytest.raises(HTTPException) as exc_info:
            await MessageService(db_session).send_message("u1", None, "hi")

        assert exc_info.value.status_code == 400

    async def test_unknown_recipient_is_404(self, db_session, alice):
        with pytest.raises(HTTPException) as exc_info:
            await MessageService(db_session).send_message("u1", "ghost", "hi")

        assert exc_info.value.status_code == 404

    async def test_new_message_resurfaces_deleted_thread(self, db_session, alice, bob, make_conversation):
        keyed = await make_conversation("u1", "u2", key="u1_u2", deleted_by=["u1", "extB"])

        await MessageService(db_session).send_message("u2", "u1", "ping")

        assert keyed.deleted_by == []

    async def test_reply_must_exist_in_thread(self, db_session, legacy_thread):
        service = MessageService(db_session)

        reply = await service.send_message("u1", "u2", "replying", reply_to="m1")
        assert reply["reply_to"] == "m1"

        with pytest.raises(HTTPException) as exc_info:
            await service.send_message("u1", "u2", "replying", reply_to="missing")
        assert exc_info.value.status_code == 404

    async def test_reply_to_message_infers_recipient(self, db_session, legacy_thread):
        reply = await MessageService(db_session).reply_to_message("u1_extB", "m3", "u1", "great")

        assert reply["recipient_id"] == "u2"
        assert reply["reply_to"] == "m3"


class TestResolveRecipient:

    async def test_explicit_recipient_used_when_reference_names_no_thread(self, db_session, alice, bob):
        assert await MessageService(db_session).resolve_recipient("anything", "u1", "u3") == "u3"

    async def test_explicit_recipient_cannot_redirect_a_thread(self, db_session, alice, bob, carol):
        with pytest.raises(HTTPException) as exc_info:
            await MessageService(db_session).resolve_recipient("u1_u2", "u1", "u3")

        assert exc_info.value.status_code == 400

    async def test_explicit_recipient_matching_thread_in_any_variant(self, db_session, alice, bob):
        assert await MessageService(db_session).resolve_recipient("u1_u2", "u1", "legacyB") == "u2"

    async def test_other_half_of_pair(self, db_session, alice, bob):
        service = MessageService(db_session)

        assert await service.resolve_recipient("u1_extB", "u1") == "extB"
        assert await service.resolve_recipient("extA_u2", "u1") == "u2"

    async def test_other_participant_of_document(self, db_session, alice, bob, make_conversation):
        document = await make_conversation("extB", "u1")

        assert await MessageService(db_session).resolve_recipient(document.id, "u1") == "extB"

    async def test_outsider_is_forbidden(self, db_session, alice, bob, carol):
        with pytest.raises(HTTPException) as exc_info:
            await MessageService(db_session).resolve_recipient("u1_u2", "u3")

        assert exc_info.value.status_code == 403


class TestGetThreadMessages:
    """Test the merged read path."""

    async def test_variant_and_canonical_references_are_identical(self, db_session, legacy_thread):
        service = MessageService(db_session)

        by_variant = await service.get_thread_messages("u1_extB", "u1")
        by_canonical = await service.get_thread_messages("u1_u2", "u1")

        assert by_variant == by_canonical
        assert by_canonical["conversation_id"] == "u1_u2"
        assert [m["id"] for m in by_canonical["messages"]] == ["m1", "m2", "m3"]
        assert by_canonical["has_more"] is False

    async def test_limit_returns_latest_page(self, db_session, legacy_thread):
        result = await MessageService(db_session).get_thread_messages("u1_u2", "u1", limit=2)

        assert [m["id"] for m in result["messages"]] == ["m2", "m3"]
        assert result["has_more"] is True

    async def test_before_filters_older_messages(self, db_session, legacy_thread):
        before = datetime(2025, 1, 1, 10, 3, tzinfo=timezone.utc)

        result = await MessageService(db_session).get_thread_messages("u1_u2", "u1", before=before)

        assert [m["id"] for m in result["messages"]] == ["m1", "m2"]

    async def test_pair_that_never_talked_is_empty(self, db_session, alice, bob):
        result = await MessageService(db_session).get_thread_messages("u1_u2", "u2")

        assert result == {"conversation_id": "u1_u2", "messages": [], "has_more": False}

    async def test_get_single_message(self, db_session, legacy_thread):
        message = await MessageService(db_session).get_message("u1_u2", "m2", "u2")

        assert message["text"] == "hey bob"

        with pytest.raises(HTTPException) as exc_info:
            await MessageService(db_session).get_message("u1_u2", "nope", "u2")
        assert exc_info.value.status_code == 404


class TestMarkRead:
    """Test read state."""

    async def test_marks_only_incoming_messages(self, db_session, legacy_thread, published, events_named):
        legacy, keyed = legacy_thread

        result = await MessageService(db_session).mark_thread_read("u1_u2", "u1")

        # m1 is held by both documents; m2 was sent by u1
        assert result == {"conversation_id": "u1_u2", "updated_count": 3}
        assert {m["id"]: m["read"] for m in legacy.messages} == {"m1": True, "m2": False}
        assert {m["id"]: m["read"] for m in keyed.messages} == {"m3": True, "m1": True}

        read_events = events_named(published, EventType.CONVERSATION_READ)
        assert read_events[0]["user_id"] == "u1"

    async def test_message_without_recipient_counts_for_non_sender(self, db_session, legacy_thread):
        legacy, _ = legacy_thread

        result = await MessageService(db_session).mark_thread_read("u1_u2", "extB")

        assert result["updated_count"] == 1
        assert {m["id"]: m["read"] for m in legacy.messages} == {"m1": False, "m2": True}

    async def test_nothing_to_mark_publishes_nothing(self, db_session, legacy_thread, published, events_named):
        service = MessageService(db_session)
        await service.mark_thread_read("u1_u2", "u1")
        published.reset_mock()

        result = await service.mark_thread_read("u1_u2", "u1")

        assert result["updated_count"] == 0
        assert events_named(published, EventType.CONVERSATION_READ) == []

    async def test_clears_message_notification(self, db_session, legacy_thread):
        from trave_social.services.notification_service import NotificationService

        notifications = NotificationService(db_session)
        notification = await notifications.upsert_message_notification(
            recipient_id="u1", sender_id="u2", sender_name="Bob",
            conversation_key="u1_u2", text="how are you?",
        )

        await MessageService(db_session).mark_thread_read("u1_u2", "u1")
        await db_session.refresh(notification)

        assert notification.read is True


class TestReactions:
    """Test the reaction toggle."""

    async def test_toggle_add_remove_add(self, db_session, legacy_thread):
        service = MessageService(db_session)

        added = await service.toggle_reaction("u1_u2", "m1", "u1", "❤️")
        assert added["added"] is True
        assert added["reactions"] == {"❤️": ["u1"]}

        removed = await service.toggle_reaction("u1_u2", "m1", "extA", "❤️")
        assert removed["added"] is False
        assert removed["reactions"] == {}

        again = await service.toggle_reaction("u1_u2", "m1", "u1", "❤️")
        assert again["added"] is True
        assert again["reactions"] == {"❤️": ["u1"]}

    async def test_reaction_is_written_to_every_copy(self, db_session, legacy_thread):
        legacy, keyed = legacy_thread

        await MessageService(db_session).toggle_reaction("u1_u2", "m1", "u2", "👍")

        for document in (legacy, keyed):
            copy = next(m for m in document.messages if m["id"] == "m1")
            assert copy["reactions"] == {"👍": ["u2"]}

    async def test_reactions_from_both_users(self, db_session, legacy_thread):
        service = MessageService(db_session)

        await service.toggle_reaction("u1_u2", "m3", "u1", "😂")
        result = await service.toggle_reaction("u1_u2", "m3", "u2", "😂")

        assert result["reactions"] == {"😂": ["u1", "u2"]}

    async def test_blank_reaction_is_rejected(self, db_session, legacy_thread):
        with pytest.raises(HTTPException) as exc_info:
            await MessageService(db_session).toggle_reaction("u1_u2", "m1", "u1", " ")

        assert exc_info.value.status_code == 400


class TestEditAndDelete:
    """Test sender-only edits and soft deletes."""

    async def test_edit_own_message_sets_edited_at(self, db_session, legacy_thread, published, events_named):
        _, keyed = legacy_thread

        edited = await MessageService(db_session).edit_message("u1_u2", "m3", "extB", "how are you doing?")

        assert edited["text"] == "how are you doing?"
        assert edited["edited_at"] is not None
        assert keyed.messages[0]["edited_at"] == edited["edited_at"]
        assert events_named(published, EventType.MESSAGE_UPDATED)[0]["message"] == edited

    async def test_edit_other_users_message_is_forbidden(self, db_session, legacy_thread):
        with pytest.raises(HTTPException) as exc_info:
            await MessageService(db_session).edit_message("u1_u2", "m3", "u1", "hijacked")

        assert exc_info.value.status_code == 403

    async def test_edit_with_blank_text_is_rejected(self, db_session, legacy_thread):
        with pytest.raises(HTTPException) as exc_info:
            await MessageService(db_session).edit_message("u1_u2", "m3", "u2", "")

        assert exc_info.value.status_code == 400

    async def test_edit_updates_every_copy(self, db_session, legacy_thread):
        legacy, keyed = legacy_thread

        await MessageService(db_session).edit_message("u1_u2", "m1", "u2", "hey there")

        for document in (legacy, keyed):
            copy = next(m for m in document.messages if m["id"] == "m1")
            assert copy["text"] == "hey there"

    async def test_delete_is_soft(self, db_session, legacy_thread):
        legacy, keyed = legacy_thread
        service = MessageService(db_session)

        result = await service.delete_message("u1_u2", "m1", "u2")

        assert result == {"conversation_id": "u1_u2", "message_id": "m1", "deleted": True}
        for document in (legacy, keyed):
            copy = next(m for m in document.messages if m["id"] == "m1")
            assert copy["deleted_at"] is not None

        timeline = await service.get_thread_messages("u1_u2", "u1")
        assert [m["id"] for m in timeline["messages"]] == ["m2", "m3"]

        with pytest.raises(HTTPException) as exc_info:
            await service.get_message("u1_u2", "m1", "u1")
        assert exc_info.value.status_code == 404

    async def test_delete_other_users_message_is_forbidden(self, db_session, legacy_thread):
        with pytest.raises(HTTPException) as exc_info:
            await MessageService(db_session).delete_message("u1_u2", "m3", "u1")

        assert exc_info.value.status_code == 403
