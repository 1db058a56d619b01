"""
Tests for the message store and message service.

Tests cover:
- Store reads and writes keyed on message id and owner
- Posting rules (owner presence, text limits, ownership)
- Not-found promoted to NotFoundError by the service
- Text-only updates preserving owner and timestamp
- Deletion of existing and missing messages
"""

import pytest

from socialmedia.errors import (
    AuthorizationError,
    NotFoundError,
    ServiceError,
    StorageError,
    ValidationError,
)
from socialmedia.schemas import Account, Message
from socialmedia.storage import Base


def post(message_service, owner: Account, text: str = "hi", epoch: int = 1000) -> Message:
    """Helper to post a message as owner."""
    return message_service.create_message(
        Message(posted_by=owner.account_id, message_text=text, time_posted_epoch=epoch),
        owner,
    )


class TestMessageStore:
    """Test the message store directly."""

    def test_insert_and_get(self, message_store, alice):
        """Test insert assigns an id and keeps every other field."""
        created = message_store.insert(
            Message(posted_by=alice.account_id, message_text="hi", time_posted_epoch=1000)
        )

        assert created.message_id == 1
        assert message_store.get_by_id(created.message_id) == created

    def test_get_by_id_missing_returns_none(self, message_store):
        assert message_store.get_by_id(99) is None

    def test_get_by_owner_id(self, message_store, account_store, alice):
        bob = account_store.insert(Account(username="bob", password="pass1"))
        mine = message_store.insert(Message(posted_by=alice.account_id, message_text="a", time_posted_epoch=1))
        message_store.insert(Message(posted_by=bob.account_id, message_text="b", time_posted_epoch=2))

        assert message_store.get_by_owner_id(alice.account_id) == [mine]
        assert message_store.get_by_owner_id(99) == []
        assert len(message_store.get_all()) == 2

    def test_insert_for_unknown_owner_fails(self, message_store):
        """Test the foreign key rejects messages for accounts that don't exist."""
        with pytest.raises(StorageError):
            message_store.insert(Message(posted_by=99, message_text="hi", time_posted_epoch=1))

    def test_update_and_delete(self, message_store, alice):
        created = message_store.insert(
            Message(posted_by=alice.account_id, message_text="hi", time_posted_epoch=1000)
        )

        assert message_store.update(created.model_copy(update={"message_text": "bye"})) is True
        assert message_store.get_by_id(created.message_id).message_text == "bye"
        assert message_store.update(Message(message_id=99, posted_by=alice.account_id, message_text="x")) is False

        assert message_store.delete(created) is True
        assert message_store.delete(created) is False


class TestCreateMessage:
    """Test posting rules."""

    def test_scenario_register_post_list(self, account_service, message_service):
        """Test register, post, then list by owner."""
        alice = account_service.create_account(Account(username="alice", password="pass1"))
        assert alice.account_id == 1

        message = message_service.create_message(
            Message(posted_by=1, message_text="hi", time_posted_epoch=1000),
            alice,
        )

        assert message.message_id > 0
        assert message.posted_by == 1
        assert message.message_text == "hi"
        assert message.time_posted_epoch == 1000
        assert message_service.get_messages_by_owner_id(1) == [message]

    def test_owner_must_be_given(self, message_service):
        with pytest.raises(ValidationError, match="account must exist"):
            message_service.create_message(
                Message(posted_by=1, message_text="hi", time_posted_epoch=1000), None
            )

    def test_text_length_boundary(self, message_service, alice):
        """Test 254 characters pass and 255 fail."""
        assert post(message_service, alice, "x" * 254).message_text == "x" * 254

        with pytest.raises(ValidationError):
            post(message_service, alice, "x" * 255)

    @pytest.mark.parametrize("text", ["", "   ", "\t\n", None])
    def test_blank_text(self, message_service, alice, text):
        with pytest.raises(ValidationError):
            post(message_service, alice, text)

    def test_length_counts_untrimmed_text(self, message_service, alice):
        """Test surrounding whitespace counts toward the limit."""
        with pytest.raises(ValidationError):
            post(message_service, alice, " " + "x" * 254)

    def test_owner_mismatch(self, account_service, message_service, alice):
        """Test posting on behalf of another account is refused."""
        bob = account_service.create_account(Account(username="bob", password="pass1"))

        with pytest.raises(AuthorizationError):
            message_service.create_message(
                Message(posted_by=bob.account_id, message_text="hi", time_posted_epoch=1000),
                alice,
            )

    def test_stale_owner(self, account_service, message_service, alice):
        """Test an owner object whose account was deleted is refused."""
        account_service.delete_account(alice)

        with pytest.raises(ValidationError):
            post(message_service, alice)

        assert message_service.get_all_messages() == []


class TestReadMessages:
    """Test message lookups."""

    def test_get_message_by_id(self, message_service, alice):
        message = post(message_service, alice)

        assert message_service.get_message_by_id(message.message_id) == message

    def test_missing_message_raises(self, message_service):
        with pytest.raises(NotFoundError):
            message_service.get_message_by_id(99)

    def test_get_all_messages(self, message_service, alice):
        first = post(message_service, alice, "one")
        second = post(message_service, alice, "two")

        assert message_service.get_all_messages() == [first, second]

    def test_no_messages_for_owner(self, message_service, alice):
        assert message_service.get_messages_by_owner_id(alice.account_id) == []

    def test_storage_failure_becomes_service_error(self, db, message_service):
        Base.metadata.drop_all(bind=db.get_bind())

        with pytest.raises(ServiceError) as exc_info:
            message_service.get_all_messages()

        assert isinstance(exc_info.value.__cause__, StorageError)


class TestUpdateMessage:
    """Test text-only updates."""

    def test_update_preserves_owner_and_timestamp(self, message_service, alice):
        original = post(message_service, alice, "old", 1000)

        updated = message_service.update_message(
            Message(message_id=original.message_id, posted_by=77, message_text="new", time_posted_epoch=5)
        )

        assert updated.message_text == "new"
        assert updated.posted_by == original.posted_by
        assert updated.time_posted_epoch == 1000
        assert message_service.get_message_by_id(original.message_id) == updated

    def test_update_missing_message(self, message_service):
        with pytest.raises(NotFoundError):
            message_service.update_message(Message(message_id=99, message_text="new"))

    @pytest.mark.parametrize("text", ["", "  ", "x" * 255])
    def test_update_with_invalid_text(self, message_service, alice, text):
        """Test invalid text is rejected and the stored text is untouched."""
        original = post(message_service, alice, "old")

        with pytest.raises(ValidationError):
            message_service.update_message(Message(message_id=original.message_id, message_text=text))

        assert message_service.get_message_by_id(original.message_id).message_text == "old"


class TestDeleteMessage:
    """Test message deletion."""

    def test_delete_existing(self, message_service, alice):
        message = post(message_service, alice)

        message_service.delete_message(message)

        with pytest.raises(NotFoundError):
            message_service.get_message_by_id(message.message_id)

    def test_delete_missing(self, message_service):
        with pytest.raises(NotFoundError):
            message_service.delete_message(Message(message_id=99))
